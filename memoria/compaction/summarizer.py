"""Memory synthesis: prompt construction and response parsing."""

import asyncio
import json
import re
from typing import Callable

from loguru import logger
from pydantic import ValidationError

from memoria.compaction.errors import MemorySynthesisError
from memoria.compaction.estimator import estimate_tokens
from memoria.compaction.types import GeneratedMemory, MemoryConfig
from memoria.providers.base import LLMProvider


SUMMARIZE_SYSTEM_PROMPT = """You are a narrative memory assistant. Generate a VERY concise structured summary of a multi-party roleplay conversation.

IMPORTANT: The summary must be compressed to use at most {max_tokens} tokens (approximately {max_chars} characters).

Output a JSON object with:
- summary: extremely concise prose summary (2-3 sentences MAX) of what happened
- keyEvents: array of ONLY the most important events (max {max_key_events}) with:
  - timestamp: ISO datetime
  - description: what happened (1 sentence)
  - participants: array of participant names involved
  - importance: "high", "medium", or "low"

Focus ONLY on story-critical information. Discard everything else. Be EXTREMELY concise."""

SUMMARIZE_USER_PROMPT = """{previous_context}New conversation to summarize:

{conversation}

Generate extremely concise structured memory (respond with valid JSON only):"""

PREVIOUS_SUMMARY_HEADER = "[Previous Summary]:"

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def build_prompts(
    transcript: str,
    previous_summaries: list[str],
    config: MemoryConfig,
) -> tuple[str, str]:
    """
    Build the prompts for one compaction.

    Args:
        transcript: Rendered messages to compact.
        previous_summaries: Summaries of earlier records, oldest first.
        config: Engine configuration.

    Returns:
        Tuple of (system_prompt, user_prompt).
    """
    max_tokens = config.max_compressed_tokens
    system_prompt = SUMMARIZE_SYSTEM_PROMPT.format(
        max_tokens=max_tokens,
        max_chars=max_tokens * config.chars_per_token,
        max_key_events=config.max_key_events,
    )

    previous_context = ""
    if previous_summaries:
        previous_context = (
            f"{PREVIOUS_SUMMARY_HEADER}\n" + "\n\n".join(previous_summaries) + "\n\n"
        )

    user_prompt = SUMMARIZE_USER_PROMPT.format(
        previous_context=previous_context,
        conversation=transcript,
    )
    return system_prompt, user_prompt


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _CODE_FENCE.sub("", text.strip()).strip()


def parse_generated_memory(text: str | None, max_key_events: int = 5) -> GeneratedMemory:
    """
    Parse provider output into a GeneratedMemory.

    Args:
        text: Raw provider output, JSON optionally wrapped in a code fence.
        max_key_events: Events beyond this count are dropped.

    Returns:
        The validated memory.

    Raises:
        MemorySynthesisError: If the text is not a valid memory document.
    """
    if not text or not text.strip():
        raise MemorySynthesisError("Generation returned empty content")

    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse memory JSON: {e}; content: {text[:500]}")
        raise MemorySynthesisError("Failed to parse memory JSON") from e

    if not isinstance(data, dict):
        raise MemorySynthesisError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        memory = GeneratedMemory.model_validate(data)
    except ValidationError as e:
        logger.error(f"Memory JSON failed validation: {e}")
        raise MemorySynthesisError("Memory JSON does not match the expected schema") from e

    if len(memory.key_events) > max_key_events:
        logger.warning(
            f"Generation returned {len(memory.key_events)} key events, keeping {max_key_events}"
        )
        memory = memory.model_copy(update={"key_events": memory.key_events[:max_key_events]})

    return memory


async def generate_memory(
    provider: LLMProvider,
    transcript: str,
    previous_summaries: list[str],
    config: MemoryConfig,
    model: str | None = None,
    estimator: Callable[[str], int] = estimate_tokens,
) -> GeneratedMemory:
    """
    Generate a structured memory for a transcript.

    Args:
        provider: LLM provider.
        transcript: Rendered messages to compact.
        previous_summaries: Summaries of earlier records, oldest first.
        config: Engine configuration.
        model: Model override; defaults to config, then the provider default.
        estimator: Token estimator used for the output budget check.

    Returns:
        The parsed memory.

    Raises:
        MemorySynthesisError: If the call fails, times out or returns an
            unparsable document.
    """
    system_prompt, user_prompt = build_prompts(transcript, previous_summaries, config)

    try:
        response = await asyncio.wait_for(
            provider.generate(
                system_prompt,
                user_prompt,
                model=model or config.summary_model,
                max_tokens=config.summary_max_tokens,
                temperature=config.summary_temperature,
                json_mode=True,
            ),
            timeout=config.generation_timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        raise MemorySynthesisError(
            f"Generation timed out after {config.generation_timeout_seconds}s"
        ) from e
    except Exception as e:
        raise MemorySynthesisError(f"Generation call failed: {e}") from e

    if response.is_error:
        raise MemorySynthesisError(f"Generation call failed: {response.content}")

    memory = parse_generated_memory(response.content, config.max_key_events)

    summary_tokens = estimator(memory.summary)
    if summary_tokens > config.max_compressed_tokens:
        logger.warning(
            f"Generated summary is over budget: ~{summary_tokens} tokens "
            f"(limit {config.max_compressed_tokens})"
        )

    return memory
