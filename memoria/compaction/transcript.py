"""Rendering of messages into plain-text transcripts."""

from loguru import logger

from memoria.compaction.interfaces import BodyDecoder
from memoria.compaction.names import NameResolver, generic_label
from memoria.compaction.types import DECODE_FAILED_PLACEHOLDER, Message


def safe_decode(message: Message, decoder: BodyDecoder) -> str:
    """
    Decode one message body, substituting a placeholder on failure.

    A failure is confined to its message: it is logged and never raised.

    Args:
        message: Message whose body to decode.
        decoder: Body decoder.

    Returns:
        Plain text, or the decode-failed placeholder.
    """
    try:
        return decoder.decode(message.body)
    except Exception as e:
        logger.warning(f"Failed to decode message {message.id} in session {message.session_id}: {e}")
        return DECODE_FAILED_PLACEHOLDER


def render_transcript(
    messages: list[Message],
    resolver: NameResolver,
    decoder: BodyDecoder,
) -> str:
    """
    Render messages as "[timestamp] name: body" lines.

    Args:
        messages: Messages in chronological order.
        resolver: Name resolver for the session.
        decoder: Body decoder.

    Returns:
        Transcript text, one line per message.
    """
    lines = []
    for msg in messages:
        name = resolver.resolve(msg.sender_id, msg.sender_kind)
        lines.append(f"[{msg.created_at.isoformat()}] {name}: {safe_decode(msg, decoder)}")
    return "\n".join(lines)


def render_chat_lines(
    messages: list[Message],
    decoder: BodyDecoder,
    resolver: NameResolver | None = None,
) -> list[str]:
    """
    Render messages as "name: body" lines.

    Without a resolver, senders are labelled by kind only.
    """
    lines = []
    for msg in messages:
        if resolver is not None:
            name = resolver.resolve(msg.sender_id, msg.sender_kind)
        else:
            name = generic_label(msg.sender_kind)
        lines.append(f"{name}: {safe_decode(msg, decoder)}")
    return lines
