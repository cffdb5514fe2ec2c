"""Error taxonomy for the memory engine."""


class MemoryEngineError(Exception):
    """Base class for memory engine errors."""


class PersistenceError(MemoryEngineError):
    """A store was unreachable or rejected a write."""


class MemorySynthesisError(MemoryEngineError):
    """The generation call failed or returned an unparsable structure."""


class DecodeError(MemoryEngineError):
    """A single message body could not be decoded."""
