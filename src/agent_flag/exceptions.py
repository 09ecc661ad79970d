class AgentFlagError(Exception):
    """Base class for errors raised by the workflow core."""


class ConfigError(AgentFlagError):
    """Raised when environment configuration is missing or invalid."""


class FlagServiceError(AgentFlagError):
    """Raised when the flag service connection cannot reach a ready state."""


class FlagClientNotInitializedError(FlagServiceError):
    """Raised when a flag lookup happens before initialize() or after close()."""


class GenerationError(AgentFlagError):
    """Raised when the text-generation backend fails."""


class GenerationUnavailableError(GenerationError):
    """Raised when no text-generation backend is configured."""
