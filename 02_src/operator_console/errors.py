"""Operator console errors."""


class ConsoleError(Exception):
    """Base class for operator console errors."""


class SessionStateError(ConsoleError):
    """Operation not allowed in the current session state."""


class SyncUnsupported(ConsoleError):
    """The log store does not offer incremental append."""


class SyncFailed(ConsoleError):
    """A synchronize attempt failed; safe to retry."""


class StorageCorrupted(ConsoleError):
    """Local journal content could not be read back."""
