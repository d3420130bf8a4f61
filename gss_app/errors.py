"""Exceptions raised while managing identities.

Every error derives from :class:`GssError` and, where one fits, from the
builtin exception callers would otherwise expect (for example
:class:`KeyNotFound` is also a :class:`FileNotFoundError`).
"""


class GssError(Exception):
    """Base class for all identity management errors."""


class ConfigCorrupt(GssError, ValueError):
    """The persisted identity store cannot be parsed."""


class KeyNotFound(GssError, FileNotFoundError):
    """A referenced key or SSH config fragment file does not exist."""


class UnsupportedKeyFormat(GssError, ValueError):
    """A private key is not in a recognised encoding."""


class KeyGenerationFailed(GssError, RuntimeError):
    """Creating or writing a new key pair failed."""


class IndexOutOfRange(GssError, IndexError):
    """An identity index does not point into the store."""

    def __init__(self, index: int, count: int) -> None:
        if count:
            message = f"Invalid index: {index} (available: 0 to {count - 1})"
        else:
            message = f"Invalid index: {index} (no key pairs configured)"
        super().__init__(message)
        self.index = index
        self.count = count


class InvalidGitSetting(GssError, ValueError):
    """A Git setting key or value is not a string."""


class GitConfigApplyFailed(GssError, RuntimeError):
    """Applying a single Git setting failed."""

    def __init__(self, key: str, scope: str, reason: str) -> None:
        super().__init__(f"Failed to set Git config '{key}' in {scope} scope: {reason}")
        self.key = key
        self.scope = scope
        self.reason = reason
