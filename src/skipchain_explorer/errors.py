# errors.py
# Exception taxonomy for the explorer core.
#
# FetchError ends one walk direction. DecodeError costs a single block.
# Cancellation is not an error and has no class here.


class ExplorerError(Exception):
    """Base class for every explorer failure."""


class FetchError(ExplorerError):
    """Raised when a block cannot be retrieved from the roster."""

    def __init__(self, message: str, block_hash: bytes = b"") -> None:
        super().__init__(message)
        self.block_hash = block_hash


class DecodeError(ExplorerError):
    """Raised when a block payload cannot be decoded into transactions."""


class ConfigError(ExplorerError):
    """Raised when the environment holds an unusable setting."""
