class WallfeedError(Exception):
    """Base class for every error raised by wallfeed."""


class ConfigError(WallfeedError):
    """Configuration is missing or invalid. Fatal at startup."""


class NetworkError(WallfeedError):
    """Catalog search, detail fetch or asset download failed."""


class NotFoundError(NetworkError):
    """The catalog does not know the requested identifier."""


class StorageError(WallfeedError):
    """The idempotency ledger could not be read or written."""


class DescriptionError(WallfeedError):
    """The image describer could not produce a description."""


class SinkError(WallfeedError):
    """A publishing sink rejected the item or could not be reached."""
