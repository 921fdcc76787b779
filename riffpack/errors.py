class RiffPackError(Exception):
    """Base class for riffpack-specific errors."""


# Scanning source directories; recoverable, the offending item is skipped
class DiscoveryError(RiffPackError):
    def __init__(self, path, message):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


# Parsing
class FormatError(RiffPackError):
    pass


class ManifestFormatError(FormatError):
    pass


# Decryption failed; a wrong password and corrupted data look the same
class CryptoError(RiffPackError):
    pass


# Container contract
class NotFoundError(RiffPackError, KeyError):
    def __str__(self):
        return Exception.__str__(self)


class DuplicateEntryError(RiffPackError, ValueError):
    pass
