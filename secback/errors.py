class SecbackError(Exception):
    """Base class for secback-specific errors."""


# Outer container / manifest structure
class InvalidArchive(SecbackError):
    pass


class InvalidManifest(SecbackError):
    pass


# SecureTar envelope
class InvalidProtectedHeader(SecbackError):
    pass


class InvalidProtectedArchive(SecbackError):
    pass


class PasswordRequired(SecbackError):
    pass


# Decryptor misuse / ciphertext shape
class InvalidPadding(SecbackError):
    pass


class BufferTooSmall(SecbackError):
    pass


class InvalidIV(SecbackError):
    pass


class DecompressionError(SecbackError):
    pass
