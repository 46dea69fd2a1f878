"""Error taxonomy shared by the client, the daemon and the batch layer."""


class HushError(Exception):
    """Base class for all hush errors."""


class NotFoundError(HushError):
    """A required local resource (master key, credentials, project file) is missing."""


class UnauthorizedError(HushError):
    """The bearer token is missing or not recognised."""


class MalformedInputError(HushError):
    """Input could not be parsed: a bad KEY=VALUE pair, request body or key file."""


class DecryptionFailedError(HushError):
    """An envelope could not be opened with the given key."""


class StorageError(HushError):
    """The storage engine rejected or failed an operation."""


class KeyExistsError(HushError):
    """A master key already exists and overwriting it was not confirmed."""


class TokenExistsError(HushError):
    """A token with the requested name has already been issued."""


class TransportError(HushError):
    """A request never produced an HTTP response."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class RemoteError(HushError):
    """The server answered with an unexpected status or body."""

    def __init__(self, operation: str, status: int, message: str = ""):
        self.operation = operation
        self.status = status
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} failed with status {status}{detail}")
