"""Error types raised by the tracker collaborators (storage, auth, validation)."""


class TrackerError(Exception):
    """Base error. `status` mirrors the HTTP code the operation layer reports."""

    status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrackerError):
    status = 400


class AuthenticationError(TrackerError):
    status = 401


class NotFoundError(TrackerError):
    status = 404


class ConflictError(TrackerError):
    status = 409


class StorageError(TrackerError):
    status = 500
