"""Error kinds raised by the gratitude tree services."""


class GratitudeTreeError(Exception):
    """Base class for service errors."""


class ValidationError(GratitudeTreeError):
    """A required field was missing; nothing was written."""

    def __init__(self, message, fields=()):
        super().__init__(message)
        self.fields = tuple(fields)


class RemoteUnavailable(GratitudeTreeError):
    """The backend could not be reached or answered with a failure."""


class LocalPersistenceError(GratitudeTreeError):
    """The local snapshot could not be written (disk full, permissions, ...)."""
