# krishirakshak/errors.py


class KrishiRakshakError(Exception):
    """Base class for every error raised by the pipeline."""


class DecodeError(KrishiRakshakError):
    """The selected file could not be read as an image."""


class PredictionError(KrishiRakshakError):
    """The scorer failed or returned output that does not fit the label set."""


class ModelLoadError(KrishiRakshakError):
    """The classifier artifact is missing or could not be loaded."""


class EmptyInputError(KrishiRakshakError):
    """A submission carried neither images nor text."""


class PipelineBusyError(KrishiRakshakError):
    """A batch is already being processed."""


class EntryNotFoundError(KrishiRakshakError, KeyError):
    """No conversation entry has the given id."""


class ExplanationError(KrishiRakshakError):
    """Base class for explanation request failures."""


class RequestCancelled(ExplanationError):
    """The request was superseded by a newer one."""


class NetworkError(ExplanationError):
    """The explanation service could not be reached."""


class RemoteError(ExplanationError):
    """The explanation service answered with an error."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class MissingFieldsError(RemoteError):
    """The service rejected the payload as incomplete (HTTP 400)."""
