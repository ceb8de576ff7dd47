"""Error taxonomy shared by the upload coordinator and the processing worker."""


class PipelineError(Exception):
    """Base class for upload and processing errors"""
    pass


class InvalidRequest(PipelineError):
    """Missing or malformed caller input. Reported to the caller, never retried."""
    pass


class QueueError(PipelineError):
    """The job queue rejected an enqueue, ack or redelivery request."""
    pass


class ProcessingError(PipelineError):
    """A single processing attempt failed and may be retried."""
    pass


class NotFound(ProcessingError):
    """The temp object or the file record does not exist."""
    pass


class TransformError(ProcessingError):
    """A transform could not decode or re-encode its input."""
    pass


class StorageError(ProcessingError):
    """Object storage put/get/delete failed at the transport level."""
    pass


class TerminalFailure(ProcessingError):
    """The attempt cap was reached; the record is marked FAILED."""

    def __init__(self, file_id: int, attempts: int, last_error: str):
        self.file_id = file_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"File {file_id} failed after {attempts} attempts: {last_error}"
        )
