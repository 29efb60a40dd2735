"""Error taxonomy for the merge pipeline.

Every render-aborting condition is a ``MergeError`` subclass so callers can
tell them apart. The partially filled ``ProcessReport`` rides along on the
exception when the pipeline had already created one.
"""


class MergeError(RuntimeError):
    """Base class for failures that abort a render."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report


class InvalidTimelineError(MergeError):
    """The timeline was empty or contained no valid entries."""


class NoMatchingClipsError(MergeError):
    """The timeline had entries but none matched a supplied clip."""


class AllClipsFailedError(MergeError):
    """Every matched clip failed during processing."""


class ZeroDurationError(MergeError):
    """Every processed clip collapsed to zero length."""


class EncoderError(MergeError):
    pass


class EncoderUnavailableError(EncoderError):
    """The ffmpeg runtime could not be found."""


class EncoderInitError(EncoderError):
    """The encoder process could not be started or lacks MP3 support."""


class EncodingError(EncoderError):
    """A frame could not be encoded, or the encoder exited abnormally."""


class WorkerCrashedError(MergeError):
    """The render worker process exited without sending a result."""


ERRORS_BY_NAME = {
    cls.__name__: cls
    for cls in (
        MergeError,
        InvalidTimelineError,
        NoMatchingClipsError,
        AllClipsFailedError,
        ZeroDurationError,
        EncoderError,
        EncoderUnavailableError,
        EncoderInitError,
        EncodingError,
        WorkerCrashedError,
    )
}
