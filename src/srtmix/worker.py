"""Run the merge pipeline in a separate process.

The caller and the worker only exchange messages over a queue: the caller
submits a ``MergeRequest``, the worker sends ``ProgressEvent``s while it runs
and exactly one ``MergeResponse`` at the end. Nothing is shared in memory,
so a long render never blocks the calling process.
"""

import logging
import multiprocessing
import queue
from dataclasses import dataclass, field
from typing import Callable

from srtmix.encoder import DEFAULT_BITRATE_KBPS
from srtmix.errors import ERRORS_BY_NAME, MergeError, WorkerCrashedError
from srtmix.types import ClipSource, MergeConfig, MergeResult, ProcessReport, TimedEntry

logger = logging.getLogger(__name__)


@dataclass
class MergeRequest:
    """Everything a worker needs to render one timeline."""
    entries: list[TimedEntry]
    clips: dict[int, ClipSource]
    config: MergeConfig = field(default_factory=MergeConfig)
    bitrate_kbps: int = DEFAULT_BITRATE_KBPS


@dataclass
class ProgressEvent:
    message: str
    percent: float


@dataclass
class MergeResponse:
    """Final message from a worker: either data or an error."""
    report: ProcessReport | None
    data: bytes | None = None
    error_type: str | None = None
    error_message: str | None = None


def handle_request(request: MergeRequest, events) -> None:
    """Worker body: run the pipeline and post progress and the response to ``events``."""
    from srtmix import process

    def on_progress(message: str, percent: float) -> None:
        events.put(ProgressEvent(message=message, percent=percent))

    try:
        result = process(
            request.entries,
            request.clips,
            config=request.config,
            on_progress=on_progress,
            bitrate_kbps=request.bitrate_kbps,
        )
    except MergeError as e:
        events.put(MergeResponse(
            report=e.report, error_type=type(e).__name__, error_message=str(e),
        ))
    except Exception as e:
        logger.exception("Render worker failed")
        events.put(MergeResponse(
            report=None, error_type="MergeError", error_message=f"Unexpected error: {e}",
        ))
    else:
        events.put(MergeResponse(report=result.report, data=result.data))


def _worker_main(request: MergeRequest, events, log_level: int) -> None:
    logging.basicConfig(level=log_level, format="%(name)s %(levelname)s: %(message)s")
    handle_request(request, events)


def unpack_response(response: MergeResponse) -> MergeResult:
    """Turn a worker response into a result, or raise the error it describes."""
    if response.error_type is not None:
        error_cls = ERRORS_BY_NAME.get(response.error_type, MergeError)
        raise error_cls(response.error_message or response.error_type, response.report)
    return MergeResult(data=response.data, report=response.report)


def run_merge_job(
    request: MergeRequest,
    on_progress: Callable[[str, float], None] | None = None,
    poll_interval: float = 0.5,
) -> MergeResult:
    """Render ``request`` in a child process and wait for its result.

    Progress events are forwarded to ``on_progress`` as they arrive. The
    child is joined, or terminated if it lingers, on every exit path.
    """
    ctx = multiprocessing.get_context("spawn")
    events = ctx.Queue()
    proc = ctx.Process(
        target=_worker_main,
        args=(request, events, logging.getLogger().getEffectiveLevel()),
        daemon=True,
    )
    proc.start()
    logger.debug(f"Started render worker pid={proc.pid}")

    try:
        while True:
            try:
                message = events.get(timeout=poll_interval)
            except queue.Empty:
                if proc.is_alive():
                    continue
                # The child may have exited right after posting its response
                try:
                    message = events.get(timeout=poll_interval)
                except queue.Empty:
                    raise WorkerCrashedError(
                        f"Render worker exited unexpectedly (exit code {proc.exitcode})"
                    ) from None

            if isinstance(message, ProgressEvent):
                if on_progress:
                    on_progress(message.message, message.percent)
            elif isinstance(message, MergeResponse):
                return unpack_response(message)
    finally:
        proc.join(timeout=5)
        if proc.is_alive():
            proc.terminate()
            proc.join()
        events.close()
