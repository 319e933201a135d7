"""Clip exporter — trims and crops a source video with a single ffmpeg run."""

import asyncio
import logging
from pathlib import Path

from clipdeck import supervisor
from clipdeck.models import ExportRequest, ProcessResult
from clipdeck.sinks import NotificationSink

logger = logging.getLogger(__name__)

STARTED = "Processing started"

# Supervising tasks outlive the call that started them; hold a reference
# until each one finishes.
_background: set[asyncio.Task] = set()


def build_export_args(request: ExportRequest) -> list[str]:
    """Build the ffmpeg argument list for *request*.

    Times use ``repr`` so they keep full float precision.
    """
    return [
        "-i", str(request.input_path),
        "-ss", repr(float(request.selection.start)),
        "-to", repr(float(request.selection.end)),
        "-filter:v", request.crop.filter,
        "-c:a", "copy",
        "-y",
        str(request.output_path),
    ]


async def export_clip(
    request: ExportRequest,
    sink: NotificationSink,
    ffmpeg: str | Path = "ffmpeg",
) -> str:
    """Start an export and return as soon as ffmpeg is running.

    Progress and the final success/failure are reported only through *sink*.
    Raises :class:`~clipdeck.supervisor.SpawnError` if ffmpeg cannot start.
    """
    logger.info(
        "Exporting %s [%s-%s] -> %s",
        request.input_path, request.selection.start, request.selection.end, request.output_path,
    )
    process = await supervisor.spawn(ffmpeg, build_export_args(request))

    task = asyncio.create_task(supervisor.supervise(process, sink))
    _background.add(task)
    task.add_done_callback(_background.discard)
    return STARTED


async def run_export(
    request: ExportRequest,
    sink: NotificationSink | None = None,
    ffmpeg: str | Path = "ffmpeg",
) -> ProcessResult:
    """Blocking variant of :func:`export_clip` that waits for ffmpeg to exit."""
    return await supervisor.run(ffmpeg, build_export_args(request), sink)
