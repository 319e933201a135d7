"""ffmpeg/ffprobe helpers."""

import logging
import shutil
from pathlib import Path

from clipdeck import supervisor
from clipdeck.models import ClipDeckError, Success

logger = logging.getLogger(__name__)


class FFmpegNotFoundError(ClipDeckError):
    pass


class CodecProbeError(ClipDeckError):
    """Raised when ffprobe cannot be started or exits non-zero."""
    pass


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


async def get_video_codec(input_path: str | Path, ffprobe: str | Path = "ffprobe") -> str:
    """Return the codec name of the first video stream, e.g. ``"h264"``.

    Empty probe output comes back as ``""`` rather than an error.
    """
    args = [
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=codec_name",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(input_path),
    ]
    try:
        result = await supervisor.run(ffprobe, args)
    except supervisor.SpawnError as e:
        raise CodecProbeError(str(e)) from e

    if not isinstance(result.outcome, Success):
        raise CodecProbeError(
            f"ffprobe failed (code: {result.returncode}): {result.raw_stderr}"
        )

    codec = result.raw_stdout.strip()
    logger.debug("Codec of %s: %r", input_path, codec)
    return codec
