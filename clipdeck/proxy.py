"""Preview proxies — low-resolution renditions cached by source path and mtime.

The cache key is ``md5(path string)_<mtime seconds>``.  It is a weak
fingerprint: moving or renaming a file changes the key even when the bytes are
identical, and rewriting a file while preserving its mtime does not.  Entries
are never evicted and concurrent builders are not locked out; a second build
of the same key overwrites the first with an equivalent file.
"""

import hashlib
import logging
from pathlib import Path

from clipdeck import supervisor
from clipdeck.config import ProxyConfig
from clipdeck.models import ClipDeckError, Success

logger = logging.getLogger(__name__)

CACHE_SUBDIR = "video_previews"


class InputNotFound(ClipDeckError):
    pass


class CacheDirUnavailable(ClipDeckError):
    pass


class MetadataReadError(ClipDeckError):
    pass


class TranscodeFailed(ClipDeckError):
    """ffmpeg ran but reported failure; carries its decoded output verbatim."""

    def __init__(self, code: int | None, stderr: str, stdout: str = ""):
        self.code = code
        self.stderr = stderr
        self.stdout = stdout
        super().__init__(f"FFmpeg failed (code: {code})\nStderr: {stderr}\nStdout: {stdout}")


class OutputMissingAfterSuccess(ClipDeckError):
    pass


def proxy_cache_dir(cache_root: Path) -> Path:
    """Create (if needed) and return the proxy cache directory under *cache_root*."""
    cache_dir = Path(cache_root) / CACHE_SUBDIR
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheDirUnavailable(f"Cannot create cache dir {cache_dir}: {e}") from e
    return cache_dir


def cache_key(input_path: str | Path) -> str:
    """Derive the cache key for *input_path* from its path string and mtime."""
    try:
        mtime = Path(input_path).stat().st_mtime
    except OSError as e:
        raise MetadataReadError(f"Cannot read file metadata: {e}") from e
    digest = hashlib.md5(str(input_path).encode()).hexdigest()
    return f"{digest}_{int(mtime)}"


def build_proxy_args(input_path: Path, output_path: Path, config: ProxyConfig) -> list[str]:
    args: list[str] = []
    if config.hwaccel:
        args += ["-hwaccel", config.hwaccel]
    args += [
        "-i", str(input_path),
        "-c:v", config.video_codec,
        "-b:v", config.bitrate,
        # -2 keeps the aspect ratio with an even width
        "-vf", f"scale=-2:{config.height}",
        "-c:a", config.audio_codec,
        "-y",
        str(output_path),
    ]
    return args


async def generate_proxy(
    input_path: str | Path,
    cache_root: Path,
    config: ProxyConfig | None = None,
    ffmpeg: str | Path = "ffmpeg",
) -> Path:
    """Return a cached proxy for *input_path*, building it first on a miss.

    Blocks (awaits) until ffmpeg exits when a build is needed.
    """
    config = config or ProxyConfig()
    input_path = Path(input_path)

    if not input_path.exists():
        raise InputNotFound(f"Input file not found: {input_path}")

    cache_dir = proxy_cache_dir(cache_root)
    output_path = cache_dir / f"{cache_key(input_path)}.{config.extension}"

    if output_path.exists():
        logger.info("Using existing proxy: %s", output_path)
        return output_path

    logger.info("Building proxy for %s -> %s", input_path, output_path)
    try:
        result = await supervisor.run(ffmpeg, build_proxy_args(input_path, output_path, config))
    except supervisor.SpawnError as e:
        raise supervisor.SpawnError(f"{e}. Is FFmpeg installed and in PATH?") from e

    if not isinstance(result.outcome, Success):
        logger.warning("Proxy build failed for %s: %s", input_path, result.outcome)
        raise TranscodeFailed(result.returncode, result.raw_stderr, result.raw_stdout)

    if not output_path.exists():
        raise OutputMissingAfterSuccess(
            f"FFmpeg reported success but output file not found: {output_path}"
        )

    return output_path
