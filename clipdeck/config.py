"""Settings — tool locations, data directory and proxy encoding parameters."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path


def default_data_dir() -> Path:
    """Application-local storage: $CLIPDECK_DATA_DIR, else the XDG data home."""
    if os.environ.get("CLIPDECK_DATA_DIR"):
        return Path(os.environ["CLIPDECK_DATA_DIR"])
    xdg = os.environ.get("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / "clipdeck"


@dataclass
class ProxyConfig:
    """Encoding parameters for preview proxies.

    Defaults target Apple VideoToolbox; use e.g. ``hwaccel="cuda"`` with
    ``video_codec="h264_nvenc"`` elsewhere.
    """

    hwaccel: str = "videotoolbox"
    video_codec: str = "h264_videotoolbox"
    bitrate: str = "2M"
    height: int = 720
    audio_codec: str = "aac"
    extension: str = "mp4"


@dataclass
class Settings:
    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    data_dir: Path = field(default_factory=default_data_dir)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)


def load_settings(path: str | Path) -> Settings:
    """Load settings from a JSON file; missing keys keep their defaults."""
    path = Path(path)
    data = json.loads(path.read_text())

    if not isinstance(data, dict):
        raise ValueError("Settings file must contain a JSON object")

    proxy = ProxyConfig(**data["proxy"]) if "proxy" in data else ProxyConfig()
    data_dir = Path(data["data_dir"]).expanduser() if "data_dir" in data else default_data_dir()

    return Settings(
        ffmpeg=data.get("ffmpeg", "ffmpeg"),
        ffprobe=data.get("ffprobe", "ffprobe"),
        data_dir=data_dir,
        proxy=proxy,
    )
