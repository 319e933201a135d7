"""Tests for the proxy cache: key derivation and cache-or-build."""

import hashlib
import os
from pathlib import Path

import pytest

from clipdeck.config import ProxyConfig
from clipdeck.proxy import (
    CACHE_SUBDIR,
    CacheDirUnavailable,
    InputNotFound,
    MetadataReadError,
    OutputMissingAfterSuccess,
    TranscodeFailed,
    build_proxy_args,
    cache_key,
    generate_proxy,
    proxy_cache_dir,
)
from clipdeck.supervisor import SpawnError


def _counting_ffmpeg(make_tool, calls: Path, write_output: bool = True, exit_code: int = 0):
    body = f'open({str(calls)!r}, "a").write("x")\n'
    body += 'sys.stderr.write("encoding\\n")\n'
    if write_output:
        body += 'open(sys.argv[-1], "wb").write(b"proxy")\n'
    body += f"sys.exit({exit_code})\n"
    return make_tool("ffmpeg", body)


def _invocations(calls: Path) -> int:
    return len(calls.read_text()) if calls.exists() else 0


# ---------------------------------------------------------------------------
# key & layout
# ---------------------------------------------------------------------------

class TestCacheKey:
    def test_path_hash_and_mtime(self, video):
        os.utime(video, (1_700_000_000, 1_700_000_000.75))
        digest = hashlib.md5(str(video).encode()).hexdigest()
        assert cache_key(video) == f"{digest}_1700000000"

    def test_changes_with_mtime(self, video):
        os.utime(video, (1_000, 1_000))
        first = cache_key(video)
        os.utime(video, (2_000, 2_000))
        assert cache_key(video) != first

    def test_changes_with_path_even_for_same_bytes(self, tmp_path, video):
        copy = tmp_path / "copy.mp4"
        copy.write_bytes(video.read_bytes())
        os.utime(video, (1_000, 1_000))
        os.utime(copy, (1_000, 1_000))
        assert cache_key(copy) != cache_key(video)

    def test_missing_file(self, tmp_path):
        with pytest.raises(MetadataReadError, match="metadata"):
            cache_key(tmp_path / "gone.mp4")


class TestProxyCacheDir:
    def test_created_under_root(self, tmp_path):
        cache_dir = proxy_cache_dir(tmp_path / "data")
        assert cache_dir == tmp_path / "data" / CACHE_SUBDIR
        assert cache_dir.is_dir()

    def test_unavailable(self, tmp_path):
        not_a_dir = tmp_path / "file"
        not_a_dir.write_text("")
        with pytest.raises(CacheDirUnavailable):
            proxy_cache_dir(not_a_dir)


class TestBuildProxyArgs:
    def test_defaults(self):
        args = build_proxy_args(Path("in.mov"), Path("out.mp4"), ProxyConfig())
        assert args == [
            "-hwaccel", "videotoolbox",
            "-i", "in.mov",
            "-c:v", "h264_videotoolbox",
            "-b:v", "2M",
            "-vf", "scale=-2:720",
            "-c:a", "aac",
            "-y",
            "out.mp4",
        ]

    def test_without_hwaccel(self):
        config = ProxyConfig(hwaccel="", video_codec="libx264", height=480)
        args = build_proxy_args(Path("in.mov"), Path("out.mp4"), config)
        assert "-hwaccel" not in args
        assert args[args.index("-vf") + 1] == "scale=-2:480"


# ---------------------------------------------------------------------------
# generate_proxy
# ---------------------------------------------------------------------------

class TestGenerateProxy:
    @pytest.mark.asyncio
    async def test_second_call_is_a_cache_hit(self, tmp_path, video, make_tool):
        calls = tmp_path / "calls"
        ffmpeg = _counting_ffmpeg(make_tool, calls)

        first = await generate_proxy(video, tmp_path / "data", ffmpeg=ffmpeg)
        second = await generate_proxy(video, tmp_path / "data", ffmpeg=ffmpeg)

        assert first == second
        assert first.read_bytes() == b"proxy"
        assert first.parent == tmp_path / "data" / CACHE_SUBDIR
        assert first.name == f"{cache_key(video)}.mp4"
        assert _invocations(calls) == 1

    @pytest.mark.asyncio
    async def test_touching_input_rebuilds(self, tmp_path, video, make_tool):
        calls = tmp_path / "calls"
        ffmpeg = _counting_ffmpeg(make_tool, calls)
        os.utime(video, (1_000, 1_000))

        first = await generate_proxy(video, tmp_path / "data", ffmpeg=ffmpeg)
        os.utime(video, (5_000, 5_000))
        second = await generate_proxy(video, tmp_path / "data", ffmpeg=ffmpeg)

        assert first != second
        assert first.name.endswith("_1000.mp4")
        assert second.name.endswith("_5000.mp4")
        assert _invocations(calls) == 2

    @pytest.mark.asyncio
    async def test_missing_input_spawns_nothing(self, tmp_path, make_tool):
        calls = tmp_path / "calls"
        ffmpeg = _counting_ffmpeg(make_tool, calls)

        with pytest.raises(InputNotFound, match="not found"):
            await generate_proxy(tmp_path / "nope.mp4", tmp_path / "data", ffmpeg=ffmpeg)
        assert _invocations(calls) == 0

    @pytest.mark.asyncio
    async def test_success_without_output(self, tmp_path, video, make_tool):
        ffmpeg = _counting_ffmpeg(make_tool, tmp_path / "calls", write_output=False)
        with pytest.raises(OutputMissingAfterSuccess):
            await generate_proxy(video, tmp_path / "data", ffmpeg=ffmpeg)

    @pytest.mark.asyncio
    async def test_nonzero_exit_carries_diagnostics(self, tmp_path, video, make_tool):
        ffmpeg = make_tool("ffmpeg", """
        sys.stderr.write("Unknown decoder 'h264_videotoolbox'\\n")
        sys.exit(1)
        """)
        with pytest.raises(TranscodeFailed) as excinfo:
            await generate_proxy(video, tmp_path / "data", ffmpeg=ffmpeg)
        assert excinfo.value.code == 1
        assert excinfo.value.stderr == "Unknown decoder 'h264_videotoolbox'\n"
        assert "Unknown decoder 'h264_videotoolbox'" in str(excinfo.value)
        assert "code: 1" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_missing_ffmpeg(self, tmp_path, video):
        with pytest.raises(SpawnError, match="PATH"):
            await generate_proxy(video, tmp_path / "data", ffmpeg=tmp_path / "no-ffmpeg")

    @pytest.mark.asyncio
    async def test_cache_dir_unavailable(self, tmp_path, video, make_tool):
        blocked = tmp_path / "blocked"
        blocked.write_text("")
        with pytest.raises(CacheDirUnavailable):
            await generate_proxy(video, blocked, ffmpeg=make_tool("ffmpeg", "pass\n"))

    @pytest.mark.asyncio
    async def test_custom_extension(self, tmp_path, video, make_tool):
        ffmpeg = _counting_ffmpeg(make_tool, tmp_path / "calls")
        path = await generate_proxy(
            video, tmp_path / "data", ProxyConfig(extension="mov"), ffmpeg=ffmpeg
        )
        assert path.suffix == ".mov"
