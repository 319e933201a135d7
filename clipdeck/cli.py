"""Thin CLI entry point — builds requests and calls the core."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from clipdeck import exporter, ffutil, proxy
from clipdeck.config import Settings, load_settings
from clipdeck.models import ClipDeckError, ClipSelection, CropArea, ExportRequest
from clipdeck.sinks import PROGRESS, CallbackSink


def parse_crop(value: str) -> CropArea:
    """Parse ``W:H:X:Y`` (the ffmpeg crop order) into a CropArea."""
    try:
        width, height, x, y = (int(p) for p in value.split(":"))
        return CropArea(x=x, y=y, width=width, height=height)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid crop '{value}': expected W:H:X:Y") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipdeck",
        description="ClipDeck — trim/crop export and cached preview proxies via ffmpeg.",
    )
    parser.add_argument("--config", "-c", type=Path, help="Path to a JSON settings file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    exp = sub.add_parser("export", help="Export a trimmed and cropped clip")
    exp.add_argument("video", type=Path, help="Input video file")
    exp.add_argument("--output", "-o", type=Path, help="Output file path")
    exp.add_argument("--start", type=float, required=True, help="Start time (seconds)")
    exp.add_argument("--end", type=float, required=True, help="End time (seconds)")
    exp.add_argument("--crop", type=parse_crop, required=True, help="Crop rectangle as W:H:X:Y")

    prx = sub.add_parser("proxy", help="Build (or reuse) a low-resolution preview proxy")
    prx.add_argument("video", type=Path, help="Input video file")

    cod = sub.add_parser("codec", help="Print the codec of the first video stream")
    cod.add_argument("video", type=Path, help="Input video file")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def _export(args: argparse.Namespace, settings: Settings) -> int:
    output = args.output or args.video.with_stem(args.video.stem + "_clip")
    try:
        req = ExportRequest(
            input_path=args.video,
            output_path=output,
            selection=ClipSelection(start=args.start, end=args.end),
            crop=args.crop,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    def on_event(event: str, payload: str) -> None:
        if event == PROGRESS:
            print(f"  {payload}")
        else:
            print(payload)

    result = asyncio.run(
        exporter.run_export(req, CallbackSink(on_event), ffmpeg=settings.ffmpeg)
    )
    if not result.outcome.ok:
        return 1
    print(f"Output: {output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = load_settings(args.config) if args.config else Settings()
    except (OSError, ValueError, TypeError) as e:
        print(f"Error: invalid settings file {args.config}: {e}", file=sys.stderr)
        return 1

    if args.command == "serve":
        from clipdeck.web import create_app
        app = create_app(settings)
        print(f"ClipDeck web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return 0

    try:
        ffutil.check_ffmpeg(settings.ffmpeg, settings.ffprobe)
        if args.command == "export":
            return _export(args, settings)
        if args.command == "proxy":
            path = asyncio.run(
                proxy.generate_proxy(args.video, settings.data_dir, settings.proxy, ffmpeg=settings.ffmpeg)
            )
            print(path)
        elif args.command == "codec":
            print(asyncio.run(ffutil.get_video_codec(args.video, ffprobe=settings.ffprobe)))
    except ClipDeckError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
