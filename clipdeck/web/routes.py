"""Web API routes for ClipDeck."""

import json
import logging
import queue
import uuid

from flask import Blueprint, Response, current_app, jsonify, request

from clipdeck import exporter, ffutil, proxy
from clipdeck.models import ClipDeckError, ExportRequest
from clipdeck.sinks import QueueSink
from clipdeck.supervisor import SpawnError

logger = logging.getLogger(__name__)

bp = Blueprint("api", __name__, url_prefix="/api")

# In-memory job store: job_id -> QueueSink
_jobs: dict[str, QueueSink] = {}


def _settings():
    return current_app.config["SETTINGS"]


def _loop():
    return current_app.extensions["clipdeck.loop"]


@bp.route("/health")
def health():
    settings = _settings()
    try:
        ffutil.check_ffmpeg(settings.ffmpeg, settings.ffprobe)
    except ffutil.FFmpegNotFoundError as e:
        return jsonify({"ffmpeg": False, "error": str(e)})
    return jsonify({"ffmpeg": True})


@bp.route("/export", methods=["POST"])
def start_export():
    try:
        req = ExportRequest.from_dict(request.get_json() or {})
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({"error": f"Invalid export request: {e}"}), 400

    sink = QueueSink()
    try:
        status = _loop().run(exporter.export_clip(req, sink, ffmpeg=_settings().ffmpeg))
    except SpawnError as e:
        logger.error("Export of %s could not start: %s", req.input_path, e)
        return jsonify({"error": str(e)}), 500

    job_id = uuid.uuid4().hex[:12]
    _jobs[job_id] = sink
    logger.info("Export job %s started for %s", job_id, req.input_path)
    return jsonify({"job_id": job_id, "status": status})


@bp.route("/jobs/<job_id>/events")
def job_events(job_id: str):
    sink = _jobs.get(job_id)
    if sink is None:
        return jsonify({"error": "Job not found"}), 404

    def generate():
        while True:
            try:
                msg = sink.queue.get(timeout=120)
            except queue.Empty:
                # keep-alive comment; the export itself has no timeout
                yield ": waiting\n\n"
                continue
            if msg is None:
                _jobs.pop(job_id, None)
                break
            yield f"event: {msg['event']}\ndata: {json.dumps(msg['payload'])}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/proxy", methods=["POST"])
def make_proxy():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("input_path"), str):
        return jsonify({"error": "Body must be an object with a string 'input_path'"}), 400

    settings = _settings()
    try:
        path = _loop().run(
            proxy.generate_proxy(
                data["input_path"],
                settings.data_dir,
                settings.proxy,
                ffmpeg=settings.ffmpeg,
            )
        )
    except proxy.InputNotFound as e:
        return jsonify({"error": str(e)}), 404
    except ClipDeckError as e:
        logger.error("Proxy build failed for %s: %s", data["input_path"], e)
        return jsonify({"error": str(e)}), 500
    return jsonify({"proxy_path": str(path)})


@bp.route("/codec")
def codec():
    path = request.args.get("path")
    if not path:
        return jsonify({"error": "Missing 'path' query parameter"}), 400
    try:
        name = _loop().run(ffutil.get_video_codec(path, ffprobe=_settings().ffprobe))
    except ffutil.CodecProbeError as e:
        logger.error("Codec probe failed for %s: %s", path, e)
        return jsonify({"error": str(e)}), 500
    return jsonify({"codec": name})
