"""JSON API routes for SourcePrint."""

import logging
import threading
import uuid

from flask import Blueprint, jsonify, request

from sourceprint.engine import process
from sourceprint.manifest import manifest_from_dict
from sourceprint.report import linking_to_dict, plan_to_dict
from sourceprint.timecode import TimecodeEngine

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

# In-memory job store: job_id -> job dict
_jobs: dict[str, dict] = {}
# job_id -> worker thread running the plan
_workers: dict[str, threading.Thread] = {}


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _result_to_dict(result) -> dict:
    return {
        "linking": linking_to_dict(result.linking),
        "plans": {pp.parent.ocf.file_name: plan_to_dict(pp.plan) for pp in result.plans},
        "skipped_parents": result.skipped_parents,
    }


@bp.route("/api/health")
def health():
    return jsonify({"status": "ok"})


@bp.route("/api/timecode", methods=["POST"])
def timecode():
    """Convert ``{"timecode": ...}`` to frames or ``{"frames": ...}`` to a timecode."""
    data = _json_body()
    engine = TimecodeEngine(data.get("frame_rate", 24), drop_frame=bool(data.get("drop_frame")))
    if "frames" in data:
        frames = int(data["frames"])
        return jsonify({"frames": frames, "timecode": engine.timecode_from_frames(frames)})
    if "timecode" in data:
        tc = data["timecode"]
        return jsonify({"timecode": tc, "frames": engine.frames_from_timecode(tc)})
    return jsonify({"error": "Provide 'timecode' or 'frames'"}), 400


@bp.route("/api/link", methods=["POST"])
def link():
    manifest = manifest_from_dict(_json_body())
    manifest.analysis.enabled = False
    result = process(manifest)
    return jsonify(linking_to_dict(result.linking))


@bp.route("/api/plan", methods=["POST"])
def plan():
    manifest = manifest_from_dict(_json_body())
    return jsonify(_result_to_dict(process(manifest)))


@bp.route("/api/jobs", methods=["POST"])
def start_job():
    """Plan a manifest in the background; poll ``/api/jobs/<id>`` for the outcome."""
    manifest = manifest_from_dict(_json_body())

    job_id = uuid.uuid4().hex[:12]
    job = {
        "status": "processing",
        "stage": "Queued",
        "progress": 0.0,
        "parents_planned": 0,
        "parents_total": None,
    }
    _jobs[job_id] = job

    def on_progress(stage: str, frac: float) -> None:
        job["stage"] = stage
        job["progress"] = round(frac, 3)

    def run():
        try:
            result = process(manifest, on_progress=on_progress)
        except Exception as e:
            logger.exception("Job %s failed", job_id)
            job["status"] = "error"
            job["error"] = str(e)
            return
        job["parents_planned"] = len(result.plans)
        job["parents_total"] = len(result.plans) + len(result.skipped_parents)
        job["result"] = _result_to_dict(result)
        job["status"] = "done"

    worker = threading.Thread(target=run, daemon=True)
    _workers[job_id] = worker
    worker.start()
    return jsonify({"job_id": job_id, "status": job["status"]}), 202


@bp.route("/api/jobs/<job_id>")
def job_status(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(dict(job))
