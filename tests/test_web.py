"""Unit tests for the SourcePrint JSON API."""

from unittest.mock import patch

import pytest

from sourceprint.web import create_app, routes


@pytest.fixture
def app():
    app = create_app()
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


class TestHealth:
    def test_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok"}


class TestTimecode:
    def test_timecode_to_frames(self, client):
        resp = client.post("/api/timecode", json={"timecode": "01:00:00:00", "frame_rate": 24})
        assert resp.status_code == 200
        assert resp.get_json()["frames"] == 86400

    def test_frames_to_drop_frame_timecode(self, client):
        resp = client.post(
            "/api/timecode",
            json={"frames": 1800, "frame_rate": "30000/1001", "drop_frame": True},
        )
        assert resp.get_json()["timecode"] == "00:01:00;02"

    def test_invalid_timecode(self, client):
        resp = client.post("/api/timecode", json={"timecode": "01:00:00:99"})
        assert resp.status_code == 400
        assert "out of range" in resp.get_json()["error"]

    def test_invalid_rate(self, client):
        resp = client.post("/api/timecode", json={"frames": 10, "frame_rate": "24/0"})
        assert resp.status_code == 400

    def test_nothing_to_convert(self, client):
        resp = client.post("/api/timecode", json={"frame_rate": 24})
        assert resp.status_code == 400

    def test_not_json(self, client):
        resp = client.post("/api/timecode", data="nope", content_type="text/plain")
        assert resp.status_code == 400


class TestLink:
    def test_sample(self, client, sample_manifest_data):
        resp = client.post("/api/link", json=sample_manifest_data)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["unmatched_segments"] == ["Unknown_clip.mov"]
        assert len(data["parents"][0]["children"]) == 2
        assert "plans" not in data

    def test_missing_fields(self, client):
        resp = client.post("/api/link", json={"version": "1"})
        assert resp.status_code == 400
        assert "must contain" in resp.get_json()["error"]


class TestPlan:
    def test_sample(self, client, sample_manifest_data):
        resp = client.post("/api/plan", json=sample_manifest_data)
        assert resp.status_code == 200
        data = resp.get_json()
        plan = data["plans"]["A001C001.mov"]
        assert [r["segment_start_offset"] for r in plan["ranges"]] == [0, 0, 168]
        assert data["skipped_parents"] == {}


class TestJobs:
    @staticmethod
    def _wait(job_id: str) -> None:
        routes._workers[job_id].join(timeout=10)

    def test_unknown_job(self, client):
        assert client.get("/api/jobs/nonexistent").status_code == 404

    def test_job_runs_to_completion(self, client, sample_manifest_data):
        resp = client.post("/api/jobs", json=sample_manifest_data)
        assert resp.status_code == 202
        job_id = resp.get_json()["job_id"]
        self._wait(job_id)

        status = client.get(f"/api/jobs/{job_id}").get_json()
        assert status["status"] == "done"
        assert status["stage"] == "Done"
        assert status["progress"] == 1.0
        assert status["parents_planned"] == 1
        assert "A001C001.mov" in status["result"]["plans"]

    @patch("sourceprint.web.routes.process", side_effect=RuntimeError("boom"))
    def test_job_error(self, mock_process, client, sample_manifest_data):
        job_id = client.post("/api/jobs", json=sample_manifest_data).get_json()["job_id"]
        self._wait(job_id)

        status = client.get(f"/api/jobs/{job_id}").get_json()
        assert status["status"] == "error"
        assert status["error"] == "boom"
        assert "result" not in status

    def test_invalid_manifest_rejected_up_front(self, client):
        resp = client.post("/api/jobs", json={"parents": []})
        assert resp.status_code == 400
