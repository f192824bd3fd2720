import time

from fastapi.testclient import TestClient

from api.main import create_app
from conftest import FakeDetector, FakeSource


def _wait_ready(client, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get("/session/status").json()
        if not body["loading"] or time.monotonic() > deadline:
            return body
        time.sleep(0.01)


def _wait_snapshot(client, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        r = client.get("/session/snapshot")
        if r.status_code == 200 or time.monotonic() > deadline:
            return r
        time.sleep(0.01)


def test_health(make_session):
    with TestClient(create_app(make_session())) as client:
        r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_start_status_snapshot_stop(make_session):
    session = make_session()
    with TestClient(create_app(session)) as client:
        assert _wait_ready(client)["state"] == "ready"
        assert client.get("/session/snapshot").status_code == 404

        r = client.post("/session/start")
        assert r.status_code == 200
        assert r.json()["status"] == "started"
        assert client.post("/session/start").json()["status"] == "already_running"

        body = client.get("/session/status").json()
        assert body["state"] == "active"
        assert body["camera_active"] is True
        assert body["error"] is None

        snap = _wait_snapshot(client)
        assert snap.status_code == 200
        assert snap.headers["content-type"] == "image/jpeg"
        assert snap.content[:2] == b"\xff\xd8"

        assert client.post("/session/stop").json()["status"] == "stopped"
        assert client.post("/session/stop").json()["status"] == "not_running"
        assert client.get("/session/status").json()["state"] == "ready"
        assert client.get("/session/snapshot").status_code == 404

    # lifespan shutdown closed the session
    assert session.tick_handle is None


def test_toggle(make_session):
    with TestClient(create_app(make_session())) as client:
        _wait_ready(client)
        assert client.post("/session/toggle").json()["status"] == "started"
        assert client.post("/session/toggle").json()["status"] == "stopped"


def test_camera_failure_is_409_and_recoverable(make_session):
    attempts = {"n": 0}

    def flaky_source(settings):
        attempts["n"] += 1
        return FakeSource(settings, fail=attempts["n"] == 1)

    with TestClient(create_app(make_session(source_factory=flaky_source))) as client:
        _wait_ready(client)
        r = client.post("/session/start")
        assert r.status_code == 409
        assert r.json()["detail"] == "Failed to access camera"
        body = client.get("/session/status").json()
        assert body["state"] == "ready"
        assert body["error"] == "Failed to access camera"

        assert client.post("/session/start").status_code == 200
        assert client.get("/session/status").json()["error"] is None


def test_model_failure_disables_start(make_session):
    with TestClient(create_app(make_session(detector=FakeDetector(load_error=True)))) as client:
        body = _wait_ready(client)
        assert body["state"] == "error"
        assert body["error"] == "Failed to load face detection model"
        assert client.post("/session/start").status_code == 409
        assert client.post("/session/toggle").status_code == 409
