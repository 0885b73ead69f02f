"""Tests for the HTTP surface: pages, static files and /save-gesture."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

from api.server import create_app


@pytest.fixture
def site(tmp_path):
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "index.html").write_text("<h1>index</h1>", encoding="utf-8")
    (templates / "pose_detection.html").write_text("<h1>pose</h1>", encoding="utf-8")
    public = tmp_path / "public" / "json"
    public.mkdir(parents=True)
    (public / "gesture_map.json").write_text('{"Victory": "Victory"}', encoding="utf-8")
    settings = {
        "templates_dir": str(templates),
        "public_dir": str(tmp_path / "public"),
        "gesture_log_dir": str(tmp_path / "logs"),
        "gesture_log_file": "gestures.log",
    }
    return tmp_path, settings


@pytest.fixture
def client(site):
    _, settings = site
    return TestClient(create_app(settings))


def _log_lines(site):
    tmp_path, _ = site
    path = tmp_path / "logs" / "gestures.log"
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()


class TestPages:
    """Test suite for page and static routes."""

    def test_root_serves_index(self, client):
        """Test that / returns the index template."""
        resp = client.get("/")
        assert resp.status_code == 200
        assert "index" in resp.text

    def test_named_page(self, client):
        """Test that /<page> serves <page>.html."""
        resp = client.get("/pose_detection")
        assert resp.status_code == 200
        assert "pose" in resp.text

    @pytest.mark.parametrize(
        "page", ["full_detection", "hand_face_detection", "pose_detection", "image_segmentation"]
    )
    def test_shipped_pages(self, page, tmp_path):
        """Test that every demo page ships with the project templates."""
        app = create_app({"templates_dir": "templates", "gesture_log_dir": str(tmp_path)})
        resp = TestClient(app).get(f"/{page}")
        assert resp.status_code == 200
        assert "main.py detect --mode" in resp.text

    def test_missing_page_is_not_found(self, client):
        """Test that an unknown page is a 404, not a server error."""
        resp = client.get("/nonexistent")
        assert resp.status_code == 404

    def test_static_files(self, client):
        """Test that files under /public are served."""
        resp = client.get("/public/json/gesture_map.json")
        assert resp.status_code == 200
        assert resp.json() == {"Victory": "Victory"}


class TestSaveGesture:
    """Test suite for POST /save-gesture."""

    def test_valid_gesture_logged(self, client, site):
        """Test the happy path response and log line."""
        resp = client.post("/save-gesture", json={"gesture": "thumbs_up"})

        assert resp.status_code == 200
        assert resp.json() == {"message": 'Gesture "thumbs_up" received and logged.'}
        lines = _log_lines(site)
        assert len(lines) == 1
        assert lines[0].endswith(" - thumbs_up")

    def test_empty_gesture_rejected(self, client, site):
        """Test that an empty gesture is a 400 and nothing is written."""
        resp = client.post("/save-gesture", json={"gesture": ""})

        assert resp.status_code == 400
        assert resp.json()["errors"]
        assert _log_lines(site) == []

    def test_missing_gesture_rejected(self, client, site):
        """Test that a body without a gesture is a 400."""
        resp = client.post("/save-gesture", json={})
        assert resp.status_code == 400
        assert resp.json()["errors"][0]["path"] == "gesture"
        assert _log_lines(site) == []

    def test_numeric_gesture_rejected(self, client, site):
        """Test that a number is a 400 rather than being logged as text."""
        resp = client.post("/save-gesture", json={"gesture": 12})
        assert resp.status_code == 400
        error = resp.json()["errors"][0]
        assert error["path"] == "gesture"
        assert error["value"] == 12
        assert _log_lines(site) == []

    def test_malformed_json_rejected(self, client, site):
        """Test that an unparseable body is treated as a missing field."""
        resp = client.post(
            "/save-gesture",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert _log_lines(site) == []

    def test_markup_is_escaped_in_log(self, client, site):
        """Test that raw markup never reaches the log file."""
        resp = client.post("/save-gesture", json={"gesture": "<script>"})

        assert resp.status_code == 200
        lines = _log_lines(site)
        assert lines[0].endswith(" - &lt;script&gt;")
        assert "<script>" not in lines[0]

    def test_write_failure_returns_500(self, tmp_path):
        """Test that an append error becomes a 500 without crashing the app."""
        blocker = tmp_path / "logs"
        blocker.write_text("not a directory")
        app = create_app({"gesture_log_dir": str(blocker / "inner"), "templates_dir": str(tmp_path)})
        client = TestClient(app)

        resp = client.post("/save-gesture", json={"gesture": "Victory"})

        assert resp.status_code == 500
        assert resp.json() == {"message": "Internal Server Error"}
        assert client.post("/save-gesture", json={"gesture": ""}).status_code == 400

    def test_concurrent_posts(self, client, site):
        """Test that two concurrent reports produce two complete lines."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(client.post, "/save-gesture", json={"gesture": name})
                for name in ("Open_Palm", "Closed_Fist")
            ]
            statuses = [f.result().status_code for f in futures]

        assert statuses == [200, 200]
        lines = _log_lines(site)
        assert sorted(line.split(" - ", 1)[1] for line in lines) == ["Closed_Fist", "Open_Palm"]
