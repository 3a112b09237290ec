"""Tests for upload proxying and local file serving."""

from guard_training.models.models import FileObject


class TestUploads:
    """Tests for /api/uploads and /files/local."""

    def test_upload_proxy_round_trip(self, client, db_session, admin_headers):
        files = {"file": ("교육 슬라이드.png", b"\x89PNG fake image", "image/png")}
        response = client.post("/api/uploads", files=files, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["key"].endswith(".png")
        assert data["objectPath"].startswith("http://localhost:8000/files/local/")

        fo = db_session.query(FileObject).one()
        assert fo.provider == "local"
        assert fo.size_bytes == len(b"\x89PNG fake image")

        served = client.get("/files/local/" + data["key"].lstrip("/"))
        assert served.status_code == 200
        assert served.content == b"\x89PNG fake image"

    def test_empty_upload(self, client, admin_headers):
        files = {"file": ("empty.png", b"", "image/png")}
        assert client.post("/api/uploads", files=files, headers=admin_headers).status_code == 400

    def test_guard_cannot_upload(self, client, guard_headers):
        files = {"file": ("a.png", b"data", "image/png")}
        assert client.post("/api/uploads", files=files, headers=guard_headers).status_code == 403

    def test_request_upload_url(self, client, admin_headers):
        response = client.post(
            "/api/uploads/request-url",
            json={"name": "narration.mp3", "size": 1024, "contentType": "audio/mpeg"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"uploadURL", "objectPath", "key"}
        assert data["key"].endswith(".mp3")

    def test_missing_local_file(self, client):
        assert client.get("/files/local/materials/nothing.png").status_code == 404

    def test_path_traversal_is_contained(self, client):
        assert client.get("/files/local/../../etc/passwd").status_code == 404
