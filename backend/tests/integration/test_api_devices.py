"""Integration tests for devices API endpoints."""

from models import PendingAction
from tests.fixtures import create_song, map_song


class TestListDevices:
    """Tests for GET /api/devices."""

    def test_list_empty(self, client):
        response = client.get("/api/devices")
        assert response.status_code == 200
        assert response.json() == []

    def test_list_with_song_counts(self, client, device, song_on_device):
        response = client.get("/api/devices")
        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["name"] == "Phone"
        assert data[0]["songCount"] == 1
        assert data[0]["activeSessionId"] is None


class TestCreateDevice:
    """Tests for POST /api/devices."""

    def test_create(self, client):
        response = client.post(
            "/api/devices",
            json={"name": "Walkman", "icon": "music", "namingTemplate": "{{ artist }}/{{ title }}"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["id"]
        assert data["name"] == "Walkman"
        assert data["namingTemplate"] == "{{ artist }}/{{ title }}"
        assert data["songCount"] == 0

    def test_duplicate(self, client, device):
        response = client.post("/api/devices", json={"name": "Phone"})
        assert response.status_code == 409
        assert response.json()["error"] == "ConflictError"

    def test_invalid_template(self, client):
        response = client.post("/api/devices", json={"name": "Walkman", "namingTemplate": "{{ x"})
        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_missing_name(self, client):
        response = client.post("/api/devices", json={})
        assert response.status_code == 422


class TestGetUpdateDeleteDevice:
    """Tests for GET/PATCH/DELETE /api/devices/{device_id}."""

    def test_get(self, client, device):
        response = client.get(f"/api/devices/{device.id}")
        assert response.status_code == 200
        assert response.json()["color"] == "#3B82F6"

    def test_get_not_found(self, client):
        response = client.get("/api/devices/missing")
        assert response.status_code == 404
        assert "missing" in response.json()["detail"]

    def test_patch_only_sent_fields(self, client, device):
        response = client.patch(f"/api/devices/{device.id}", json={"color": "#000000"})
        assert response.status_code == 200
        data = response.json()
        assert data["color"] == "#000000"
        assert data["icon"] == "phone"

    def test_patch_null_clears(self, client, device):
        response = client.patch(f"/api/devices/{device.id}", json={"icon": None})
        assert response.status_code == 200
        assert response.json()["icon"] is None

    def test_patch_template_snake_case_accepted(self, client, device):
        response = client.patch(f"/api/devices/{device.id}", json={"naming_template": "{{ title }}"})
        assert response.status_code == 200
        assert response.json()["namingTemplate"] == "{{ title }}"

    def test_delete(self, client, device, song_on_device):
        response = client.delete(f"/api/devices/{device.id}")
        assert response.status_code == 204
        assert client.get(f"/api/devices/{device.id}").status_code == 404


class TestDeviceSongs:
    """Tests for the /api/devices/{device_id}/songs endpoints."""

    def test_list_songs(self, client, db, device):
        map_song(db, device, create_song(db, title="B"), path="b.mp3")
        map_song(db, device, create_song(db, title="A"), path="a.mp3", pending_action=PendingAction.DOWNLOAD)
        db.commit()

        response = client.get(f"/api/devices/{device.id}/songs")
        assert response.status_code == 200
        data = response.json()
        assert [s["devicePath"] for s in data] == ["a.mp3", "b.mp3"]
        assert data[0]["pendingAction"] == "Download"
        assert data[1]["pendingAction"] is None

    def test_add_song(self, client, device, song):
        response = client.put(f"/api/devices/{device.id}/songs/{song.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["pendingAction"] == "Download"
        assert data["devicePath"] == "Artist/Album/Song - Artist.mp3"

    def test_add_unknown_song(self, client, device):
        response = client.put(f"/api/devices/{device.id}/songs/missing")
        assert response.status_code == 404

    def test_remove_song(self, client, device, song_on_device):
        response = client.delete(f"/api/devices/{device.id}/songs/{song_on_device.song_id}")
        assert response.status_code == 204

        pending = client.get(f"/api/devices/{device.id}/sync/pending-actions").json()
        assert pending == [
            {"songId": song_on_device.song_id, "path": song_on_device.device_path, "action": "Remove"}
        ]

    def test_request_upload(self, client, device, song_on_device):
        response = client.post(
            f"/api/devices/{device.id}/songs/{song_on_device.song_id}/request-upload"
        )
        assert response.status_code == 200
        assert response.json()["pendingAction"] == "Upload"

    def test_request_upload_not_on_device(self, client, device, song):
        response = client.post(f"/api/devices/{device.id}/songs/{song.id}/request-upload")
        assert response.status_code == 404
