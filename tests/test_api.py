"""Tests for the HTTP surface: envelopes, operations, history and persistence."""

import pytest

pytestmark = pytest.mark.api

SESSION = "/api/sessions/demo"


def _op(client, **body):
    return client.post(f"{SESSION}/operations", json=body)


def _add(client, source_id: str, **fields) -> dict:
    response = _op(client, operation="add", source_id=source_id, **fields)
    assert response.status_code == 200, response.json()
    return response.json()["data"]["clip"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestSessions:
    """Tests for loading and replacing whole sessions."""

    def test_unknown_session_starts_empty(self, client):
        response = client.get(SESSION)
        assert response.status_code == 200
        body = response.json()
        assert body["request_id"]
        assert body["data"]["session_video"] == []
        assert body["data"]["session_audio"] == []
        assert body["data"]["history"]["can_undo"] is False

    def test_put_valid_session(self, client, store):
        response = client.put(
            SESSION,
            json={
                "session_video": [
                    {"id": "A", "sourceId": "vid-1", "timestamp": 0, "duration": 5},
                    {"id": "B", "sourceId": "vid-2", "timestamp": 5, "duration": 3},
                ],
                "session_audio": [{"id": "l1", "name": "Voice", "muted": False, "clips": []}],
            },
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert [c["id"] for c in data["session_video"]] == ["A", "B"]
        assert data["session_audio"][0]["name"] == "Voice"
        assert store.exists("demo")

        fetched = client.get(SESSION).json()["data"]
        assert fetched["session_video"] == data["session_video"]

    def test_put_overlapping_session_is_rejected(self, client, store):
        response = client.put(
            SESSION,
            json={
                "session_video": [
                    {"id": "A", "timestamp": 0, "duration": 5},
                    {"id": "B", "timestamp": 3, "duration": 5},
                ],
            },
        )
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "OVERLAPPING_CLIPS"
        assert error["details"]["track"] == "video"
        assert error["details"]["violations"][0]["clipId"] == "A"
        assert not store.exists("demo")
        assert client.get(SESSION).json()["data"]["session_video"] == []

    def test_put_legacy_audio_is_migrated(self, client):
        response = client.put(
            SESSION,
            json={
                "session_audio": [
                    {"id": "c1", "audioId": "aud-1", "timestamp": 0, "duration": 2},
                ],
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert "Legacy audio format migrated to layers" in body["meta"]["warnings"]
        layer = body["data"]["session_audio"][0]
        assert layer["id"] == "default"
        assert layer["clips"][0]["sourceId"] == "aud-1"

    def test_put_malformed_layered_audio_is_rejected(self, client, store):
        response = client.put(SESSION, json={"session_audio": [{"clips": [], "name": 3}]})
        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_FIELD_VALUE"
        assert error["location"]["field"] == "session_audio"
        assert not store.exists("demo")

    def test_save_marks_session_clean(self, client, store):
        _add(client, "vid-1")
        assert client.get(f"{SESSION}/history").json()["data"]["is_dirty"] is True

        response = client.post(f"{SESSION}/save")
        assert response.status_code == 200
        assert response.json()["data"]["history"]["is_dirty"] is False
        assert store.load("demo").video_clips[0].source_id == "vid-1"

    def test_meta_echoes_session(self, client):
        assert client.get(SESSION).json()["meta"]["session_id"] == "demo"

    def test_error_location_carries_session(self, client):
        response = _op(client, operation="remove", clip_id="ghost")
        location = response.json()["error"]["location"]
        assert location == {"session_id": "demo", "clip_id": "ghost"}
        assert response.json()["meta"]["session_id"] == "demo"

    def test_invalid_session_id(self, client):
        response = client.get("/api/sessions/bad.id")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_FIELD_VALUE"


class TestOperations:
    """Tests for single edits through the operations endpoint."""

    def test_add_uses_catalog_duration(self, client):
        clip = _add(client, "vid-1")
        assert clip["duration"] == 5
        assert clip["timestamp"] == 0
        assert clip["url"] == "https://cdn/vid-1.mp4"

    def test_add_appends_at_track_end(self, client):
        _add(client, "vid-1")
        clip = _add(client, "vid-2")
        assert clip["timestamp"] == 5

    def test_add_registered_media(self, client):
        response = client.post(
            "/api/media", json={"source_id": "fresh", "kind": "video", "duration": 2.5}
        )
        assert response.status_code == 201
        assert response.json()["data"]["registered"] is True

        clip = _add(client, "fresh")
        assert clip["duration"] == 2.5

    def test_add_unknown_media(self, client):
        response = _op(client, operation="add", source_id="nowhere")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MEDIA_NOT_FOUND"

    def test_add_audio_creates_default_layer(self, client):
        clip = _add(client, "aud-1", track="audio")
        assert clip["depth"] == 0
        audio = client.get(SESSION).json()["data"]["session_audio"]
        assert audio[0]["id"] == "default"
        assert audio[0]["clips"][0]["id"] == clip["id"]

    def test_move(self, client):
        clip = _add(client, "vid-1")
        response = _op(client, operation="move", clip_id=clip["id"], timestamp=12)
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["clip"]["timestamp"] == 12
        assert data["history"]["undo_description"] == "Move video clip"

    def test_move_into_neighbour_is_resolved(self, client):
        first = _add(client, "vid-1")
        second = _add(client, "vid-2")
        response = _op(
            client, operation="move", clip_id=second["id"], timestamp=1, auto_trim=False
        )
        assert response.status_code == 200
        assert response.json()["data"]["clip"]["timestamp"] == 5
        video = client.get(SESSION).json()["data"]["session_video"]
        assert video[0]["id"] == first["id"]
        assert "trimEnd" not in video[0]

    def test_trim(self, client):
        clip = _add(client, "vid-1")
        response = _op(client, operation="trim", clip_id=clip["id"], trim_end=1)
        assert response.status_code == 200
        assert response.json()["data"]["clip"]["trimEnd"] == 1

    def test_trim_below_floor(self, client):
        clip = _add(client, "vid-2")
        response = _op(client, operation="trim", clip_id=clip["id"], trim_start=2, trim_end=0.95)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_DURATION"

    def test_remove_unknown_clip(self, client):
        response = _op(client, operation="remove", clip_id="ghost")
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "CLIP_NOT_FOUND"
        assert error["location"]["clip_id"] == "ghost"
        assert error["retryable"] is True

    def test_missing_field(self, client):
        clip = _add(client, "vid-1")
        response = _op(client, operation="move", clip_id=clip["id"])
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MISSING_REQUIRED_FIELD"

    def test_unknown_operation_is_a_validation_error(self, client):
        response = _op(client, operation="explode")
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_copy_paste_and_delete(self, client):
        clip = _add(client, "vid-1")
        copied = _op(client, operation="copy", video_ids=[clip["id"]]).json()["data"]
        assert copied["count"] == 1

        pasted = _op(client, operation="paste", playhead=20).json()["data"]
        assert pasted["count"] == 1
        assert pasted["clips"][0]["timestamp"] == 20

        deleted = _op(
            client, operation="delete_selection", video_ids=[clip["id"], pasted["clips"][0]["id"]]
        ).json()["data"]
        assert deleted["count"] == 2
        assert client.get(SESSION).json()["data"]["session_video"] == []

    def test_layer_operations(self, client):
        layer = _op(client, operation="add_layer").json()["data"]["layer"]
        assert layer["name"] == "Audio 1"

        renamed = _op(client, operation="rename_layer", layer_id=layer["id"], name=" Music ")
        assert renamed.json()["data"]["layer"]["name"] == "Music"

        muted = _op(client, operation="toggle_layer_mute", layer_id=layer["id"])
        assert muted.json()["data"]["layer"]["muted"] is True

        last = _op(client, operation="remove_layer", layer_id=layer["id"])
        assert last.status_code == 400
        assert last.json()["error"]["code"] == "LAST_LAYER"


class TestHistory:
    """Tests for undo and redo over HTTP."""

    def test_undo_and_redo(self, client):
        _add(client, "vid-1")

        undone = client.post(f"{SESSION}/undo").json()["data"]
        assert undone["applied"] is True
        assert undone["history"]["can_redo"] is True
        assert undone["history"]["redo_description"] == "Add video clip"
        assert client.get(SESSION).json()["data"]["session_video"] == []

        redone = client.post(f"{SESSION}/redo").json()["data"]
        assert redone["applied"] is True
        assert len(client.get(SESSION).json()["data"]["session_video"]) == 1

    def test_empty_history_warns(self, client):
        body = client.post(f"{SESSION}/undo").json()
        assert body["data"]["applied"] is False
        assert body["meta"]["warnings"] == ["Nothing to undo"]

        body = client.post(f"{SESSION}/redo").json()
        assert body["meta"]["warnings"] == ["Nothing to redo"]

    def test_history_counts(self, client):
        _add(client, "vid-1")
        _add(client, "vid-2")
        client.post(f"{SESSION}/undo")

        history = client.get(f"{SESSION}/history").json()["data"]
        assert history["undo_depth"] == 1
        assert history["redo_depth"] == 1
        assert history["total_executed"] == 2


class TestValidate:
    def test_reports_violations(self, client):
        response = client.post(
            f"{SESSION}/validate",
            json={
                "clips": [
                    {"id": "A", "timestamp": 0, "duration": 5},
                    {"id": "B", "timestamp": 3, "duration": 5},
                ]
            },
        )
        data = response.json()["data"]
        assert data["valid"] is False
        assert data["violations"][0] == {"clipId": "A", "overlapsWithId": "B", "start": 3, "end": 5}

    def test_clean_track(self, client):
        response = client.post(
            f"{SESSION}/validate",
            json={"clips": [{"id": "A", "timestamp": 0, "duration": 5}]},
        )
        assert response.json()["data"] == {"valid": True, "violations": []}
