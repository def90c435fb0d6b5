"""Tests for session persistence and legacy audio migration."""

import json

import pytest
from conftest import make_clip

from timeline_core.exceptions import (
    InvalidFieldValueError,
    OverlappingClipsError,
    SessionNotFoundError,
    StorageError,
)
from timeline_core.schemas.session import LayeredAudioTrack, LegacyAudioTrack, read_audio_track
from timeline_core.schemas.timeline import AudioLayer, TimelineSnapshot
from timeline_core.services.session_store import migrate_legacy_audio


def _snapshot() -> TimelineSnapshot:
    return TimelineSnapshot(
        video_clips=[make_clip("A", 0, 5, trim_end=1), make_clip("B", 4, 5)],
        audio_layers=[
            AudioLayer(id="l1", name="Voice", muted=True, clips=[make_clip("a1", 0, 4, depth=1)])
        ],
    )


class TestReadAudioTrack:
    """Tests for format detection at the load boundary."""

    def test_layered(self):
        track = read_audio_track([{"id": "l1", "name": "Voice", "muted": False, "clips": []}])
        assert isinstance(track, LayeredAudioTrack)
        assert track.layers[0].name == "Voice"

    def test_legacy(self):
        track = read_audio_track([{"id": "c1", "audioId": "aud", "timestamp": 1, "duration": 2}])
        assert isinstance(track, LegacyAudioTrack)
        assert track.clips[0].audio_id == "aud"

    def test_empty_is_layered(self):
        assert read_audio_track([]) == LayeredAudioTrack()


class TestMigrateLegacyAudio:
    """Tests for legacy flat audio migration."""

    def test_moves_clips_into_default_layer(self):
        track = LegacyAudioTrack(
            clips=[
                {"id": "c1", "audioId": "aud-1", "timestamp": 0, "duration": 2, "trimEnd": 0.5},
                {"id": "c2", "audioId": "aud-2", "timestamp": 3, "duration": 1},
            ]
        )
        layer = migrate_legacy_audio(track)
        assert (layer.id, layer.name, layer.muted) == ("default", "Audio 1", False)
        assert [(c.id, c.source_id) for c in layer.clips] == [("c1", "aud-1"), ("c2", "aud-2")]
        assert layer.clips[0].trim_end == 0.5

    def test_duplicate_ids_are_regenerated(self):
        track = LegacyAudioTrack(
            clips=[
                {"id": "dup", "audioId": "aud-1", "timestamp": 0, "duration": 1},
                {"id": "dup", "audioId": "aud-1", "timestamp": 2, "duration": 1},
            ]
        )
        clips = migrate_legacy_audio(track).clips
        assert clips[0].id == "dup"
        assert clips[1].id != "dup"
        assert clips[1].source_id == "aud-1"

    def test_clip_without_source_gets_fresh_id(self):
        track = LegacyAudioTrack(clips=[{"id": "aud-9", "timestamp": 0, "duration": 1}])
        clip = migrate_legacy_audio(track).clips[0]
        assert clip.source_id == "aud-9"
        assert clip.id != "aud-9"


class TestLocalSessionStore:
    """Tests for the JSON file store."""

    def test_save_and_load(self, store):
        snapshot = _snapshot()
        store.save("s1", snapshot)

        assert store.exists("s1")
        assert store.load("s1") == snapshot

    def test_stored_document_uses_contract_names(self, store):
        store.save("s1", _snapshot())
        document = json.loads((store.base_path / "s1.json").read_text())
        assert set(document) == {"session_video", "session_audio", "saved_at"}
        assert document["session_video"][0]["trimEnd"] == 1
        assert document["session_audio"][0]["clips"][0]["depth"] == 1

    def test_overlap_rejects_and_keeps_previous_file(self, store):
        store.save("s1", _snapshot())
        broken = _snapshot()
        broken.video_clips[1].timestamp = 2

        with pytest.raises(OverlappingClipsError) as exc_info:
            store.save("s1", broken)
        assert exc_info.value.details["track"] == "video"
        assert store.load("s1").video_clips[1].timestamp == 4

    def test_audio_overlap_rejected(self, store):
        snapshot = _snapshot()
        snapshot.audio_layers[0].clips.append(make_clip("a2", 1, 2, depth=1))
        with pytest.raises(OverlappingClipsError) as exc_info:
            store.save("s1", snapshot)
        assert exc_info.value.track == "audio-layer-l1"
        assert not store.exists("s1")

    def test_loads_legacy_document(self, store):
        store.base_path.mkdir(parents=True)
        (store.base_path / "old.json").write_text(
            json.dumps(
                {
                    "session_video": [{"id": "v", "timestamp": 0, "duration": 3}],
                    "session_audio": [
                        {"id": "x", "audioId": "aud", "url": "u", "timestamp": 0, "duration": 2},
                        {"id": "x", "audioId": "aud", "url": "u", "timestamp": 2, "duration": 2},
                    ],
                }
            )
        )
        snapshot = store.load("old")
        assert len(snapshot.audio_layers) == 1
        ids = [c.id for c in snapshot.audio_layers[0].clips]
        assert len(set(ids)) == 2

    def test_missing_session(self, store):
        with pytest.raises(SessionNotFoundError):
            store.load("nothing-here")

    def test_corrupt_document(self, store):
        store.base_path.mkdir(parents=True)
        (store.base_path / "bad.json").write_text("{not json")
        with pytest.raises(StorageError):
            store.load("bad")

    def test_malformed_layered_audio(self, store):
        store.base_path.mkdir(parents=True)
        (store.base_path / "bad.json").write_text(
            json.dumps({"session_video": [], "session_audio": [{"clips": [], "name": 3}]})
        )
        with pytest.raises(StorageError):
            store.load("bad")

    @pytest.mark.parametrize("session_id", ["../etc", "a/b", ""])
    def test_rejects_unsafe_ids(self, store, session_id):
        with pytest.raises(InvalidFieldValueError):
            store.exists(session_id)
