"""
Pytest fixtures for timeline core tests.

Clips are built with ``make_clip``; editors get a fresh timeline, history
and in-memory media catalog per test. The HTTP client swaps the editor
registry for one backed by ``tmp_path``.
"""

import pytest

from timeline_core.schemas.timeline import AudioLayer, Clip
from timeline_core.services.editor import TimelineEditor
from timeline_core.services.history import History
from timeline_core.services.media_catalog import InMemoryMediaCatalog, MediaInfo
from timeline_core.services.session_store import LocalSessionStore
from timeline_core.services.timeline import Timeline


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "api: tests that go through the FastAPI app")


def make_clip(
    clip_id: str,
    timestamp: float,
    duration: float,
    *,
    trim_start: float | None = None,
    trim_end: float | None = None,
    depth: int | None = None,
    source_id: str | None = None,
    muted: bool | None = None,
) -> Clip:
    return Clip(
        id=clip_id,
        source_id=source_id or f"src-{clip_id}",
        timestamp=timestamp,
        duration=duration,
        trim_start=trim_start,
        trim_end=trim_end,
        depth=depth,
        muted=muted,
    )


@pytest.fixture
def catalog() -> InMemoryMediaCatalog:
    return InMemoryMediaCatalog(
        [
            MediaInfo(source_id="vid-1", kind="video", duration=5.0, url="https://cdn/vid-1.mp4"),
            MediaInfo(source_id="vid-2", kind="video", duration=3.0, url="https://cdn/vid-2.mp4"),
            MediaInfo(
                source_id="vid-talk",
                kind="video",
                duration=4.0,
                url="https://cdn/talk.mp4",
                linked_audio=MediaInfo(
                    source_id="aud-talk", kind="audio", duration=4.0, url="https://cdn/talk.mp3"
                ),
            ),
            MediaInfo(source_id="aud-1", kind="audio", duration=6.0, url="https://cdn/aud-1.mp3"),
            MediaInfo(source_id="aud-2", kind="audio", duration=2.0, url="https://cdn/aud-2.mp3"),
        ]
    )


@pytest.fixture
def timeline() -> Timeline:
    """Video A 0-5, B 5-10 and one audio layer with a clip at 0-4."""
    return Timeline(
        video_clips=[make_clip("A", 0, 5), make_clip("B", 5, 5)],
        audio_layers=[
            AudioLayer(id="layer-1", name="Audio 1", clips=[make_clip("a1", 0, 4)]),
        ],
    )


@pytest.fixture
def history() -> History:
    return History(capacity=100)


@pytest.fixture
def editor(timeline: Timeline, history: History, catalog: InMemoryMediaCatalog) -> TimelineEditor:
    return TimelineEditor(timeline=timeline, history=history, media_catalog=catalog)


@pytest.fixture
def empty_editor(catalog: InMemoryMediaCatalog) -> TimelineEditor:
    return TimelineEditor(timeline=Timeline(), history=History(capacity=100), media_catalog=catalog)


@pytest.fixture
def store(tmp_path) -> LocalSessionStore:
    return LocalSessionStore(tmp_path / "sessions")


@pytest.fixture
def client(store: LocalSessionStore, catalog: InMemoryMediaCatalog):
    from fastapi.testclient import TestClient

    from timeline_core.api.deps import EditorRegistry, get_registry
    from timeline_core.main import app

    registry = EditorRegistry(store, catalog)
    app.dependency_overrides[get_registry] = lambda: registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
