import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from timeline_core.config import get_settings
from timeline_core.schemas.timeline import TimelineSnapshot
from timeline_core.services.editor import TimelineEditor
from timeline_core.services.media_catalog import InMemoryMediaCatalog
from timeline_core.services.session_store import LocalSessionStore, SessionStore
from timeline_core.services.timeline import Timeline

logger = logging.getLogger(__name__)


class EditorRegistry:
    """One live editor per session id, loaded from the store on first use."""

    def __init__(self, store: SessionStore, media_catalog: InMemoryMediaCatalog):
        self.store = store
        self.media_catalog = media_catalog
        self._editors: dict[str, TimelineEditor] = {}

    def get(self, session_id: str) -> TimelineEditor:
        editor = self._editors.get(session_id)
        if editor is not None:
            return editor

        if self.store.exists(session_id):
            timeline = Timeline.from_snapshot(self.store.load(session_id))
        else:
            logger.info(f"Starting empty session {session_id}")
            timeline = Timeline()

        editor = TimelineEditor(timeline=timeline, media_catalog=self.media_catalog)
        self._editors[session_id] = editor
        return editor

    def replace(self, session_id: str, snapshot: TimelineSnapshot) -> TimelineEditor:
        editor = self.get(session_id)
        editor.load(snapshot)
        return editor

    def save(self, session_id: str) -> TimelineEditor:
        editor = self.get(session_id)
        self.store.save(session_id, editor.snapshot())
        editor.timeline.mark_saved()
        return editor


@lru_cache
def get_registry() -> EditorRegistry:
    settings = get_settings()
    return EditorRegistry(LocalSessionStore(settings.session_storage_path), InMemoryMediaCatalog())


Registry = Annotated[EditorRegistry, Depends(get_registry)]
