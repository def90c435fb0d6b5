import logging

from fastapi import APIRouter, status

from timeline_core.api.deps import Registry
from timeline_core.middleware.request_context import create_request_context, envelope_success
from timeline_core.schemas.envelope import EnvelopeResponse
from timeline_core.schemas.operations import MediaRegisterRequest
from timeline_core.services.media_catalog import MediaInfo

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/media", response_model=EnvelopeResponse, status_code=status.HTTP_201_CREATED)
async def register_media(body: MediaRegisterRequest, registry: Registry) -> EnvelopeResponse:
    """Make a source known to the editor so clips can be added from it."""
    context = create_request_context()
    if body.source_id in registry.media_catalog:
        logger.info(f"Replacing registered media {body.source_id}")
    linked = None
    if body.linked_audio_source_id:
        linked = MediaInfo(
            source_id=body.linked_audio_source_id,
            kind="audio",
            duration=body.linked_audio_duration,
            url=body.linked_audio_url,
        )
    registry.media_catalog.register(
        MediaInfo(
            source_id=body.source_id,
            kind=body.kind,
            duration=body.duration,
            url=body.url,
            linked_audio=linked,
        )
    )
    return envelope_success(context, {"source_id": body.source_id, "registered": True})
