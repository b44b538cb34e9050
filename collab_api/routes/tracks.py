"""Track catalog routes."""

from collab_api.models.track import Track
from collab_api.routes.deps import get_playlist_service
from collab_api.services.mutations import PlaylistService
from fastapi import APIRouter, Depends

router = APIRouter(prefix="/tracks", tags=["tracks"])


@router.get("", response_model=list[Track])
async def list_tracks(service: PlaylistService = Depends(get_playlist_service)):
    """Get the whole catalog, ordered by title."""
    return service.list_tracks()
