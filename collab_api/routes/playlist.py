"""Playlist routes for the collaborative playlist API.

Each mutating route applies the change through ``PlaylistService`` and then
broadcasts the returned events, so the HTTP response and the stream always
describe the same committed state.
"""

from collab_api.models.playlist import PlaylistAddRequest, PlaylistItem, PlaylistUpdateRequest, VoteRequest
from collab_api.models.responses import ErrorResponse, UpdateResponse, VoteResponse
from collab_api.routes.deps import get_event_bus, get_playlist_service
from collab_api.services.event_bus import EventBus
from collab_api.services.mutations import PlaylistService
from core.logging import log_api_request
from fastapi import APIRouter, Depends, Response

router = APIRouter(
    prefix="/playlist",
    tags=["playlist"],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@router.get("", response_model=list[PlaylistItem])
async def get_playlist(service: PlaylistService = Depends(get_playlist_service)):
    """Get the playlist ordered by position."""
    return service.list_playlist()


@router.post("", status_code=201, response_model=PlaylistItem)
async def add_to_playlist(
    request: PlaylistAddRequest,
    service: PlaylistService = Depends(get_playlist_service),
    bus: EventBus = Depends(get_event_bus),
):
    """Append a track to the playlist."""
    result = service.add(request.track_id, request.added_by)
    bus.publish(result.events)
    log_api_request("POST", "/api/playlist", status=201, item_id=result.item["id"], track_id=result.item["track_id"])
    return result.item


@router.patch("/{item_id}", response_model=UpdateResponse)
async def update_playlist_item(
    item_id: str,
    request: PlaylistUpdateRequest,
    service: PlaylistService = Depends(get_playlist_service),
    bus: EventBus = Depends(get_event_bus),
):
    """Move an item and/or mark it as now playing."""
    service.get_item(item_id)

    if request.is_playing is True:
        bus.publish(service.set_playing(item_id).events)

    if request.position is not None:
        bus.publish(service.move(item_id, request.position).events)

    log_api_request("PATCH", f"/api/playlist/{item_id}", status=200, is_playing=request.is_playing, position=request.position)
    return UpdateResponse(ok=True)


@router.post("/{item_id}/vote", response_model=VoteResponse)
async def vote_playlist_item(
    item_id: str,
    request: VoteRequest,
    service: PlaylistService = Depends(get_playlist_service),
    bus: EventBus = Depends(get_event_bus),
):
    """Vote an item up or down by one."""
    result = service.vote(item_id, request.direction)
    bus.publish(result.events)
    log_api_request("POST", f"/api/playlist/{item_id}/vote", status=200, direction=request.direction)
    return VoteResponse(id=item_id, votes=result.item["votes"])


@router.delete("/{item_id}", status_code=204)
async def remove_from_playlist(
    item_id: str,
    service: PlaylistService = Depends(get_playlist_service),
    bus: EventBus = Depends(get_event_bus),
):
    """Remove an item from the playlist."""
    result = service.remove(item_id)
    bus.publish(result.events)
    log_api_request("DELETE", f"/api/playlist/{item_id}", status=204)
    return Response(status_code=204)
