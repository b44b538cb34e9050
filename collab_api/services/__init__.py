"""Backend services for the collaborative playlist."""

from collab_api.services.database import DatabaseService
from collab_api.services.event_bus import EventBus, Subscriber
from collab_api.services.mutations import MutationResult, PlaylistService

__all__ = ["DatabaseService", "EventBus", "Subscriber", "MutationResult", "PlaylistService"]
