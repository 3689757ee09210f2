"""Exception types shared by the tools, agents, storage and API layers.

Every error carries the HTTP status the API should answer with, so route
handlers can let them propagate to the single exception handler in
``api.main``.
"""

from __future__ import annotations

from typing import Any, Optional


class TripPlannerError(Exception):
    """Base class for expected, user-facing failures."""

    status_code = 500

    def __init__(self, message: str, *, cause: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    @property
    def public_message(self) -> str:
        return self.message


# --- configuration --------------------------------------------------------

class MissingConfigError(TripPlannerError):
    """A required API key or setting is not configured."""

    def __init__(self, setting: str) -> None:
        super().__init__(f"{setting} is not configured")
        self.setting = setting

    @property
    def public_message(self) -> str:
        return "Server configuration error"


# --- places ---------------------------------------------------------------

class NoAttractionsFoundError(TripPlannerError):
    status_code = 404

    def __init__(self, lat: float, lng: float, search_type: str = "attractions") -> None:
        super().__init__(f"No {search_type} found near ({lat}, {lng})")
        self.lat = lat
        self.lng = lng
        self.search_type = search_type


class AttractionNotFoundError(TripPlannerError):
    status_code = 404

    def __init__(self, query: str) -> None:
        super().__init__(f'No attraction found for "{query}"')
        self.query = query


class PlaceNotFoundError(TripPlannerError):
    status_code = 404

    def __init__(self, query: str) -> None:
        super().__init__(f'No results found for "{query}"')
        self.query = query


class NoResultsError(TripPlannerError):
    status_code = 404

    def __init__(self, lat: float, lng: float) -> None:
        super().__init__(f"No results found for coordinates ({lat}, {lng})")
        self.lat = lat
        self.lng = lng


class PlacesAPIError(TripPlannerError):
    """Upstream Google Maps / Places failure."""

    status_code = 502


class GeocodingError(PlacesAPIError):
    pass


# --- photos ---------------------------------------------------------------

class PhotoError(TripPlannerError):
    status_code = 502


class InvalidPhotoReferenceError(TripPlannerError):
    status_code = 400

    def __init__(self, reference: str) -> None:
        super().__init__("Photo reference must be a Places photo name or an allowed image URL")
        self.reference = reference


class WikimediaAPIError(PhotoError):
    pass


class NoWikimediaPhotosFoundError(PhotoError):
    status_code = 404

    def __init__(self, lat: float, lng: float, radius: int) -> None:
        super().__init__(f"No Wikimedia photos found within {radius}m of ({lat}, {lng})")
        self.lat = lat
        self.lng = lng
        self.radius = radius


# --- agents ---------------------------------------------------------------

class AgentError(TripPlannerError):
    status_code = 502


class InvalidToolCallError(AgentError):
    def __init__(self, message: str, tool_name: str, *, cause: Optional[Any] = None) -> None:
        super().__init__(message, cause=cause)
        self.tool_name = tool_name


class ModelResponseError(AgentError):
    pass


# --- storage --------------------------------------------------------------

class ConversationNotFoundError(TripPlannerError):
    status_code = 404

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} not found")
        self.conversation_id = conversation_id


class TripNotFoundError(TripPlannerError):
    status_code = 404

    def __init__(self, trip_id: str) -> None:
        super().__init__(f"Trip {trip_id} not found")
        self.trip_id = trip_id


class StorageError(TripPlannerError):
    def __init__(self, operation: str, message: str, *, cause: Optional[Any] = None) -> None:
        super().__init__(f"{operation} failed: {message}", cause=cause)
        self.operation = operation


class ConversationAlreadyLinkedError(TripPlannerError):
    """A conversation can hold only one trip."""

    status_code = 409

    def __init__(self, conversation_id: str, trip_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} already has trip {trip_id}")
        self.conversation_id = conversation_id
        self.trip_id = trip_id
