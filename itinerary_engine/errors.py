"""Exception types surfaced by the engine's public entry points."""


class ItineraryValidationError(ValueError):
    """Itinerary (or adaptation id) missing or structurally invalid."""

    pass


class AdaptationNotFoundError(ItineraryValidationError):
    """Adaptation id not present in the supplied adaptations."""

    pass


class ExternalServiceError(Exception):
    """Collaborator call failed, timed out or returned a malformed response.

    Always recovered locally by the calling component's fallback.
    """

    pass
