"""Remote service clients."""

from .jules_client import JulesAPIError, JulesClient
from .jules_models import (
    Activity,
    CreateSessionRequest,
    ListActivitiesResponse,
    ListSessionsResponse,
    ListSourcesResponse,
    Session,
    Source,
)

__all__ = [
    "Activity",
    "CreateSessionRequest",
    "JulesAPIError",
    "JulesClient",
    "ListActivitiesResponse",
    "ListSessionsResponse",
    "ListSourcesResponse",
    "Session",
    "Source",
]
