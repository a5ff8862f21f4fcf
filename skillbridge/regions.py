"""Debug relay endpoints per assistant region."""

from types import MappingProxyType
from typing import Mapping

DEFAULT_REGION = "NA"

# Relay hosts for the development stage debug endpoint
REGION_ENDPOINTS: Mapping[str, str] = MappingProxyType({
    "NA": "bob-dispatch-prod-na.amazon.com",
    "FE": "bob-dispatch-prod-fe.amazon.com",
    "EU": "bob-dispatch-prod-eu.amazon.com",
})

DEBUG_ENDPOINT_PATH = "/v1/skills/{skill_id}/stages/development/connectCustomDebugEndpoint"


def resolve_region(code: str, endpoints: Mapping[str, str] = REGION_ENDPOINTS) -> str:
    """Return the relay hostname for a region code, or "" if unknown."""
    return endpoints.get(code, "")


def build_debug_url(hostname: str, skill_id: str) -> str:
    """Build the WebSocket URL of a skill's custom debug endpoint."""
    return f"wss://{hostname}" + DEBUG_ENDPOINT_PATH.format(skill_id=skill_id)
