"""Wire envelopes exchanged with the debug relay.

The relay wraps every skill invocation in a request frame whose
``requestPayload`` is itself a JSON document (the domain request). Responses
travel back the same way: the domain response is serialized into
``responsePayload`` of a response frame that echoes the request's version and
id.
"""

import dataclasses
import json
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import DecodeError, EncodeError


class SkillResponseType(str, Enum):
    """Outcome of a single relayed invocation."""
    SUCCESS = "SkillResponseSuccessMessage"
    FAILURE = "SkillResponseFailureMessage"


class SkillRequest(BaseModel):
    """Inbound frame from the relay."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str
    type: str
    request_id: str = Field(alias="requestId")
    request_payload: str = Field(alias="requestPayload")


class SkillResponse(BaseModel):
    """Outbound frame sent back to the relay."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str
    type: SkillResponseType
    original_request_id: str = Field(alias="originalRequestId")
    response_payload: str = Field(default="", alias="responsePayload")

    @property
    def succeeded(self) -> bool:
        return self.type is SkillResponseType.SUCCESS


# =============================================================================
# Frames
# =============================================================================

def decode_request(data: str | bytes) -> SkillRequest:
    """Parse a raw relay message into a request frame.

    Raises:
        DecodeError: if the message is not JSON or a required field is
            missing or not a string.
    """
    try:
        return SkillRequest.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(f"Malformed skill request frame: {e}") from e


def encode_response(frame: SkillResponse) -> str:
    """Serialize a response frame with its wire field names."""
    return frame.model_dump_json(by_alias=True)


def success_response(request: SkillRequest, payload: str) -> SkillResponse:
    return SkillResponse(
        version=request.version,
        type=SkillResponseType.SUCCESS,
        original_request_id=request.request_id,
        response_payload=payload,
    )


def failure_response(request: SkillRequest) -> SkillResponse:
    return SkillResponse(
        version=request.version,
        type=SkillResponseType.FAILURE,
        original_request_id=request.request_id,
    )


# =============================================================================
# Inner payloads
# =============================================================================

def decode_inner_request(payload: str, model: Optional[type[BaseModel]] = None) -> Any:
    """Decode the domain request embedded in a request frame.

    Without a model the request must be a JSON object and is returned as a
    dict. With a pydantic model it is validated into an instance of it.

    Raises:
        DecodeError: if the payload is not valid for the expected shape.
    """
    if model is not None:
        try:
            return model.model_validate_json(payload)
        except ValidationError as e:
            raise DecodeError(f"Invalid request payload: {e}") from e

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, TypeError) as e:
        raise DecodeError(f"Request payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(
            f"Request payload must be a JSON object, got {type(data).__name__}"
        )
    return data


def to_payload(value: Any) -> Any:
    """Convert a domain response into plain JSON-compatible data."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True, exclude_none=True)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return value


def encode_inner_response(value: Any) -> str:
    """Serialize a domain response to compact JSON.

    Raises:
        EncodeError: if the value (or something inside it) cannot be
            represented as JSON. NaN and infinities are rejected.
    """
    try:
        return json.dumps(
            to_payload(value),
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise EncodeError(f"Cannot serialize skill response: {e}") from e


def decode_inner_response(payload: str, model: Optional[type[BaseModel]] = None) -> Any:
    """Inverse of encode_inner_response (used by callers inspecting replies)."""
    try:
        if model is not None:
            return model.model_validate_json(payload)
        return json.loads(payload)
    except (ValidationError, json.JSONDecodeError) as e:
        raise DecodeError(f"Invalid response payload: {e}") from e
