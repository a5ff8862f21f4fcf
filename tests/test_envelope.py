"""Tests for relay frame and inner payload encoding."""

import json
from dataclasses import dataclass

import pytest
from pydantic import BaseModel, Field

from skillbridge.envelope import (
    SkillRequest,
    SkillResponse,
    SkillResponseType,
    decode_inner_request,
    decode_inner_response,
    decode_request,
    encode_inner_response,
    encode_response,
    failure_response,
    success_response,
)
from skillbridge.errors import DecodeError, EncodeError

FRAME = {
    "version": "1.0",
    "type": "req",
    "requestId": "abc",
    "requestPayload": '{"x":1}',
}


class TestDecodeRequest:
    """Inbound frame parsing."""

    def test_decodes_wire_fields(self):
        request = decode_request(json.dumps(FRAME))

        assert request.version == "1.0"
        assert request.type == "req"
        assert request.request_id == "abc"
        assert request.request_payload == '{"x":1}'

    def test_accepts_bytes(self):
        request = decode_request(json.dumps(FRAME).encode("utf-8"))
        assert request.request_id == "abc"

    def test_ignores_unknown_fields(self):
        request = decode_request(json.dumps({**FRAME, "extra": 42}))
        assert request.request_id == "abc"

    def test_rejects_invalid_json(self):
        with pytest.raises(DecodeError):
            decode_request("{not json")

    @pytest.mark.parametrize("missing", ["version", "type", "requestId", "requestPayload"])
    def test_rejects_missing_field(self, missing):
        frame = {k: v for k, v in FRAME.items() if k != missing}
        with pytest.raises(DecodeError):
            decode_request(json.dumps(frame))

    def test_rejects_non_string_payload(self):
        with pytest.raises(DecodeError):
            decode_request(json.dumps({**FRAME, "requestPayload": {"x": 1}}))


class TestResponseFrames:
    """Outbound frame construction and encoding."""

    def test_success_response_echoes_request(self):
        request = decode_request(json.dumps(FRAME))
        response = success_response(request, '{"x":2}')

        assert json.loads(encode_response(response)) == {
            "version": "1.0",
            "type": "SkillResponseSuccessMessage",
            "originalRequestId": "abc",
            "responsePayload": '{"x":2}',
        }
        assert response.succeeded

    def test_failure_response_has_empty_payload(self):
        request = decode_request(json.dumps(FRAME))
        response = failure_response(request)

        assert json.loads(encode_response(response)) == {
            "version": "1.0",
            "type": "SkillResponseFailureMessage",
            "originalRequestId": "abc",
            "responsePayload": "",
        }
        assert not response.succeeded

    def test_frames_are_immutable(self):
        request = SkillRequest(version="1.0", type="req", request_id="abc", request_payload="{}")
        with pytest.raises(Exception):
            request.request_id = "other"

    def test_response_type_values(self):
        response = SkillResponse(
            version="1.0",
            type=SkillResponseType.FAILURE,
            original_request_id="abc",
        )
        assert response.response_payload == ""
        assert SkillResponseType.SUCCESS.value == "SkillResponseSuccessMessage"


class TestInnerPayloads:
    """Domain request/response (de)serialization."""

    def test_decodes_json_object(self):
        assert decode_inner_request('{"request": {"type": "LaunchRequest"}}') == {
            "request": {"type": "LaunchRequest"}
        }

    @pytest.mark.parametrize("payload", ["{broken", "", "[1, 2]", "null", '"text"'])
    def test_rejects_non_object_payloads(self, payload):
        with pytest.raises(DecodeError):
            decode_inner_request(payload)

    def test_decodes_into_model(self):
        class Envelope(BaseModel):
            version: str
            session_id: str = Field(alias="sessionId")

        env = decode_inner_request('{"version": "1.0", "sessionId": "s1"}', Envelope)
        assert env.session_id == "s1"

    def test_model_validation_failure_is_decode_error(self):
        class Envelope(BaseModel):
            version: str

        with pytest.raises(DecodeError):
            decode_inner_request('{"other": 1}', Envelope)

    def test_encodes_compact_json(self):
        assert encode_inner_response({"x": 2}) == '{"x":2}'

    def test_encodes_none_as_null(self):
        assert encode_inner_response(None) == "null"

    def test_encodes_dataclass(self):
        @dataclass
        class Speech:
            text: str
            end_session: bool = True

        assert json.loads(encode_inner_response(Speech("hi"))) == {"text": "hi", "end_session": True}

    def test_encodes_model_by_alias_without_nulls(self):
        class Response(BaseModel):
            should_end_session: bool = Field(alias="shouldEndSession")
            card: dict | None = None

        value = Response(shouldEndSession=False)
        assert encode_inner_response(value) == '{"shouldEndSession":false}'

    @pytest.mark.parametrize("value", [{"x": object()}, {"x": float("nan")}, {1j: 1}])
    def test_unserializable_is_encode_error(self, value):
        with pytest.raises(EncodeError):
            encode_inner_response(value)

    def test_circular_reference_is_encode_error(self):
        value = {}
        value["self"] = value
        with pytest.raises(EncodeError):
            encode_inner_response(value)

    def test_round_trip(self):
        value = {
            "version": "1.0",
            "response": {
                "outputSpeech": {"type": "PlainText", "text": "Grüße"},
                "shouldEndSession": True,
            },
            "sessionAttributes": {"count": 3, "items": [1.5, None, "a"]},
        }
        assert decode_inner_response(encode_inner_response(value)) == value

    def test_decode_response_rejects_invalid_json(self):
        with pytest.raises(DecodeError):
            decode_inner_response("{broken")
