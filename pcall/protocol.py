"""Request/response envelopes shared by every transport.

A batch is a plain list of envelopes; replies are correlated by ``id``,
never by position.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, model_validator

from pcall.errors import ErrorKind, RPCError

PROTOCOL_VERSION = "2.0"

RequestId = int | str


class RPCRequest(BaseModel):
    """One procedure invocation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: RequestId
    jsonrpc: Literal["2.0"] = PROTOCOL_VERSION
    method: str
    params: Any = None

    def to_wire(self) -> dict[str, Any]:
        return {"id": self.id, "jsonrpc": self.jsonrpc, "method": self.method, "params": self.params}


class ErrorBody(BaseModel):
    """Wire shape of an RPCError: ``{code, status, message}``."""

    model_config = ConfigDict(frozen=True)

    code: int
    status: ErrorKind
    message: str = ""

    @classmethod
    def from_error(cls, err: RPCError) -> ErrorBody:
        return cls(code=err.code, status=err.status, message=err.message)

    def to_error(self) -> RPCError:
        return RPCError(self.status, self.message)


class RPCResponse(BaseModel):
    """Reply to one request. Exactly one of ``result``/``error`` is present.

    ``id`` is ``None`` only for failures raised before any request id was
    known (an unparseable body).
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: RequestId | None
    jsonrpc: Literal["2.0"] = PROTOCOL_VERSION
    result: Any = None
    error: ErrorBody | None = None

    @model_validator(mode="after")
    def _result_xor_error(self) -> RPCResponse:
        has_result = "result" in self.model_fields_set
        has_error = self.error is not None
        if has_result and has_error:
            raise ValueError("response carries both result and error")
        if not has_result and not has_error:
            raise ValueError("response carries neither result nor error")
        return self

    @classmethod
    def success(cls, id: RequestId | None, result: Any) -> RPCResponse:
        return cls(id=id, result=result)

    @classmethod
    def failure(cls, id: RequestId | None, err: RPCError) -> RPCResponse:
        return cls(id=id, error=ErrorBody.from_error(err))

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def rpc_error(self) -> RPCError | None:
        return self.error.to_error() if self.error is not None else None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "jsonrpc": self.jsonrpc}
        if self.error is not None:
            data["error"] = self.error.model_dump(mode="json")
        else:
            data["result"] = self.result
        return data


_request_list = TypeAdapter(list[RPCRequest])
_response_list = TypeAdapter(list[RPCResponse])


def _load_json(body: bytes | str) -> Any:
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RPCError(ErrorKind.PARSE_ERROR, f"invalid JSON body: {e}") from e


def decode_request_body(body: bytes | str) -> RPCRequest | list[RPCRequest]:
    """Decode a single request or a batch; malformed input raises PARSE_ERROR."""
    data = _load_json(body)
    try:
        if isinstance(data, list):
            return _request_list.validate_python(data)
        if isinstance(data, dict):
            return RPCRequest.model_validate(data)
    except ValidationError as e:
        raise RPCError(ErrorKind.PARSE_ERROR, f"invalid request envelope: {e.error_count()} error(s)") from e
    raise RPCError(ErrorKind.PARSE_ERROR, "request body must be an object or an array")


def decode_response_body(body: bytes | str) -> RPCResponse | list[RPCResponse]:
    """Decode a single response or a batch reply; malformed input raises PARSE_ERROR."""
    data = _load_json(body)
    try:
        if isinstance(data, list):
            return _response_list.validate_python(data)
        if isinstance(data, dict):
            return RPCResponse.model_validate(data)
    except ValidationError as e:
        raise RPCError(ErrorKind.PARSE_ERROR, f"invalid response envelope: {e.error_count()} error(s)") from e
    raise RPCError(ErrorKind.PARSE_ERROR, "response body must be an object or an array")


def encode_request(request: RPCRequest | list[RPCRequest]) -> str:
    if isinstance(request, list):
        return json.dumps([r.to_wire() for r in request])
    return json.dumps(request.to_wire())


def encode_response(response: RPCResponse | list[RPCResponse]) -> str:
    if isinstance(response, list):
        return json.dumps([r.to_wire() for r in response])
    return json.dumps(response.to_wire())
