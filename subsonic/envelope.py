"""
subsonic/envelope.py -- The subsonic-response envelope and its three wire formats.

Every /rest response, success or failure, ends here. This module is the only
place that decides the response bytes and the HTTP status.

Formats (selected by the ``f`` query parameter):
  omitted / "xml" -> XML, payload as a nested element (default)
  "json"          -> {"subsonic-response": {...}}, payload under its key
  "jsonp"         -> the JSON body wrapped as ``callback(...);`` when a valid
                     ``callback`` name is supplied, plain JSON otherwise

The logical content is identical across formats; only the framing differs.

Layer rule: no imports from api/, auth/ or library/.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Optional
from xml.etree.ElementTree import Element, SubElement, tostring

from fastapi import Request, Response

from subsonic.errors import SubsonicError, http_status_for
from subsonic.payloads import PAYLOAD_KEYS, Payload

logger = logging.getLogger("sonicgate.subsonic")

PROTOCOL_VERSION = "1.16.1"
XMLNS = "http://subsonic.org/restapi"

# A JavaScript identifier or dotted path (e.g. "cb", "jQuery.cb_12").
_CALLBACK_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")

_MEDIA_TYPES = {
    "xml": "application/xml",
    "json": "application/json",
    "jsonp": "application/javascript",
}


class WireFormat(Enum):
    XML = "xml"
    JSON = "json"
    JSONP = "jsonp"

    @classmethod
    def from_param(cls, value: Optional[str]) -> WireFormat:
        """Map the ``f`` query parameter to a format. Unknown values fall back to XML."""
        if value == "json":
            return cls.JSON
        if value == "jsonp":
            return cls.JSONP
        return cls.XML


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ErrorBody:
    code: int
    message: str


@dataclass(frozen=True)
class Envelope:
    """The outcome of one /rest request.

    A success envelope carries at most one payload and no error; a failed
    envelope carries an error and no payload. Use the ok()/failed()
    constructors rather than building instances directly.
    """

    status: str
    payload: Optional[Any] = None
    error: Optional[ErrorBody] = None
    server_type: Optional[str] = None
    server_version: Optional[str] = None
    open_subsonic: bool = False
    version: str = PROTOCOL_VERSION

    def __post_init__(self) -> None:
        if self.status == "ok" and self.error is not None:
            raise ValueError("A successful envelope cannot carry an error body.")
        if self.status == "failed" and (self.error is None or self.payload is not None):
            raise ValueError("A failed envelope carries exactly an error body.")
        if self.status not in ("ok", "failed"):
            raise ValueError(f"Unknown envelope status: {self.status!r}")

    @classmethod
    def ok(
        cls,
        payload: Optional[Any] = None,
        *,
        server_type: Optional[str] = None,
        server_version: Optional[str] = None,
    ) -> Envelope:
        return cls(
            status="ok",
            payload=payload,
            server_type=server_type,
            server_version=server_version,
            open_subsonic=True,
        )

    @classmethod
    def failed(cls, code: int, message: str) -> Envelope:
        return cls(status="failed", error=ErrorBody(code=int(code), message=message))

    @classmethod
    def from_error(cls, exc: SubsonicError) -> Envelope:
        return cls.failed(exc.code, exc.message)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"


def http_status(envelope: Envelope) -> int:
    """Return 200 for success, otherwise the status mapped from the error code."""
    if envelope.is_ok:
        return 200
    return http_status_for(envelope.error.code)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _xml_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _json_value(obj: Any) -> Any:
    if is_dataclass(obj):
        out: dict[str, Any] = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if value is not None:
                out[_camel(f.name)] = _json_value(value)
        return out
    if isinstance(obj, list):
        return [_json_value(item) for item in obj]
    return obj


def _fill_element(element: Element, obj: Any) -> None:
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        tag = _camel(f.name)
        if f.name == "value":
            element.text = _xml_text(value)
        elif isinstance(value, list):
            for item in value:
                child = SubElement(element, tag)
                if is_dataclass(item):
                    _fill_element(child, item)
                else:
                    child.text = _xml_text(item)
        elif is_dataclass(value):
            _fill_element(SubElement(element, tag), value)
        else:
            element.set(tag, _xml_text(value))


def payload_key(payload: Any) -> Optional[str]:
    """Return the wire key for a payload, or None (logged) when it is not registered."""
    key = PAYLOAD_KEYS.get(getattr(payload, "kind", None)) if isinstance(payload, Payload) else None
    if key is None:
        logger.warning("Unhandled payload type for response: %s", type(payload).__name__)
    return key


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------


def to_dict(envelope: Envelope) -> dict[str, Any]:
    """Return the inner JSON object of the envelope (without the outer wrapper key)."""
    inner: dict[str, Any] = {
        "status": envelope.status,
        "version": envelope.version,
        "xmlns": XMLNS,
    }
    if envelope.server_type:
        inner["type"] = envelope.server_type
    if envelope.server_version:
        inner["serverVersion"] = envelope.server_version
    if envelope.open_subsonic:
        inner["openSubsonic"] = True

    if envelope.error is not None:
        inner["error"] = {"code": envelope.error.code, "message": envelope.error.message}
    elif envelope.payload is not None:
        key = payload_key(envelope.payload)
        if key is not None:
            payload = envelope.payload
            value = getattr(payload, payload.inline) if payload.inline else payload
            inner[key] = _json_value(value)
    return inner


def to_element(envelope: Envelope) -> Element:
    """Return the envelope as an ElementTree element rooted at <subsonic-response>."""
    root = Element("subsonic-response")
    root.set("xmlns", XMLNS)
    root.set("status", envelope.status)
    root.set("version", envelope.version)
    if envelope.server_type:
        root.set("type", envelope.server_type)
    if envelope.server_version:
        root.set("serverVersion", envelope.server_version)
    if envelope.open_subsonic:
        root.set("openSubsonic", "true")

    if envelope.error is not None:
        SubElement(root, "error", code=str(envelope.error.code), message=envelope.error.message)
    elif envelope.payload is not None:
        key = payload_key(envelope.payload)
        if key is not None:
            payload = envelope.payload
            if payload.inline:
                value = getattr(payload, payload.inline)
                items = value if isinstance(value, list) else [value]
                for item in items:
                    if item is not None:
                        _fill_element(SubElement(root, key), item)
            else:
                _fill_element(SubElement(root, key), payload)
    return root


def valid_callback(callback: Optional[str]) -> bool:
    return bool(callback) and _CALLBACK_RE.match(callback) is not None


def render(envelope: Envelope, fmt: WireFormat, callback: Optional[str] = None) -> tuple[bytes, str]:
    """Serialize the envelope. Returns (body, media_type)."""
    if fmt is WireFormat.XML:
        return tostring(to_element(envelope), encoding="utf-8", xml_declaration=True), _MEDIA_TYPES["xml"]

    body = json.dumps({"subsonic-response": to_dict(envelope)})
    if fmt is WireFormat.JSONP and callback:
        if valid_callback(callback):
            return f"{callback}({body});".encode("utf-8"), _MEDIA_TYPES["jsonp"]
        logger.warning("Ignoring invalid JSONP callback name (%d chars)", len(callback))
    return body.encode("utf-8"), _MEDIA_TYPES["json"]


def subsonic_response(request: Request, envelope: Envelope) -> Response:
    """Render the envelope in the format the request asked for."""
    fmt = WireFormat.from_param(request.query_params.get("f"))
    body, media_type = render(envelope, fmt, request.query_params.get("callback"))
    return Response(content=body, status_code=http_status(envelope), media_type=media_type)
