"""
tests/test_envelope.py -- Unit tests for subsonic/envelope.py and subsonic/errors.py.

Coverage:
  - HTTP status table, including unmapped codes -> 500
  - envelope construction rules (ok vs failed)
  - XML / JSON / JSONP carry the same logical content
  - JSONP callback validation
  - payload registry is exhaustive; unregistered payloads are logged and omitted
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from xml.etree.ElementTree import fromstring

import pytest

from subsonic import payloads
from subsonic.envelope import (
    PROTOCOL_VERSION,
    XMLNS,
    Envelope,
    WireFormat,
    http_status,
    render,
    to_dict,
    valid_callback,
)
from subsonic.errors import ErrorCode, SubsonicError, http_status_for
from subsonic.payloads import (
    PAYLOAD_KEYS,
    AlbumID3,
    AlbumList2,
    ApiKey,
    Child,
    Extension,
    Genre,
    Genres,
    License,
    OpenSubsonicExtensions,
    Payload,
    PayloadKind,
    SongDetail,
)

NS = "{" + XMLNS + "}"


def _xml(envelope: Envelope):
    body, media_type = render(envelope, WireFormat.XML)
    assert media_type == "application/xml"
    return fromstring(body)


def _json(envelope: Envelope) -> dict:
    body, media_type = render(envelope, WireFormat.JSON)
    assert media_type == "application/json"
    return json.loads(body)["subsonic-response"]


class TestStatusTable:
    @pytest.mark.parametrize(
        "code, status",
        [
            (10, 400),
            (40, 401),
            (41, 401),
            (42, 401),
            (43, 401),
            (44, 401),
            (70, 404),
            (0, 500),
            (50, 500),
            (99, 500),
        ],
    )
    def test_failed_status(self, code: int, status: int) -> None:
        assert http_status_for(code) == status
        assert http_status(Envelope.failed(code, "x")) == status

    def test_success_is_200(self) -> None:
        assert http_status(Envelope.ok()) == 200
        assert http_status(Envelope.ok(License())) == 200

    def test_codes_are_stable(self) -> None:
        assert [int(c) for c in ErrorCode] == [0, 10, 40, 41, 42, 43, 44, 50, 70]


class TestEnvelopeRules:
    def test_failed_cannot_carry_payload(self) -> None:
        from subsonic.envelope import ErrorBody

        with pytest.raises(ValueError):
            Envelope(status="failed", payload=License(), error=ErrorBody(40, "x"))

    def test_ok_cannot_carry_error(self) -> None:
        from subsonic.envelope import ErrorBody

        with pytest.raises(ValueError):
            Envelope(status="ok", error=ErrorBody(40, "x"))

    def test_from_error(self) -> None:
        envelope = Envelope.from_error(SubsonicError.not_found("Album"))
        assert envelope.error.code == 70
        assert envelope.error.message == "Album not found."

    def test_server_metadata_only_when_given(self) -> None:
        plain = to_dict(Envelope.ok())
        assert "type" not in plain and "serverVersion" not in plain
        assert plain["openSubsonic"] is True

        pinged = to_dict(Envelope.ok(server_type="SonicGate", server_version="1.2.3"))
        assert pinged["type"] == "SonicGate"
        assert pinged["serverVersion"] == "1.2.3"

    def test_failed_has_no_open_subsonic_flag(self) -> None:
        assert "openSubsonic" not in to_dict(Envelope.failed(40, "x"))


class TestFormatEquivalence:
    def test_error_same_in_xml_and_json(self) -> None:
        envelope = Envelope.failed(ErrorCode.WRONG_CREDENTIALS, "Wrong username or password.")
        root = _xml(envelope)
        data = _json(envelope)

        assert root.tag == NS + "subsonic-response"
        assert root.get("status") == data["status"] == "failed"
        assert root.get("version") == data["version"] == PROTOCOL_VERSION
        error = root.find(NS + "error")
        assert int(error.get("code")) == data["error"]["code"] == 40
        assert error.get("message") == data["error"]["message"]

    def test_payload_same_in_xml_and_json(self) -> None:
        envelope = Envelope.ok(
            AlbumList2(
                album=[
                    AlbumID3(id="1", name="First Light", artist="The Band", song_count=2, duration=380, year=2001),
                    AlbumID3(id="2", name="Colours", artist="Azure", song_count=1, duration=240),
                ]
            )
        )
        root = _xml(envelope)
        data = _json(envelope)

        xml_albums = root.find(NS + "albumList2").findall(NS + "album")
        json_albums = data["albumList2"]["album"]
        assert len(xml_albums) == len(json_albums) == 2
        for element, obj in zip(xml_albums, json_albums):
            assert element.get("id") == obj["id"]
            assert element.get("name") == obj["name"]
            assert int(element.get("songCount")) == obj["songCount"]
        assert "year" not in json_albums[1]
        assert xml_albums[1].get("year") is None

    def test_jsonp_wraps_json(self) -> None:
        envelope = Envelope.ok(ApiKey(key="abc"))
        body, media_type = render(envelope, WireFormat.JSONP, "cb")
        assert media_type == "application/javascript"
        text = body.decode()
        assert text.startswith("cb(") and text.endswith(");")
        assert json.loads(text[3:-2]) == json.loads(render(envelope, WireFormat.JSON)[0])

    def test_jsonp_invalid_callback_falls_back_to_json(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="sonicgate.subsonic"):
            body, media_type = render(Envelope.ok(), WireFormat.JSONP, "alert(1)//")
        assert media_type == "application/json"
        assert "subsonic-response" in json.loads(body)
        assert "alert" not in caplog.text

    def test_bool_attributes_lowercase(self) -> None:
        root = _xml(Envelope.ok(License(valid=True)))
        assert root.get("openSubsonic") == "true"
        assert root.find(NS + "license").get("valid") == "true"

    def test_inline_song(self) -> None:
        envelope = Envelope.ok(SongDetail(song=Child(id="7", title="Intro", duration=180)))
        assert _json(envelope)["song"]["title"] == "Intro"
        assert _xml(envelope).find(NS + "song").get("title") == "Intro"

    def test_inline_extension_list(self) -> None:
        envelope = Envelope.ok(OpenSubsonicExtensions(extensions=[Extension(name="apiKeyAuthentication", versions=[1])]))
        data = _json(envelope)
        assert data["openSubsonicExtensions"] == [{"name": "apiKeyAuthentication", "versions": [1]}]
        ext = _xml(envelope).find(NS + "openSubsonicExtensions")
        assert ext.get("name") == "apiKeyAuthentication"
        assert [v.text for v in ext.findall(NS + "versions")] == ["1"]

    def test_value_field_is_element_text(self) -> None:
        envelope = Envelope.ok(Genres(genre=[Genre(value="Rock", song_count=2, album_count=1)]))
        genre = _xml(envelope).find(NS + "genres").find(NS + "genre")
        assert genre.text == "Rock"
        assert genre.get("songCount") == "2"
        assert _json(envelope)["genres"]["genre"][0]["value"] == "Rock"

    def test_unknown_format_defaults_to_xml(self) -> None:
        assert WireFormat.from_param(None) is WireFormat.XML
        assert WireFormat.from_param("yaml") is WireFormat.XML
        assert WireFormat.from_param("json") is WireFormat.JSON
        assert WireFormat.from_param("jsonp") is WireFormat.JSONP


class TestCallbackNames:
    @pytest.mark.parametrize("name", ["cb", "jQuery.cb_12", "$x", "_a.b.c"])
    def test_valid(self, name: str) -> None:
        assert valid_callback(name)

    @pytest.mark.parametrize("name", ["", None, "1cb", "a-b", "cb()", "a..b", "x;alert(1)"])
    def test_invalid(self, name) -> None:
        assert not valid_callback(name)


class TestPayloadRegistry:
    def test_every_kind_has_a_key(self) -> None:
        assert set(PAYLOAD_KEYS) == set(PayloadKind)
        assert len(set(PAYLOAD_KEYS.values())) == len(PAYLOAD_KEYS)

    def test_every_payload_class_is_registered(self) -> None:
        classes = [
            obj
            for obj in vars(payloads).values()
            if isinstance(obj, type) and issubclass(obj, Payload) and obj is not Payload
        ]
        assert {cls.kind for cls in classes} == set(PayloadKind)

    def test_unregistered_payload_is_omitted_and_logged(self, caplog) -> None:
        @dataclass(frozen=True)
        class Stray:
            value: str = "x"

        with caplog.at_level(logging.WARNING, logger="sonicgate.subsonic"):
            data = _json(Envelope.ok(Stray()))
            root = _xml(Envelope.ok(Stray()))

        assert data["status"] == "ok"
        assert set(data) == {"status", "version", "xmlns", "openSubsonic"}
        assert list(root) == []
        assert "Unhandled payload type for response: Stray" in caplog.text
