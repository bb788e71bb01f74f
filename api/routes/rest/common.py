"""
api/routes/rest/common.py -- Shared plumbing for the /rest route modules.

Subsonic clients call every endpoint as both /rest/<name> and
/rest/<name>.view, with GET or POST. subsonic_route() registers all four
combinations for one handler.

Parameter helpers raise SubsonicError so a handler reads top to bottom
without envelope bookkeeping:
  require_param()  -- missing or empty -> 10
  int_param()      -- optional int; malformed or outside 64 bits -> 10
  entity_id()      -- required int id; malformed or out of range -> 70

The song/album mappers live here because browsing, playlists and media all
return the same Child and AlbumID3 shapes.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import APIRouter, Request, Response

from library.models import Album, Song
from subsonic.envelope import Envelope, subsonic_response
from subsonic.errors import ErrorCode, SubsonicError
from subsonic.payloads import AlbumID3, Child


def subsonic_route(router: APIRouter, name: str) -> Callable:
    """Register a handler at /<name> and /<name>.view for GET and POST."""

    def decorator(func: Callable) -> Callable:
        router.api_route(f"/{name}", methods=["GET", "POST"])(func)
        router.api_route(f"/{name}.view", methods=["GET", "POST"], include_in_schema=False)(func)
        return func

    return decorator


def ok(request: Request, payload=None) -> Response:
    """Render a success envelope in the caller's format."""
    return subsonic_response(request, Envelope.ok(payload))


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


# SQLite INTEGER is a signed 64-bit value.
_SQL_INT_MAX = 2**63 - 1


def parse_id(raw: str) -> int | None:
    """Return ``raw`` as a row id, or None when no row could have that id."""
    try:
        value = int(raw)
    except ValueError:
        return None
    if not 0 < value <= _SQL_INT_MAX:
        return None
    return value


def require_param(request: Request, name: str) -> str:
    value = request.query_params.get(name)
    if not value:
        raise SubsonicError.missing_parameter(name)
    return value


def int_param(request: Request, name: str, default: int | None = None) -> int | None:
    value = request.query_params.get(name)
    if not value:
        return default
    try:
        number = int(value)
    except ValueError:
        number = None
    if number is None or abs(number) > _SQL_INT_MAX:
        raise SubsonicError(ErrorCode.MISSING_PARAMETER, f"Invalid value for parameter: {name}")
    return number


def bool_param(request: Request, name: str, default: bool = False) -> bool:
    value = request.query_params.get(name)
    if value is None or value == "":
        return default
    return value.lower() in ("true", "1")


def entity_id(request: Request, name: str, what: str) -> int:
    """Return a required numeric id. Ids that cannot exist are reported as not found."""
    value = parse_id(require_param(request, name))
    if value is None:
        raise SubsonicError.not_found(what)
    return value


# ---------------------------------------------------------------------------
# Mappers: library models -> wire entries
# ---------------------------------------------------------------------------


def _opt_id(value: int | None) -> str | None:
    return str(value) if value is not None else None


def song_to_child(song: Song) -> Child:
    return Child(
        id=str(song.id),
        title=song.title,
        parent=_opt_id(song.album_id),
        album=song.album,
        artist=song.artist,
        track=song.track,
        year=song.year,
        genre=song.genre,
        cover_art=_opt_id(song.album_id),
        size=song.size,
        content_type=song.content_type or None,
        suffix=song.suffix or None,
        duration=song.duration,
        bit_rate=song.bit_rate,
        play_count=song.play_count,
        created=song.created_at or None,
        album_id=_opt_id(song.album_id),
        artist_id=_opt_id(song.artist_id),
    )


def album_to_id3(album: Album) -> AlbumID3:
    return AlbumID3(
        id=str(album.id),
        name=album.name,
        artist=album.artist,
        artist_id=_opt_id(album.artist_id),
        cover_art=str(album.id),
        song_count=album.song_count,
        duration=album.duration,
        year=album.year,
        genre=album.genre,
        created=album.created_at or None,
    )
