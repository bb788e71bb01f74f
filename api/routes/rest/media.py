"""
api/routes/rest/media.py -- Audio delivery and play tracking.

Routes (each also at <name>.view, GET and POST), all requiring auth:
  /rest/stream    -- serves the original file; records a play unless the
                     request is a Range fetch that starts past byte 0
  /rest/download  -- serves the original file as an attachment
  /rest/scrobble  -- records a play when submission is true (the default)

Files are served as stored, with HTTP Range support from Starlette's
FileResponse. A song whose row or file is missing is 70. Successful media
responses are raw audio, not envelopes; errors are still envelopes.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import FileResponse

from api.routes.rest.common import bool_param, entity_id, ok, subsonic_route
from auth.dependencies import get_subsonic_identity
from library.models import Song
from library.store import LibraryStore
from subsonic.errors import SubsonicError

logger = logging.getLogger("sonicgate.api")

router = APIRouter(dependencies=[Depends(get_subsonic_identity)])


def _song_with_file(request: Request) -> tuple[Song, Path]:
    library: LibraryStore = request.app.state.library
    song = library.get_song(entity_id(request, "id", "Song"))
    if song is None:
        raise SubsonicError.not_found("Song")
    path = Path(song.path)
    if not path.is_file():
        logger.warning("File for song %d is missing on disk", song.id)
        raise SubsonicError.not_found("Song file")
    return song, path


def _starts_playback(range_header: str | None) -> bool:
    """True unless the request is a Range fetch past the first byte (seek or resume)."""
    if not range_header:
        return True
    unit, _, ranges = range_header.partition("=")
    if unit.strip().lower() != "bytes":
        return True
    start = ranges.split(",", 1)[0].split("-", 1)[0].strip()
    return start == "0"


@subsonic_route(router, "stream")
def stream(request: Request) -> Response:
    song, path = _song_with_file(request)
    if _starts_playback(request.headers.get("range")):
        request.app.state.library.record_play(song.id)
    return FileResponse(path, media_type=song.content_type or None)


@subsonic_route(router, "download")
def download(request: Request) -> Response:
    song, path = _song_with_file(request)
    return FileResponse(path, media_type=song.content_type or None, filename=path.name)


@subsonic_route(router, "scrobble")
def scrobble(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    song_id = entity_id(request, "id", "Song")
    if library.get_song(song_id) is None:
        raise SubsonicError.not_found("Song")
    if bool_param(request, "submission", default=True):
        library.record_play(song_id)
    return ok(request)
