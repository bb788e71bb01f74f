"""
api/routes/rest/playlists.py -- Playlist endpoints.

Routes (each also at <name>.view, GET and POST), all requiring auth:
  /rest/getPlaylists    -- the caller's playlists plus all public ones
  /rest/getPlaylist     -- id required
  /rest/createPlaylist  -- name required; songId may repeat
  /rest/updatePlaylist  -- playlistId required; owner or admin only
  /rest/deletePlaylist  -- id required; owner or admin only

Visibility: a private playlist of another user is reported as not found
(70), not as forbidden, so other users' ids are not revealed. A visible
playlist the caller does not own cannot be changed or deleted (50).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.routes.rest.common import bool_param, entity_id, ok, parse_id, require_param, song_to_child, subsonic_route
from auth.dependencies import get_subsonic_identity
from auth.models import Identity
from library.models import Playlist, Song
from library.store import LibraryStore
from subsonic.errors import ErrorCode, SubsonicError
from subsonic.payloads import PlaylistSummary, Playlists, PlaylistWithSongs

logger = logging.getLogger("sonicgate.api")

router = APIRouter()


def _summary(playlist: Playlist) -> PlaylistSummary:
    return PlaylistSummary(
        id=str(playlist.id),
        name=playlist.name,
        owner=playlist.owner_name,
        public=playlist.public,
        song_count=playlist.song_count,
        duration=playlist.duration,
        created=playlist.created_at or None,
        changed=playlist.changed_at or None,
    )


def _with_songs(playlist: Playlist, songs: list[Song]) -> PlaylistWithSongs:
    return PlaylistWithSongs(
        id=str(playlist.id),
        name=playlist.name,
        owner=playlist.owner_name,
        public=playlist.public,
        song_count=playlist.song_count,
        duration=playlist.duration,
        created=playlist.created_at or None,
        entry=[song_to_child(s) for s in songs],
    )


def _visible_playlist(request: Request, identity: Identity, id_param: str = "id") -> tuple[Playlist, list[Song]]:
    library: LibraryStore = request.app.state.library
    found = library.get_playlist(entity_id(request, id_param, "Playlist"))
    if found is None:
        raise SubsonicError.not_found("Playlist")
    playlist, _songs = found
    if playlist.owner_id != identity.id and not playlist.public and not identity.is_admin:
        raise SubsonicError.not_found("Playlist")
    return found


def _existing_song_ids(request: Request, library: LibraryStore, name: str) -> list[int]:
    """Every value of a repeated song id parameter; the first unknown id fails with 70."""
    song_ids: list[int] = []
    for raw in request.query_params.getlist(name):
        song_id = parse_id(raw)
        if song_id is None or library.get_song(song_id) is None:
            raise SubsonicError.not_found("Song")
        song_ids.append(song_id)
    return song_ids


def _indexes(request: Request, name: str) -> list[int]:
    indexes: list[int] = []
    for raw in request.query_params.getlist(name):
        try:
            indexes.append(int(raw))
        except ValueError:
            raise SubsonicError(ErrorCode.MISSING_PARAMETER, f"Invalid value for parameter: {name}") from None
    return indexes


def _owned_playlist(request: Request, identity: Identity, id_param: str) -> Playlist:
    playlist, _songs = _visible_playlist(request, identity, id_param)
    if playlist.owner_id != identity.id and not identity.is_admin:
        raise SubsonicError.not_authorized("Only the owner can change this playlist.")
    return playlist


@subsonic_route(router, "getPlaylists")
def get_playlists(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    library: LibraryStore = request.app.state.library
    return ok(request, Playlists(playlist=[_summary(p) for p in library.list_playlists(identity.id)]))


@subsonic_route(router, "getPlaylist")
def get_playlist(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    playlist, songs = _visible_playlist(request, identity)
    return ok(request, _with_songs(playlist, songs))


@subsonic_route(router, "createPlaylist")
def create_playlist(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    """Create a playlist from the given songs and return it.

    Every songId must name an existing song; the first unknown id fails the
    whole request with 70 and nothing is written.
    """
    name = require_param(request, "name")
    library: LibraryStore = request.app.state.library
    song_ids = _existing_song_ids(request, library, "songId")

    playlist_id = library.create_playlist(
        name, identity.id, identity.username, song_ids, public=bool_param(request, "public")
    )
    logger.info("Playlist %d created by '%s' (%d songs)", playlist_id, identity.username, len(song_ids))
    playlist, songs = library.get_playlist(playlist_id)
    return ok(request, _with_songs(playlist, songs))


@subsonic_route(router, "updatePlaylist")
def update_playlist(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    """Rename, publish/unpublish, and add or remove songs.

    songIndexToRemove positions refer to the playlist as it was before this
    call; removals happen first, then songIdToAdd entries are appended.
    """
    playlist = _owned_playlist(request, identity, "playlistId")
    library: LibraryStore = request.app.state.library
    add_song_ids = _existing_song_ids(request, library, "songIdToAdd")
    remove_indexes = _indexes(request, "songIndexToRemove")
    public = bool_param(request, "public") if request.query_params.get("public") else None

    library.update_playlist(
        playlist.id,
        name=request.query_params.get("name") or None,
        public=public,
        add_song_ids=add_song_ids,
        remove_indexes=remove_indexes,
    )
    logger.info(
        "Playlist %d updated by '%s' (+%d / -%d songs)",
        playlist.id,
        identity.username,
        len(add_song_ids),
        len(remove_indexes),
    )
    return ok(request)


@subsonic_route(router, "deletePlaylist")
def delete_playlist(request: Request, identity: Identity = Depends(get_subsonic_identity)) -> Response:
    playlist = _owned_playlist(request, identity, "id")
    library: LibraryStore = request.app.state.library
    library.delete_playlist(playlist.id)
    logger.info("Playlist %d deleted by '%s'", playlist.id, identity.username)
    return ok(request)
