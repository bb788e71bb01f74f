"""
api/routes/rest/browsing.py -- Read-only catalogue endpoints (ID3 flavour).

Routes (each also at <name>.view, GET and POST), all requiring auth:
  /rest/getMusicFolders
  /rest/getArtists
  /rest/getArtist       -- id required; the artist with its albums
  /rest/getAlbumList2   -- type required; size capped at 500
  /rest/getAlbum        -- id required; unknown -> 70
  /rest/getSong         -- id required; unknown -> 70
  /rest/getRandomSongs  -- optional size, genre, fromYear, toYear
  /rest/getGenres
  /rest/getScanStatus

The server exposes a single music folder (id 1). Scanning is external, so
getScanStatus always reports scanning=false with the current song count.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.routes.rest.common import album_to_id3, entity_id, int_param, ok, require_param, song_to_child, subsonic_route
from auth.dependencies import get_subsonic_identity
from core.config import get_settings
from library.models import Artist
from library.store import ALBUM_LIST_TYPES, LibraryStore
from subsonic.errors import ErrorCode, SubsonicError
from subsonic.payloads import (
    AlbumList2,
    AlbumWithSongs,
    ArtistID3,
    ArtistIndex,
    Artists,
    ArtistWithAlbums,
    Genre,
    Genres,
    MusicFolder,
    MusicFolders,
    RandomSongs,
    ScanStatus,
    SongDetail,
)

# Every route on this router requires a resolved identity.
router = APIRouter(dependencies=[Depends(get_subsonic_identity)])

IGNORED_ARTICLES = "The El La Los Las Le Les"
_MAX_LIST_SIZE = 500


def _index_letter(name: str) -> str:
    """Return the index bucket for an artist name, skipping a leading article."""
    words = name.split(maxsplit=1)
    if len(words) == 2 and words[0].lower() in {a.lower() for a in IGNORED_ARTICLES.split()}:
        name = words[1]
    for ch in name:
        if ch.isalnum():
            return ch.upper() if ch.isalpha() else "#"
    return "#"


def _artist_indexes(artists: list[Artist]) -> list[ArtistIndex]:
    buckets: dict[str, list[ArtistID3]] = {}
    for artist in artists:
        entry = ArtistID3(id=str(artist.id), name=artist.name, album_count=artist.album_count)
        buckets.setdefault(_index_letter(artist.name), []).append(entry)
    return [ArtistIndex(name=letter, artist=buckets[letter]) for letter in sorted(buckets)]


@subsonic_route(router, "getMusicFolders")
def get_music_folders(request: Request) -> Response:
    return ok(request, MusicFolders(music_folder=[MusicFolder(id=1, name=get_settings().music_folder_name)]))


@subsonic_route(router, "getArtists")
def get_artists(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    return ok(request, Artists(ignored_articles=IGNORED_ARTICLES, index=_artist_indexes(library.list_artists())))


@subsonic_route(router, "getArtist")
def get_artist(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    found = library.get_artist(entity_id(request, "id", "Artist"))
    if found is None:
        raise SubsonicError.not_found("Artist")
    artist, albums = found
    return ok(
        request,
        ArtistWithAlbums(
            id=str(artist.id),
            name=artist.name,
            album_count=artist.album_count,
            album=[album_to_id3(a) for a in albums],
        ),
    )


@subsonic_route(router, "getAlbumList2")
def get_album_list2(request: Request) -> Response:
    """Page through albums in the order named by ``type``.

    byYear needs fromYear and toYear; byGenre needs genre.
    """
    list_type = require_param(request, "type")
    if list_type not in ALBUM_LIST_TYPES:
        raise SubsonicError(ErrorCode.MISSING_PARAMETER, f"Invalid list type: {list_type}")
    genre = require_param(request, "genre") if list_type == "byGenre" else None
    from_year = to_year = None
    if list_type == "byYear":
        from_year = int_param(request, "fromYear")
        to_year = int_param(request, "toYear")
        if from_year is None:
            raise SubsonicError.missing_parameter("fromYear")
        if to_year is None:
            raise SubsonicError.missing_parameter("toYear")

    size = min(max(int_param(request, "size", 10), 0), _MAX_LIST_SIZE)
    offset = max(int_param(request, "offset", 0), 0)

    library: LibraryStore = request.app.state.library
    albums = library.list_albums(list_type, size=size, offset=offset, genre=genre, from_year=from_year, to_year=to_year)
    return ok(request, AlbumList2(album=[album_to_id3(a) for a in albums]))


@subsonic_route(router, "getAlbum")
def get_album(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    found = library.get_album(entity_id(request, "id", "Album"))
    if found is None:
        raise SubsonicError.not_found("Album")
    album, songs = found
    return ok(
        request,
        AlbumWithSongs(
            id=str(album.id),
            name=album.name,
            artist=album.artist,
            artist_id=str(album.artist_id),
            cover_art=str(album.id),
            song_count=album.song_count,
            duration=album.duration,
            year=album.year,
            genre=album.genre,
            song=[song_to_child(s) for s in songs],
        ),
    )


@subsonic_route(router, "getSong")
def get_song(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    song = library.get_song(entity_id(request, "id", "Song"))
    if song is None:
        raise SubsonicError.not_found("Song")
    return ok(request, SongDetail(song=song_to_child(song)))


@subsonic_route(router, "getRandomSongs")
def get_random_songs(request: Request) -> Response:
    """Random songs, optionally limited to a genre and a year range."""
    size = min(max(int_param(request, "size", 10), 0), _MAX_LIST_SIZE)
    library: LibraryStore = request.app.state.library
    songs = library.random_songs(
        size=size,
        genre=request.query_params.get("genre") or None,
        from_year=int_param(request, "fromYear"),
        to_year=int_param(request, "toYear"),
    )
    return ok(request, RandomSongs(song=[song_to_child(s) for s in songs]))


@subsonic_route(router, "getGenres")
def get_genres(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    genres = [Genre(value=g.name, song_count=g.song_count, album_count=g.album_count) for g in library.list_genres()]
    return ok(request, Genres(genre=genres))


@subsonic_route(router, "getScanStatus")
def get_scan_status(request: Request) -> Response:
    library: LibraryStore = request.app.state.library
    return ok(request, ScanStatus(scanning=False, count=library.count_songs()))
