"""
subsonic/payloads.py -- The closed set of success payloads a response can carry.

Pattern: Data class (pure data container, zero logic) plus a tagged union.
Every top-level payload declares a PayloadKind; PAYLOAD_KEYS maps each kind
to the element name (XML) / object key (JSON) it is nested under. Adding a
payload class without a PAYLOAD_KEYS entry is caught by
tests/test_envelope.py::TestPayloadRegistry.

Field naming convention consumed by subsonic/envelope.py:
  - snake_case fields are written in camelCase on the wire.
  - scalar fields become XML attributes / JSON values; None is omitted.
  - list fields become repeated child elements / JSON arrays.
  - a field named ``value`` becomes the XML element text.
  - ``inline`` on a payload names the single field whose value is written
    directly under the payload key (getSong's ``song``, the extension list).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional


class PayloadKind(Enum):
    LICENSE = "license"
    ARTISTS = "artists"
    ARTIST = "artist"
    ALBUM_LIST2 = "album_list2"
    ALBUM = "album"
    SONG = "song"
    RANDOM_SONGS = "random_songs"
    PLAYLISTS = "playlists"
    PLAYLIST = "playlist"
    SCAN_STATUS = "scan_status"
    USERS = "users"
    USER = "user"
    OPEN_SUBSONIC_EXTENSIONS = "open_subsonic_extensions"
    API_KEY = "api_key"
    TOKEN_INFO = "token_info"
    MUSIC_FOLDERS = "music_folders"
    GENRES = "genres"


PAYLOAD_KEYS: dict[PayloadKind, str] = {
    PayloadKind.LICENSE: "license",
    PayloadKind.ARTISTS: "artists",
    PayloadKind.ARTIST: "artist",
    PayloadKind.ALBUM_LIST2: "albumList2",
    PayloadKind.ALBUM: "album",
    PayloadKind.SONG: "song",
    PayloadKind.RANDOM_SONGS: "randomSongs",
    PayloadKind.PLAYLISTS: "playlists",
    PayloadKind.PLAYLIST: "playlist",
    PayloadKind.SCAN_STATUS: "scanStatus",
    PayloadKind.USERS: "users",
    PayloadKind.USER: "user",
    PayloadKind.OPEN_SUBSONIC_EXTENSIONS: "openSubsonicExtensions",
    PayloadKind.API_KEY: "apiKey",
    PayloadKind.TOKEN_INFO: "tokenInfo",
    PayloadKind.MUSIC_FOLDERS: "musicFolders",
    PayloadKind.GENRES: "genres",
}


class Payload:
    """Marker base for top-level payloads. Subclasses set ``kind``."""

    kind: ClassVar[PayloadKind]
    inline: ClassVar[Optional[str]] = None


# ---------------------------------------------------------------------------
# Nested entries (never top-level)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Child:
    """A song as Subsonic clients see it (the protocol calls these "child")."""

    id: str
    title: str
    parent: Optional[str] = None
    is_dir: bool = False
    album: Optional[str] = None
    artist: Optional[str] = None
    track: Optional[int] = None
    year: Optional[int] = None
    genre: Optional[str] = None
    cover_art: Optional[str] = None
    size: Optional[int] = None
    content_type: Optional[str] = None
    suffix: Optional[str] = None
    duration: Optional[int] = None
    bit_rate: Optional[int] = None
    play_count: Optional[int] = None
    created: Optional[str] = None
    album_id: Optional[str] = None
    artist_id: Optional[str] = None
    type: str = "music"


@dataclass(frozen=True)
class ArtistID3:
    id: str
    name: str
    album_count: int = 0
    cover_art: Optional[str] = None


@dataclass(frozen=True)
class ArtistIndex:
    name: str
    artist: list[ArtistID3] = field(default_factory=list)


@dataclass(frozen=True)
class AlbumID3:
    id: str
    name: str
    artist: Optional[str] = None
    artist_id: Optional[str] = None
    cover_art: Optional[str] = None
    song_count: int = 0
    duration: int = 0
    year: Optional[int] = None
    genre: Optional[str] = None
    created: Optional[str] = None


@dataclass(frozen=True)
class PlaylistSummary:
    id: str
    name: str
    owner: str
    public: bool
    song_count: int
    duration: int
    created: Optional[str] = None
    changed: Optional[str] = None


@dataclass(frozen=True)
class UserEntry:
    username: str
    admin_role: bool
    settings_role: bool
    stream_role: bool = True
    download_role: bool = True
    playlist_role: bool = True
    scrobbling_enabled: bool = False
    folder: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class Extension:
    name: str
    versions: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class MusicFolder:
    id: int
    name: str


@dataclass(frozen=True)
class Genre:
    value: str
    song_count: int = 0
    album_count: int = 0


# ---------------------------------------------------------------------------
# Top-level payloads
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class License(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.LICENSE
    valid: bool = True


@dataclass(frozen=True)
class Artists(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.ARTISTS
    ignored_articles: str = "The El La Los Las Le Les"
    index: list[ArtistIndex] = field(default_factory=list)


@dataclass(frozen=True)
class ArtistWithAlbums(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.ARTIST
    id: str = ""
    name: str = ""
    album_count: int = 0
    album: list[AlbumID3] = field(default_factory=list)


@dataclass(frozen=True)
class AlbumList2(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.ALBUM_LIST2
    album: list[AlbumID3] = field(default_factory=list)


@dataclass(frozen=True)
class AlbumWithSongs(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.ALBUM
    id: str = ""
    name: str = ""
    artist: Optional[str] = None
    artist_id: Optional[str] = None
    cover_art: Optional[str] = None
    song_count: int = 0
    duration: int = 0
    year: Optional[int] = None
    genre: Optional[str] = None
    song: list[Child] = field(default_factory=list)


@dataclass(frozen=True)
class SongDetail(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.SONG
    inline: ClassVar[Optional[str]] = "song"
    song: Optional[Child] = None


@dataclass(frozen=True)
class RandomSongs(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.RANDOM_SONGS
    song: list[Child] = field(default_factory=list)


@dataclass(frozen=True)
class Playlists(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.PLAYLISTS
    playlist: list[PlaylistSummary] = field(default_factory=list)


@dataclass(frozen=True)
class PlaylistWithSongs(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.PLAYLIST
    id: str = ""
    name: str = ""
    owner: str = ""
    public: bool = False
    song_count: int = 0
    duration: int = 0
    created: Optional[str] = None
    entry: list[Child] = field(default_factory=list)


@dataclass(frozen=True)
class ScanStatus(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.SCAN_STATUS
    scanning: bool = False
    count: int = 0


@dataclass(frozen=True)
class Users(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.USERS
    user: list[UserEntry] = field(default_factory=list)


@dataclass(frozen=True)
class UserDetail(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.USER
    inline: ClassVar[Optional[str]] = "user"
    user: Optional[UserEntry] = None


@dataclass(frozen=True)
class OpenSubsonicExtensions(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.OPEN_SUBSONIC_EXTENSIONS
    inline: ClassVar[Optional[str]] = "extensions"
    extensions: list[Extension] = field(default_factory=list)


@dataclass(frozen=True)
class ApiKey(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.API_KEY
    key: str = ""


@dataclass(frozen=True)
class TokenInfo(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.TOKEN_INFO
    username: str = ""


@dataclass(frozen=True)
class MusicFolders(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.MUSIC_FOLDERS
    music_folder: list[MusicFolder] = field(default_factory=list)


@dataclass(frozen=True)
class Genres(Payload):
    kind: ClassVar[PayloadKind] = PayloadKind.GENRES
    genre: list[Genre] = field(default_factory=list)
