"""
library/models.py -- Domain dataclasses for the music catalogue.

These are pure data containers with zero logic. Queries and aggregation
live in library/store.py; wire shapes live in subsonic/payloads.py and the
mapping between the two lives in the /rest route modules.

id is None before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Song:
    title: str
    artist: str
    album: str
    path: str  # absolute path on disk, never sent to clients
    id: Optional[int] = None
    album_artist: str = ""  # falls back to artist when empty
    album_id: Optional[int] = None
    artist_id: Optional[int] = None
    track: Optional[int] = None
    year: Optional[int] = None
    genre: Optional[str] = None
    duration: int = 0  # seconds
    size: int = 0  # bytes
    suffix: str = ""
    content_type: str = ""
    bit_rate: Optional[int] = None
    play_count: int = 0
    last_played: Optional[str] = None
    created_at: str = ""


@dataclass
class Artist:
    name: str
    id: Optional[int] = None
    album_count: int = 0


@dataclass
class Album:
    name: str
    artist: str
    id: Optional[int] = None
    artist_id: Optional[int] = None
    year: Optional[int] = None
    genre: Optional[str] = None
    song_count: int = 0
    duration: int = 0
    created_at: str = ""


@dataclass
class Playlist:
    """A user playlist. owner_name is denormalized: users live in a separate store."""

    name: str
    owner_id: int
    owner_name: str
    id: Optional[int] = None
    public: bool = False
    song_count: int = 0
    duration: int = 0
    created_at: str = ""
    changed_at: str = ""


@dataclass
class GenreCount:
    name: str
    song_count: int = 0
    album_count: int = 0
