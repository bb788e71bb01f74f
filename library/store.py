"""
library/store.py -- SQLAlchemy-backed persistence layer for the music catalogue.

Uses SQLAlchemy Core (not ORM) so the dataclasses in library/models.py remain
the authoritative domain representation.

Pattern: Repository + Data Mapper. LibraryStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly.

Scope: this is the read-mostly catalogue the /rest endpoints browse. Filling
it (library scanning, tag reading) is the job of an external scanner that
calls add_song(); ranking and search are not implemented here.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = LibraryStore("sqlite:///library.db")
    song_id = store.add_song(Song(title="Intro", artist="A", album="B", path="/music/a.flac"))
    albums = store.list_albums("newest", size=10)
    store.close()
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Engine

from library.models import Album, Artist, GenreCount, Playlist, Song

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'sonicgate_library.db'}"

# getAlbumList2 "type" values this store can order by.
ALBUM_LIST_TYPES = (
    "random",
    "newest",
    "frequent",
    "recent",
    "alphabeticalByName",
    "alphabeticalByArtist",
    "byYear",
    "byGenre",
)

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_artists = Table(
    "artists",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(512), nullable=False, unique=True),
)

_albums = Table(
    "albums",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(512), nullable=False),
    Column("artist_id", Integer, ForeignKey("artists.id"), nullable=False),
    Column("year", Integer),
    Column("genre", String(255)),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("name", "artist_id", name="uq_album_artist"),
)

_songs = Table(
    "songs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(512), nullable=False),
    Column("artist", String(512), nullable=False),
    Column("album", String(512), nullable=False),
    Column("album_artist", String(512)),
    Column("album_id", Integer, ForeignKey("albums.id"), nullable=False),
    Column("artist_id", Integer, ForeignKey("artists.id"), nullable=False),
    Column("track", Integer),
    Column("year", Integer),
    Column("genre", String(255)),
    Column("duration", Integer, nullable=False, server_default="0"),
    Column("size", Integer, nullable=False, server_default="0"),
    Column("suffix", String(16)),
    Column("content_type", String(64)),
    Column("bit_rate", Integer),
    Column("path", Text, nullable=False, unique=True),
    Column("play_count", Integer, nullable=False, server_default="0"),
    Column("last_played", String(32)),
    Column("created_at", String(32), nullable=False),
)

_playlists = Table(
    "playlists",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("owner_id", Integer, nullable=False),
    Column("owner_name", String(255), nullable=False),
    Column("public", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("changed_at", String(32), nullable=False),
)

_playlist_songs = Table(
    "playlist_songs",
    metadata,
    Column("playlist_id", Integer, ForeignKey("playlists.id"), nullable=False),
    Column("position", Integer, nullable=False),
    Column("song_id", Integer, ForeignKey("songs.id"), nullable=False),
    UniqueConstraint("playlist_id", "position", name="uq_playlist_position"),
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode; set per-connection because PRAGMAs are not inherited."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _album_summary_query():
    """Albums joined to their artist, with song count / duration / play stats aggregated."""
    return (
        select(
            _albums.c.id,
            _albums.c.name,
            _albums.c.year,
            _albums.c.genre,
            _albums.c.created_at,
            _albums.c.artist_id,
            _artists.c.name.label("artist"),
            func.count(_songs.c.id).label("song_count"),
            func.coalesce(func.sum(_songs.c.duration), 0).label("duration"),
            func.coalesce(func.sum(_songs.c.play_count), 0).label("play_count"),
            func.max(_songs.c.last_played).label("last_played"),
        )
        .select_from(
            _albums.join(_artists, _albums.c.artist_id == _artists.c.id).outerjoin(
                _songs, _songs.c.album_id == _albums.c.id
            )
        )
        .group_by(_albums.c.id, _artists.c.name)
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class LibraryStore:
    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Songs
    # ------------------------------------------------------------------

    def add_song(self, song: Song) -> int:
        """Insert a song, creating its album artist and album on first sight.

        The album is keyed by (album name, album artist), where album artist
        falls back to the track artist when the tag is empty.
        """
        album_artist = song.album_artist or song.artist
        now = _now_iso()
        with self.engine.connect() as conn:
            artist_id = conn.execute(select(_artists.c.id).where(_artists.c.name == album_artist)).scalar()
            if artist_id is None:
                artist_id = conn.execute(_artists.insert().values(name=album_artist)).inserted_primary_key[0]

            album_id = conn.execute(
                select(_albums.c.id).where((_albums.c.name == song.album) & (_albums.c.artist_id == artist_id))
            ).scalar()
            if album_id is None:
                album_id = conn.execute(
                    _albums.insert().values(
                        name=song.album,
                        artist_id=artist_id,
                        year=song.year,
                        genre=song.genre,
                        created_at=now,
                    )
                ).inserted_primary_key[0]

            result = conn.execute(
                _songs.insert().values(
                    title=song.title,
                    artist=song.artist,
                    album=song.album,
                    album_artist=song.album_artist or None,
                    album_id=album_id,
                    artist_id=artist_id,
                    track=song.track,
                    year=song.year,
                    genre=song.genre,
                    duration=song.duration,
                    size=song.size,
                    suffix=song.suffix or None,
                    content_type=song.content_type or None,
                    bit_rate=song.bit_rate,
                    path=song.path,
                    created_at=now,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_song(self, song_id: int) -> Optional[Song]:
        with self.engine.connect() as conn:
            row = conn.execute(_songs.select().where(_songs.c.id == song_id)).fetchone()
        return _row_to_song(row) if row is not None else None

    def count_songs(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_songs)).scalar() or 0

    def record_play(self, song_id: int) -> None:
        """Bump play_count and stamp last_played when a song is streamed."""
        with self.engine.connect() as conn:
            conn.execute(
                _songs.update()
                .where(_songs.c.id == song_id)
                .values(play_count=_songs.c.play_count + 1, last_played=_now_iso())
            )
            conn.commit()

    def random_songs(
        self,
        size: int = 10,
        genre: Optional[str] = None,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
    ) -> list[Song]:
        """Return up to ``size`` songs in random order, optionally filtered by genre and year."""
        stmt = _songs.select()
        if genre:
            stmt = stmt.where(_songs.c.genre == genre)
        if from_year is not None:
            stmt = stmt.where(_songs.c.year >= from_year)
        if to_year is not None:
            stmt = stmt.where(_songs.c.year <= to_year)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(func.random()).limit(size)).fetchall()
        return [_row_to_song(r) for r in rows]

    # ------------------------------------------------------------------
    # Artists / albums / genres
    # ------------------------------------------------------------------

    def list_artists(self) -> list[Artist]:
        """Return every album artist with its album count, ordered by name (case-insensitive)."""
        stmt = (
            select(_artists.c.id, _artists.c.name, func.count(_albums.c.id).label("album_count"))
            .select_from(_artists.outerjoin(_albums, _albums.c.artist_id == _artists.c.id))
            .group_by(_artists.c.id)
            .order_by(func.lower(_artists.c.name))
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [Artist(id=r.id, name=r.name, album_count=r.album_count) for r in rows]

    def get_artist(self, artist_id: int) -> Optional[tuple[Artist, list[Album]]]:
        """Return the album artist and their albums ordered by year then name, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_artists.select().where(_artists.c.id == artist_id)).fetchone()
            if row is None:
                return None
            albums = conn.execute(
                _album_summary_query()
                .where(_albums.c.artist_id == artist_id)
                .order_by(_albums.c.year, func.lower(_albums.c.name))
            ).fetchall()
        return Artist(id=row.id, name=row.name, album_count=len(albums)), [_row_to_album(a) for a in albums]

    def list_albums(
        self,
        list_type: str,
        size: int = 10,
        offset: int = 0,
        genre: Optional[str] = None,
        from_year: Optional[int] = None,
        to_year: Optional[int] = None,
    ) -> list[Album]:
        """Return one page of albums ordered per the getAlbumList2 ``type``.

        Raises ValueError for a type outside ALBUM_LIST_TYPES.
        """
        stmt = _album_summary_query()
        if list_type == "random":
            stmt = stmt.order_by(func.random())
        elif list_type == "newest":
            stmt = stmt.order_by(_albums.c.created_at.desc(), _albums.c.id.desc())
        elif list_type == "frequent":
            stmt = stmt.having(func.sum(_songs.c.play_count) > 0).order_by(func.sum(_songs.c.play_count).desc())
        elif list_type == "recent":
            stmt = stmt.having(func.max(_songs.c.last_played).is_not(None)).order_by(
                func.max(_songs.c.last_played).desc()
            )
        elif list_type == "alphabeticalByName":
            stmt = stmt.order_by(func.lower(_albums.c.name))
        elif list_type == "alphabeticalByArtist":
            stmt = stmt.order_by(func.lower(_artists.c.name), func.lower(_albums.c.name))
        elif list_type == "byYear":
            low, high = from_year or 0, to_year or 9999
            if low <= high:
                stmt = stmt.where(_albums.c.year.between(low, high)).order_by(_albums.c.year)
            else:
                stmt = stmt.where(_albums.c.year.between(high, low)).order_by(_albums.c.year.desc())
        elif list_type == "byGenre":
            stmt = stmt.where(_albums.c.genre == genre).order_by(func.lower(_albums.c.name))
        else:
            raise ValueError(f"Unknown album list type: {list_type!r}")

        with self.engine.connect() as conn:
            rows = conn.execute(stmt.limit(size).offset(offset)).fetchall()
        return [_row_to_album(r) for r in rows]

    def get_album(self, album_id: int) -> Optional[tuple[Album, list[Song]]]:
        """Return the album and its songs ordered by track number, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(_album_summary_query().where(_albums.c.id == album_id)).fetchone()
            if row is None:
                return None
            songs = conn.execute(
                _songs.select().where(_songs.c.album_id == album_id).order_by(_songs.c.track, _songs.c.title)
            ).fetchall()
        return _row_to_album(row), [_row_to_song(s) for s in songs]

    def list_genres(self) -> list[GenreCount]:
        stmt = (
            select(
                _songs.c.genre,
                func.count(_songs.c.id).label("song_count"),
                func.count(func.distinct(_songs.c.album_id)).label("album_count"),
            )
            .where(_songs.c.genre.is_not(None) & (_songs.c.genre != ""))
            .group_by(_songs.c.genre)
            .order_by(_songs.c.genre)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
        return [GenreCount(name=r.genre, song_count=r.song_count, album_count=r.album_count) for r in rows]

    # ------------------------------------------------------------------
    # Playlists
    # ------------------------------------------------------------------

    def create_playlist(
        self, name: str, owner_id: int, owner_name: str, song_ids: list[int], public: bool = False
    ) -> int:
        """Create a playlist with the given songs in order. Unknown song ids are skipped."""
        now = _now_iso()
        with self.engine.connect() as conn:
            playlist_id = conn.execute(
                _playlists.insert().values(
                    name=name,
                    owner_id=owner_id,
                    owner_name=owner_name,
                    public=public,
                    created_at=now,
                    changed_at=now,
                )
            ).inserted_primary_key[0]
            known = set(conn.execute(select(_songs.c.id).where(_songs.c.id.in_(song_ids))).scalars()) if song_ids else set()
            entries = [
                {"playlist_id": playlist_id, "position": pos, "song_id": sid}
                for pos, sid in enumerate(s for s in song_ids if s in known)
            ]
            if entries:
                conn.execute(_playlist_songs.insert(), entries)
            conn.commit()
        return playlist_id

    def list_playlists(self, user_id: int) -> list[Playlist]:
        """Return playlists the user owns plus every public playlist."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                self._playlist_summary_query()
                .where((_playlists.c.owner_id == user_id) | (_playlists.c.public.is_(True)))
                .order_by(func.lower(_playlists.c.name))
            ).fetchall()
        return [_row_to_playlist(r) for r in rows]

    def get_playlist(self, playlist_id: int) -> Optional[tuple[Playlist, list[Song]]]:
        """Return the playlist and its songs in playlist order, or None."""
        with self.engine.connect() as conn:
            row = conn.execute(self._playlist_summary_query().where(_playlists.c.id == playlist_id)).fetchone()
            if row is None:
                return None
            songs = conn.execute(
                select(_songs)
                .select_from(_playlist_songs.join(_songs, _playlist_songs.c.song_id == _songs.c.id))
                .where(_playlist_songs.c.playlist_id == playlist_id)
                .order_by(_playlist_songs.c.position)
            ).fetchall()
        return _row_to_playlist(row), [_row_to_song(s) for s in songs]

    def update_playlist(
        self,
        playlist_id: int,
        name: Optional[str] = None,
        public: Optional[bool] = None,
        add_song_ids: Sequence[int] = (),
        remove_indexes: Sequence[int] = (),
    ) -> bool:
        """Edit a playlist in place. Returns False if it does not exist.

        ``remove_indexes`` are positions in the current song list and are
        applied before ``add_song_ids`` are appended. Out-of-range positions
        and unknown song ids are ignored.
        """
        changes: dict = {"changed_at": _now_iso()}
        if name:
            changes["name"] = name
        if public is not None:
            changes["public"] = public
        with self.engine.connect() as conn:
            result = conn.execute(_playlists.update().where(_playlists.c.id == playlist_id).values(**changes))
            if result.rowcount == 0:
                return False
            if add_song_ids or remove_indexes:
                current = conn.execute(
                    select(_playlist_songs.c.song_id)
                    .where(_playlist_songs.c.playlist_id == playlist_id)
                    .order_by(_playlist_songs.c.position)
                ).scalars().all()
                dropped = set(remove_indexes)
                kept = [sid for pos, sid in enumerate(current) if pos not in dropped]
                known = (
                    set(conn.execute(select(_songs.c.id).where(_songs.c.id.in_(add_song_ids))).scalars())
                    if add_song_ids
                    else set()
                )
                song_ids = kept + [sid for sid in add_song_ids if sid in known]
                conn.execute(_playlist_songs.delete().where(_playlist_songs.c.playlist_id == playlist_id))
                if song_ids:
                    conn.execute(
                        _playlist_songs.insert(),
                        [{"playlist_id": playlist_id, "position": pos, "song_id": sid} for pos, sid in enumerate(song_ids)],
                    )
            conn.commit()
        return True

    def delete_playlist(self, playlist_id: int) -> bool:
        with self.engine.connect() as conn:
            conn.execute(_playlist_songs.delete().where(_playlist_songs.c.playlist_id == playlist_id))
            result = conn.execute(_playlists.delete().where(_playlists.c.id == playlist_id))
            conn.commit()
        return result.rowcount > 0

    @staticmethod
    def _playlist_summary_query():
        return (
            select(
                _playlists,
                func.count(_songs.c.id).label("song_count"),
                func.coalesce(func.sum(_songs.c.duration), 0).label("duration"),
            )
            .select_from(
                _playlists.outerjoin(_playlist_songs, _playlist_songs.c.playlist_id == _playlists.c.id).outerjoin(
                    _songs, _songs.c.id == _playlist_songs.c.song_id
                )
            )
            .group_by(_playlists.c.id)
        )

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_song(row) -> Song:
    return Song(
        id=row.id,
        title=row.title,
        artist=row.artist,
        album=row.album,
        album_artist=row.album_artist or "",
        album_id=row.album_id,
        artist_id=row.artist_id,
        track=row.track,
        year=row.year,
        genre=row.genre,
        duration=row.duration or 0,
        size=row.size or 0,
        suffix=row.suffix or "",
        content_type=row.content_type or "",
        bit_rate=row.bit_rate,
        path=row.path,
        play_count=row.play_count or 0,
        last_played=row.last_played,
        created_at=row.created_at,
    )


def _row_to_album(row) -> Album:
    return Album(
        id=row.id,
        name=row.name,
        artist=row.artist,
        artist_id=row.artist_id,
        year=row.year,
        genre=row.genre,
        song_count=row.song_count or 0,
        duration=row.duration or 0,
        created_at=row.created_at,
    )


def _row_to_playlist(row) -> Playlist:
    return Playlist(
        id=row.id,
        name=row.name,
        owner_id=row.owner_id,
        owner_name=row.owner_name,
        public=bool(row.public),
        song_count=row.song_count or 0,
        duration=row.duration or 0,
        created_at=row.created_at,
        changed_at=row.changed_at,
    )
