"""
tests/test_library_store.py -- Unit tests for library/store.py (LibraryStore).

Coverage:
  - add_song creates artists/albums once and links songs to them
  - album aggregation (song count, duration) and the getAlbumList2 orderings
  - get_artist, random_songs filters
  - genres, play counts, playlists (order, visibility, update, deletion)
"""

from __future__ import annotations

import itertools

import pytest

from library.models import Song
from library.store import LibraryStore

_counter = itertools.count()


def _song(title: str, artist: str, album: str, **kwargs) -> Song:
    return Song(title=title, artist=artist, album=album, path=f"/music/{artist}/{album}/{title}.mp3", **kwargs)


@pytest.fixture
def library():
    store = LibraryStore(db_url=f"sqlite:///file:test_library_store_{next(_counter)}?mode=memory&cache=shared&uri=true")
    yield store
    store.close()


@pytest.fixture
def stocked(library: LibraryStore) -> dict[str, int]:
    ids = {
        "a1": library.add_song(_song("A1", "Abba", "Arrival", track=1, year=1976, genre="Pop", duration=100)),
        "a2": library.add_song(_song("A2", "Abba", "Arrival", track=2, year=1976, genre="Pop", duration=200)),
        "b1": library.add_song(_song("B1", "The Beatles", "Help", track=1, year=1965, genre="Rock", duration=150)),
        "c1": library.add_song(_song("C1", "Cream", "Wheels", track=1, year=1968, genre="Rock", duration=300)),
    }
    return ids


class TestSongs:
    def test_add_and_get(self, library: LibraryStore) -> None:
        song_id = library.add_song(_song("Intro", "Band", "Debut", track=1, duration=180, suffix="mp3"))
        song = library.get_song(song_id)
        assert song.title == "Intro"
        assert song.album_id is not None and song.artist_id is not None
        assert song.suffix == "mp3"
        assert song.play_count == 0
        assert song.created_at

    def test_unknown_song(self, library: LibraryStore) -> None:
        assert library.get_song(12345) is None

    def test_album_artist_groups_compilations(self, library: LibraryStore) -> None:
        s1 = library.add_song(_song("One", "X", "Hits", album_artist="Various"))
        s2 = library.add_song(_song("Two", "Y", "Hits", album_artist="Various"))
        assert library.get_song(s1).album_id == library.get_song(s2).album_id
        assert [a.name for a in library.list_artists()] == ["Various"]

    def test_record_play(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        library.record_play(stocked["a1"])
        library.record_play(stocked["a1"])
        song = library.get_song(stocked["a1"])
        assert song.play_count == 2
        assert song.last_played is not None

    def test_count(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        assert library.count_songs() == 4


class TestArtistsAndAlbums:
    def test_artists_with_album_counts(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        artists = library.list_artists()
        assert [a.name for a in artists] == ["Abba", "Cream", "The Beatles"]
        assert all(a.album_count == 1 for a in artists)

    def test_get_album_orders_by_track(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        album_id = library.get_song(stocked["a2"]).album_id
        album, songs = library.get_album(album_id)
        assert album.name == "Arrival"
        assert album.artist == "Abba"
        assert album.song_count == 2
        assert album.duration == 300
        assert [s.title for s in songs] == ["A1", "A2"]

    def test_unknown_album(self, library: LibraryStore) -> None:
        assert library.get_album(999) is None

    def test_get_artist_lists_albums_by_year(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        library.add_song(_song("A9", "Abba", "Voulez-Vous", track=1, year=1979, duration=90))
        artist_id = library.get_song(stocked["a1"]).artist_id
        artist, albums = library.get_artist(artist_id)
        assert artist.name == "Abba"
        assert artist.album_count == 2
        assert [a.name for a in albums] == ["Arrival", "Voulez-Vous"]
        assert albums[0].song_count == 2

    def test_unknown_artist(self, library: LibraryStore) -> None:
        assert library.get_artist(999) is None

    def test_random_songs_filters(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        assert len(library.random_songs(size=10)) == 4
        assert len(library.random_songs(size=2)) == 2
        assert {s.title for s in library.random_songs(genre="Rock")} == {"B1", "C1"}
        assert {s.title for s in library.random_songs(from_year=1966, to_year=1980)} == {"A1", "A2", "C1"}
        assert library.random_songs(genre="Jazz") == []

    def test_alphabetical_by_name(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        names = [a.name for a in library.list_albums("alphabeticalByName", size=10)]
        assert names == ["Arrival", "Help", "Wheels"]

    def test_alphabetical_by_artist(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        artists = [a.artist for a in library.list_albums("alphabeticalByArtist", size=10)]
        assert artists == ["Abba", "Cream", "The Beatles"]

    def test_paging(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        page = library.list_albums("alphabeticalByName", size=1, offset=1)
        assert [a.name for a in page] == ["Help"]
        assert library.list_albums("alphabeticalByName", size=10, offset=10) == []

    def test_by_year_range_and_reverse(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        assert [a.year for a in library.list_albums("byYear", from_year=1960, to_year=1970)] == [1965, 1968]
        assert [a.year for a in library.list_albums("byYear", from_year=1970, to_year=1960)] == [1968, 1965]

    def test_by_genre(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        assert {a.name for a in library.list_albums("byGenre", genre="Rock")} == {"Help", "Wheels"}

    def test_frequent_and_recent_only_played(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        assert library.list_albums("frequent") == []
        library.record_play(stocked["c1"])
        assert [a.name for a in library.list_albums("frequent")] == ["Wheels"]
        assert [a.name for a in library.list_albums("recent")] == ["Wheels"]

    def test_random_and_newest_return_everything(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        assert len(library.list_albums("random", size=10)) == 3
        assert len(library.list_albums("newest", size=10)) == 3

    def test_unknown_list_type(self, library: LibraryStore) -> None:
        with pytest.raises(ValueError):
            library.list_albums("starred")

    def test_genres(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        genres = {g.name: g for g in library.list_genres()}
        assert set(genres) == {"Pop", "Rock"}
        assert genres["Rock"].song_count == 2
        assert genres["Rock"].album_count == 2
        assert genres["Pop"].album_count == 1


class TestPlaylists:
    def test_create_preserves_order(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        order = [stocked["c1"], stocked["a1"], stocked["c1"]]
        pid = library.create_playlist("Mix", 1, "alice", order)
        playlist, songs = library.get_playlist(pid)
        assert playlist.owner_name == "alice"
        assert playlist.song_count == 3
        assert playlist.duration == 700
        assert [s.id for s in songs] == order

    def test_unknown_songs_skipped(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        pid = library.create_playlist("Mix", 1, "alice", [stocked["a1"], 999])
        _playlist, songs = library.get_playlist(pid)
        assert [s.id for s in songs] == [stocked["a1"]]

    def test_empty_playlist(self, library: LibraryStore) -> None:
        pid = library.create_playlist("Empty", 1, "alice", [])
        playlist, songs = library.get_playlist(pid)
        assert playlist.song_count == 0 and playlist.duration == 0
        assert songs == []

    def test_visibility(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        library.create_playlist("Mine", 1, "alice", [])
        library.create_playlist("Bob private", 2, "bob", [])
        library.create_playlist("Bob public", 2, "bob", [], public=True)
        assert [p.name for p in library.list_playlists(1)] == ["Bob public", "Mine"]
        assert [p.name for p in library.list_playlists(2)] == ["Bob private", "Bob public"]

    def test_delete(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        pid = library.create_playlist("Mix", 1, "alice", [stocked["a1"]])
        assert library.delete_playlist(pid)
        assert library.get_playlist(pid) is None
        assert not library.delete_playlist(pid)

    def test_update_removes_then_appends(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        pid = library.create_playlist("Mix", 1, "alice", [stocked["a1"], stocked["a2"], stocked["b1"]])
        assert library.update_playlist(pid, add_song_ids=[stocked["c1"], 999], remove_indexes=[0, 2, 8])
        playlist, songs = library.get_playlist(pid)
        assert [s.id for s in songs] == [stocked["a2"], stocked["c1"]]
        assert playlist.song_count == 2
        assert playlist.name == "Mix"

    def test_update_name_and_visibility(self, library: LibraryStore, stocked: dict[str, int]) -> None:
        pid = library.create_playlist("Mix", 1, "alice", [stocked["a1"]])
        assert library.update_playlist(pid, name="Road trip", public=True)
        playlist, songs = library.get_playlist(pid)
        assert playlist.name == "Road trip"
        assert playlist.public is True
        assert [s.id for s in songs] == [stocked["a1"]]
        assert [p.name for p in library.list_playlists(2)] == ["Road trip"]

    def test_update_unknown_playlist(self, library: LibraryStore) -> None:
        assert not library.update_playlist(999, name="Nope")
