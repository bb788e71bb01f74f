"""
tests/conftest.py -- Shared test fixtures for SonicGate integration tests.

This module provides:
  - make_test_stores(): creates isolated in-memory DBs for auth + library
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - rest_client: TestClient with a seeded user base and a small library
  - rest(): helper that calls a /rest endpoint as JSON and unwraps the envelope

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth/core import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.credentials import hash_password
from auth.store import UserStore
from library.models import Song
from library.store import LibraryStore

# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def memory_url(name: str) -> str:
    """Return a named shared-memory SQLite URL."""
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


def make_test_stores(db_suffix: str) -> tuple[UserStore, LibraryStore]:
    """Create isolated named shared-memory SQLite stores for one test module.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (e.g. 'rest', 'web').
    """
    user_store = UserStore(db_url=memory_url(f"test_auth_{db_suffix}"))
    library = LibraryStore(db_url=memory_url(f"test_library_{db_suffix}"))
    return user_store, library


def _patch_lifespan(user_store: UserStore, library: LibraryStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured databases.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.library = library
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@dataclass
class Seed:
    """Ids and secrets created for the rest_client module fixture."""

    alice_id: int
    bob_id: int
    admin_id: int
    nolegacy_id: int
    song_ids: list[int]
    audio_path: Path


def _seed(user_store: UserStore, library: LibraryStore, audio_dir: Path) -> Seed:
    alice_id = user_store.create_user("alice", hash_password("secret"), legacy_password="secret")
    bob_id = user_store.create_user("bob", hash_password("hunter2"), legacy_password="hunter2")
    admin_id = user_store.create_user("root", hash_password("rootpass"), legacy_password="rootpass", is_admin=True)
    nolegacy_id = user_store.create_user("carol", hash_password("bcryptonly"))

    audio_path = audio_dir / "intro.mp3"
    audio_path.write_bytes(b"ID3" + bytes(range(256)) * 4)

    song_ids = [
        library.add_song(
            Song(
                title="Intro",
                artist="The Band",
                album="First Light",
                path=str(audio_path),
                track=1,
                year=2001,
                genre="Rock",
                duration=180,
                size=audio_path.stat().st_size,
                suffix="mp3",
                content_type="audio/mpeg",
                bit_rate=320,
            )
        ),
        library.add_song(
            Song(
                title="Outro",
                artist="The Band",
                album="First Light",
                path=str(audio_dir / "missing.mp3"),
                track=2,
                year=2001,
                genre="Rock",
                duration=200,
            )
        ),
        library.add_song(
            Song(
                title="Blue",
                artist="Azure",
                album="Colours",
                path=str(audio_dir / "blue.flac"),
                track=1,
                year=2015,
                genre="Jazz",
                duration=240,
            )
        ),
    ]
    return Seed(alice_id, bob_id, admin_id, nolegacy_id, song_ids, audio_path)


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def rest_client(request, tmp_path_factory) -> Generator[tuple[TestClient, Seed], None, None]:
    """Yield (client, seed) for /rest integration tests.

    Users: alice/secret, bob/hunter2, root/rootpass (admin) all with a legacy
    plaintext; carol/bcryptonly without one. Library: two albums, three
    songs, of which only the first has a file on disk.
    """
    user_store, library = make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    seed = _seed(user_store, library, tmp_path_factory.mktemp("audio"))

    app.router.lifespan_context = _patch_lifespan(user_store, library)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, seed

    user_store.close()
    library.close()


def rest(client: TestClient, endpoint: str, **params) -> tuple[int, dict]:
    """GET /rest/<endpoint>?f=json&... and return (status_code, inner envelope)."""
    params.setdefault("f", "json")
    resp = client.get(f"/rest/{endpoint}", params=params)
    return resp.status_code, resp.json()["subsonic-response"]


ALICE = {"u": "alice", "p": "secret"}
BOB = {"u": "bob", "p": "hunter2"}
ADMIN = {"u": "root", "p": "rootpass"}
