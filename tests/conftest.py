"""Shared test fixtures for card-oci."""

import threading

import pytest
from werkzeug.serving import make_server

from cardoci.cards import RANKS, SUITS
from cardoci.registry_server import create_registry_app

PNG_HEADER = b"\x89PNG\r\n\x1a\n"


def fake_png(filename: str) -> bytes:
    """Distinct, deterministic bytes standing in for a card image."""
    return PNG_HEADER + filename.encode() * 8


@pytest.fixture
def images_dir(tmp_path):
    """Directory with one fake PNG per card of a standard deck."""
    path = tmp_path / "PNG-cards"
    path.mkdir()
    for rank in RANKS.values():
        for suit in SUITS.values():
            filename = f"{rank}_of_{suit}.png"
            (path / filename).write_bytes(fake_png(filename))
    return path


@pytest.fixture
def write_deck(tmp_path):
    """Factory writing a line-oriented deck file and returning its path."""

    def _write(cards, name="deck.txt"):
        path = tmp_path / name
        path.write_text("".join(f"{c}\n" for c in cards))
        return str(path)

    return _write


@pytest.fixture
def registry():
    """In-memory OCI registry on a random local port; yields "127.0.0.1:<port>"."""
    server = make_server("127.0.0.1", 0, create_registry_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"127.0.0.1:{server.server_port}"
    finally:
        server.shutdown()
        thread.join(timeout=5)
