"""Tests for loading and verifying decks."""

import json

import pytest

from cardoci.builder import AssetDirectory, build_deck
from cardoci.cards import resolve
from cardoci.errors import (
    BlobCorrupted,
    ConfigDecodeError,
    InvalidReference,
    ManifestDecodeError,
    TagNotFound,
)
from cardoci.models import (
    ARTIFACT_TYPE,
    CARD_MEDIA_TYPE,
    CONFIG_MEDIA_TYPE,
    OCI_IMAGE_MANIFEST,
    Manifest,
)
from cardoci.reader import load_deck, open_source
from cardoci.remote import RemoteStore
from cardoci.store import LayoutStore, MemoryStore
from cardoci.transfer import push_deck, save_deck_local

from .conftest import fake_png


def blob_path(root, digest):
    return root / "blobs" / "sha256" / digest.split(":", 1)[1]


def test_end_to_end_local_layout(images_dir, write_deck, tmp_path):
    out = tmp_path / "deck-layout"
    save_deck_local(str(out), write_deck(["2c", "ad"]), str(images_dir), "latest")

    store, tag = open_source(str(out))
    assert isinstance(store, LayoutStore)
    assert tag == "latest"

    manifest = Manifest.from_bytes(store.get(store.resolve("latest")))
    assert len(manifest.layers) == 2

    deck = load_deck(store, tag)
    assert deck.cards == ["2c", "ad"]
    assert set(deck.images) == {"2_of_clubs.png", "ace_of_diamonds.png"}
    for code in deck.cards:
        assert deck.images[resolve(code)] == fake_png(resolve(code))


def test_end_to_end_registry(images_dir, write_deck, registry):
    target = f"{registry}/deck:v1"
    push_deck(target, write_deck(["2c", "ad"]), str(images_dir), plain_http=True)

    store, tag = open_source(target, plain_http=True)
    assert isinstance(store, RemoteStore)
    assert tag == "v1"

    deck = load_deck(store, tag)
    assert deck.cards == ["2c", "ad"]
    assert set(deck.images) == {"2_of_clubs.png", "ace_of_diamonds.png"}


def test_duplicates_survive_round_trip(images_dir):
    store, _ = build_deck(["2c", "2c", "ad"], AssetDirectory(images_dir), "latest")
    deck = load_deck(store, "latest")
    assert deck.cards == ["2c", "2c", "ad"]
    assert set(deck.images) == {"2_of_clubs.png", "ace_of_diamonds.png"}


def test_tampered_layer_is_detected(images_dir, write_deck, tmp_path):
    out = tmp_path / "deck-layout"
    save_deck_local(str(out), write_deck(["2c"]), str(images_dir), "latest")

    index = json.loads((out / "index.json").read_text())
    manifest = json.loads(blob_path(out, index["manifests"][0]["digest"]).read_bytes())
    blob_path(out, manifest["layers"][0]["digest"]).write_bytes(b"tampered garbage data")

    store, tag = open_source(str(out))
    with pytest.raises(BlobCorrupted):
        load_deck(store, tag)


@pytest.mark.parametrize("flip_at", [0, 100])
def test_single_bit_flip_is_detected(images_dir, write_deck, tmp_path, flip_at):
    out = tmp_path / "deck-layout"
    report = save_deck_local(str(out), write_deck(["ks"]), str(images_dir), "latest")
    layer = [d for d in report.uploaded if d.media_type == CARD_MEDIA_TYPE][0]

    path = blob_path(out, layer.digest)
    data = bytearray(path.read_bytes())
    data[flip_at] ^= 0x01
    path.write_bytes(bytes(data))

    with pytest.raises(BlobCorrupted):
        load_deck(LayoutStore(out), "latest")


def test_tampered_manifest_is_detected(images_dir, write_deck, tmp_path):
    out = tmp_path / "deck-layout"
    report = save_deck_local(str(out), write_deck(["2c"]), str(images_dir), "latest")
    path = blob_path(out, report.manifest.digest)
    path.write_bytes(path.read_bytes().replace(b"2c", b"3c"))

    with pytest.raises(BlobCorrupted):
        load_deck(LayoutStore(out), "latest")


def put_manifest(store, manifest_bytes):
    desc = store.put_if_absent(OCI_IMAGE_MANIFEST, manifest_bytes)
    store.tag(desc, "latest")


def test_malformed_manifest():
    store = MemoryStore()
    put_manifest(store, b"{this is not json")
    with pytest.raises(ManifestDecodeError):
        load_deck(store, "latest")


def test_malformed_config():
    store = MemoryStore()
    config = store.put_if_absent(CONFIG_MEDIA_TYPE, b'{"cards": "2c"}')
    put_manifest(store, Manifest(artifact_type=ARTIFACT_TYPE, config=config).to_bytes())
    with pytest.raises(ConfigDecodeError):
        load_deck(store, "latest")


def test_manifest_without_config_uses_layer_annotations(images_dir):
    store = MemoryStore()
    layer = store.put_if_absent(CARD_MEDIA_TYPE, b"png").with_annotations({
        "org.opencontainers.image.title": "jack_of_hearts.png",
        "vnd.card-deck.card": "jh",
    })
    put_manifest(store, Manifest(artifact_type=ARTIFACT_TYPE, config=None, layers=(layer,)).to_bytes())

    deck = load_deck(store, "latest")
    assert deck.cards == ["jh"]
    assert deck.images == {"jack_of_hearts.png": b"png"}


def test_layers_without_title_or_png_type_are_ignored():
    store = MemoryStore()
    config = store.put_if_absent(CONFIG_MEDIA_TYPE, b"[]")
    untitled = store.put_if_absent(CARD_MEDIA_TYPE, b"untitled")
    other = store.put_if_absent("text/plain", b"notes").with_annotations({
        "org.opencontainers.image.title": "notes.txt",
    })
    put_manifest(store, Manifest(
        artifact_type=ARTIFACT_TYPE, config=config, layers=(untitled, other),
    ).to_bytes())

    assert load_deck(store, "latest").images == {}


def test_unknown_tag(tmp_path):
    with pytest.raises(TagNotFound):
        load_deck(LayoutStore(tmp_path / "empty"), "latest")


def test_open_source_rejects_garbage(tmp_path):
    with pytest.raises(InvalidReference):
        open_source(str(tmp_path / "missing-dir"))
