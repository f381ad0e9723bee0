"""Tests for building card deck artifacts."""

import json

import pytest

from cardoci.builder import AssetDirectory, build_deck, build_deck_from_file
from cardoci.errors import AssetNotFound, InvalidCardCode, InvalidReference
from cardoci.models import (
    ANNOTATION_CARD,
    ANNOTATION_TITLE,
    ARTIFACT_TYPE,
    CARD_MEDIA_TYPE,
    CONFIG_MEDIA_TYPE,
    Manifest,
)
from cardoci.validation import compute_sha256

from .conftest import fake_png


def load_manifest(store, tag):
    desc = store.resolve(tag)
    return Manifest.from_bytes(store.get(desc))


def test_build_deck_layers_in_input_order(images_dir):
    store, desc = build_deck(["2c", "ad"], AssetDirectory(images_dir), "latest")
    assert store.resolve("latest") == desc

    manifest = load_manifest(store, "latest")
    assert manifest.artifact_type == ARTIFACT_TYPE
    assert [layer.annotations for layer in manifest.layers] == [
        {ANNOTATION_TITLE: "2_of_clubs.png", ANNOTATION_CARD: "2c"},
        {ANNOTATION_TITLE: "ace_of_diamonds.png", ANNOTATION_CARD: "ad"},
    ]
    for layer in manifest.layers:
        assert layer.media_type == CARD_MEDIA_TYPE
        assert store.get(layer) == fake_png(layer.title)
        assert layer.digest == compute_sha256(fake_png(layer.title))


def test_build_deck_config_holds_card_list(images_dir):
    store, _ = build_deck(["2c", "ad"], AssetDirectory(images_dir), "v1", deck_name="my-deck.txt")
    manifest = load_manifest(store, "v1")
    assert manifest.config.media_type == CONFIG_MEDIA_TYPE
    assert manifest.config.annotations == {ANNOTATION_TITLE: "my-deck.txt"}
    assert json.loads(store.get(manifest.config)) == ["2c", "ad"]


def test_build_is_deterministic(images_dir):
    assets = AssetDirectory(images_dir)
    store_a, desc_a = build_deck(["kh", "2c", "10d"], assets, "latest")
    store_b, desc_b = build_deck(["kh", "2c", "10d"], assets, "latest")
    assert desc_a == desc_b
    assert store_a.get(desc_a) == store_b.get(desc_b)


def test_order_changes_manifest(images_dir):
    assets = AssetDirectory(images_dir)
    _, desc_a = build_deck(["2c", "ad"], assets, "latest")
    _, desc_b = build_deck(["ad", "2c"], assets, "latest")
    assert desc_a.digest != desc_b.digest


def test_duplicate_cards_become_one_layer(images_dir):
    store, _ = build_deck(["2c", "ad", "2C", "2c"], AssetDirectory(images_dir), "latest")
    manifest = load_manifest(store, "latest")

    assert [layer.annotations[ANNOTATION_CARD] for layer in manifest.layers] == ["2c", "ad"]
    assert json.loads(store.get(manifest.config)) == ["2c", "ad", "2C", "2c"]
    # two images, config, manifest
    assert len(store) == 4


def test_empty_deck(images_dir):
    store, _ = build_deck([], AssetDirectory(images_dir), "latest")
    manifest = load_manifest(store, "latest")
    assert manifest.layers == ()
    assert json.loads(store.get(manifest.config)) == []


def test_invalid_card_code(images_dir):
    with pytest.raises(InvalidCardCode, match="zz"):
        build_deck(["2c", "zz"], AssetDirectory(images_dir), "latest")


def test_missing_image(tmp_path):
    with pytest.raises(AssetNotFound, match="2_of_clubs.png"):
        build_deck(["2c"], AssetDirectory(tmp_path / "nonexistent"), "latest")


def test_invalid_tag(images_dir):
    with pytest.raises(InvalidReference):
        build_deck(["2c"], AssetDirectory(images_dir), "not a tag")


def test_asset_directory_stays_inside(images_dir):
    with pytest.raises(AssetNotFound):
        AssetDirectory(images_dir)("../deck.txt")


def test_build_deck_from_file(images_dir, write_deck):
    deck_path = write_deck(["# my deck", "2c", "", "ad"], name="cards.txt")
    store, desc = build_deck_from_file(deck_path, str(images_dir), "v2")
    manifest = load_manifest(store, "v2")
    assert len(manifest.layers) == 2
    assert manifest.config.annotations[ANNOTATION_TITLE] == "cards.txt"
