"""
Artifact builder for card decks.

Turns an ordered list of card shorthands into an OCI artifact staged in a
MemoryStore: one image/png layer per distinct card, a config blob holding
the card list, and a tagged manifest.
"""

import logging
import os

from .cards import normalize, read_deck, resolve
from .errors import AssetNotFound
from .models import (
    ANNOTATION_CARD,
    ANNOTATION_TITLE,
    ARTIFACT_TYPE,
    CARD_MEDIA_TYPE,
    CONFIG_MEDIA_TYPE,
    OCI_IMAGE_MANIFEST,
    Manifest,
    canonical_json,
)
from .store import MemoryStore

logger = logging.getLogger(__name__)


class AssetDirectory:
    """
    Asset resolver reading card images from a directory.

    Calling the resolver with a filename returns the file's bytes.
    """

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def __repr__(self):
        return f"AssetDirectory({self.path!r})"

    def __call__(self, filename: str) -> bytes:
        full_path = os.path.abspath(os.path.join(self.path, filename))
        if os.path.dirname(full_path) != self.path:
            raise AssetNotFound(f"card image {filename!r} is outside {self.path}")
        try:
            with open(full_path, "rb") as f:
                return f.read()
        except OSError as e:
            logger.error(f"Card image not readable: {full_path}")
            raise AssetNotFound(f"reading card image {filename}: {e}") from e


def build_deck(cards, assets, tag: str, deck_name: str = "cards.txt"):
    """
    Build a card deck artifact in a fresh in-memory store.

    Args:
        cards: Ordered card shorthands (e.g. ["2c", "ad"])
        assets: Callable returning image bytes for a filename (e.g. AssetDirectory)
        tag: Tag bound to the resulting manifest
        deck_name: Title annotation of the config blob

    Returns:
        Tuple of (MemoryStore, manifest Descriptor)

    Raises:
        InvalidCardCode: If a shorthand is not a valid card
        AssetNotFound: If a card image is missing
        InvalidReference: If the tag is invalid

    Duplicates:
        A card listed more than once (compared case-insensitively) becomes a
        single layer at the position of its first occurrence. The config blob
        keeps the list exactly as given, duplicates included.
    """
    cards = list(cards)
    logger.info(f"Building deck {deck_name!r}: {len(cards)} cards")

    store = MemoryStore()
    layers = []
    seen = set()
    for shorthand in cards:
        filename = resolve(shorthand)
        key = normalize(shorthand)
        if key in seen:
            logger.debug(f"Duplicate card {shorthand!r}, layer already prepared")
            continue
        seen.add(key)

        data = assets(filename)
        desc = store.put_if_absent(CARD_MEDIA_TYPE, data)
        layers.append(desc.with_annotations({
            ANNOTATION_TITLE: filename,
            ANNOTATION_CARD: shorthand,
        }))
        logger.info(f"  prepared {shorthand} ({filename}, {len(data)} bytes)")

    config_desc = store.put_if_absent(CONFIG_MEDIA_TYPE, canonical_json(cards))
    config_desc = config_desc.with_annotations({ANNOTATION_TITLE: deck_name})

    manifest = Manifest(artifact_type=ARTIFACT_TYPE, config=config_desc, layers=tuple(layers))
    manifest_desc = store.put_if_absent(OCI_IMAGE_MANIFEST, manifest.to_bytes())
    store.tag(manifest_desc, tag)

    logger.info(f"Packed manifest {manifest_desc.digest} with {len(layers)} layers as {tag!r}")
    return store, manifest_desc


def build_deck_from_file(deck_path: str, images_dir: str, tag: str):
    """
    Read a deck definition file and build its artifact.

    Returns:
        Tuple of (MemoryStore, manifest Descriptor), see build_deck()
    """
    cards = read_deck(deck_path)
    return build_deck(cards, AssetDirectory(images_dir), tag, deck_name=os.path.basename(deck_path))
