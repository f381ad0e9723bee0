"""
Reader/verifier for card deck artifacts.

Resolves a tag in any blob store, fetches the manifest, config and card
layers, verifies every blob against its descriptor and returns the
in-memory Deck served by cardoci.routes.
"""

import json
import logging
import os

from .errors import ConfigDecodeError
from .models import ANNOTATION_CARD, CARD_MEDIA_TYPE, Deck, Manifest
from .remote import RemoteStore
from .store import LayoutStore
from .validation import DEFAULT_TAG, parse_reference, verify_blob

logger = logging.getLogger(__name__)


def open_source(source: str, plain_http=None, session=None):
    """
    Open a local OCI layout directory or a remote registry reference.

    Args:
        source: Directory path or registry reference ("localhost:5000/deck:v1")
        plain_http: Use HTTP for registries. Default: config.PLAIN_HTTP
        session: Optional requests.Session for registries

    Returns:
        Tuple of (BlobStore, tag). Directories always use the "latest" tag.

    Raises:
        InvalidReference: If source is neither a directory nor a valid reference
    """
    if os.path.isdir(source):
        logger.info(f"Opening OCI layout {source}")
        return LayoutStore(source), DEFAULT_TAG

    ref = parse_reference(source)
    logger.info(f"Opening registry repository {ref}")
    return RemoteStore(ref, plain_http=plain_http, session=session), ref.tag


def _fetch(store, descriptor) -> bytes:
    return verify_blob(descriptor, store.get(descriptor))


def _decode_cards(data: bytes) -> list:
    try:
        cards = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigDecodeError(f"unmarshaling config: {e}") from e
    if not isinstance(cards, list) or not all(isinstance(c, str) for c in cards):
        raise ConfigDecodeError("unmarshaling config: expected a JSON array of strings")
    return cards


def load_deck(store, tag: str) -> Deck:
    """
    Fetch and verify a card deck artifact.

    Args:
        store: BlobStore to read from
        tag: Tag of the deck manifest

    Returns:
        Deck with the card list and a filename -> PNG bytes map

    Raises:
        TagNotFound: If the tag is not bound
        BlobNotFound: If a referenced blob is missing
        BlobCorrupted: If any blob fails digest or size verification
        ManifestDecodeError: If the manifest is malformed
        ConfigDecodeError: If the config is not a JSON array of strings
    """
    desc = store.resolve(tag)
    manifest = Manifest.from_bytes(_fetch(store, desc))
    logger.debug(f"Loaded manifest {desc.digest}: {len(manifest.layers)} layers")

    if manifest.config is not None:
        cards = _decode_cards(_fetch(store, manifest.config))
    else:
        cards = [layer.annotations[ANNOTATION_CARD] for layer in manifest.layers
                 if ANNOTATION_CARD in layer.annotations]

    images = {}
    for layer in manifest.layers:
        if layer.media_type != CARD_MEDIA_TYPE:
            continue
        filename = layer.title
        if not filename:
            continue
        images[filename] = _fetch(store, layer)

    logger.info(f"Loaded deck {tag!r}: {len(cards)} cards, {len(images)} images")
    return Deck(cards=cards, images=images)
