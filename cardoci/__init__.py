"""
Card decks as content-addressed OCI artifacts.

Packs playing-card images into an OCI artifact, publishes it to a registry
or a local OCI image layout, and loads it back with every blob verified.

Artifact Format:
    manifest (application/vnd.oci.image.manifest.v1+json,
              artifactType application/vnd.card-deck)
    ├── config  application/vnd.card-deck.config+json  JSON array of card codes
    └── layers  image/png, one per distinct card, annotated with
                org.opencontainers.image.title (filename) and
                vnd.card-deck.card (card code)
"""

__version__ = "0.1.0"

# Import key components for convenience
from .config import Config
from .errors import (
    AssetNotFound,
    BlobCorrupted,
    BlobNotFound,
    CardOCIError,
    ConfigDecodeError,
    DeckFileError,
    InvalidCardCode,
    InvalidReference,
    LayoutError,
    ManifestDecodeError,
    RegistryError,
    TagNotFound,
    TransferFailed,
)
from .validation import compute_sha256, verify_blob, parse_reference, Reference
from .cards import resolve, filename_to_code, read_deck, parse_deck
from .models import Deck, Descriptor, Manifest
from .store import BlobStore, MemoryStore, LayoutStore
from .remote import RemoteStore
from .builder import AssetDirectory, build_deck, build_deck_from_file
from .transfer import TransferEvent, TransferReport, copy, push_deck, save_deck_local
from .reader import open_source, load_deck

__all__ = [
    "Config",
    "AssetNotFound",
    "BlobCorrupted",
    "BlobNotFound",
    "CardOCIError",
    "ConfigDecodeError",
    "DeckFileError",
    "InvalidCardCode",
    "InvalidReference",
    "LayoutError",
    "ManifestDecodeError",
    "RegistryError",
    "TagNotFound",
    "TransferFailed",
    "compute_sha256",
    "verify_blob",
    "parse_reference",
    "Reference",
    "resolve",
    "filename_to_code",
    "read_deck",
    "parse_deck",
    "Deck",
    "Descriptor",
    "Manifest",
    "BlobStore",
    "MemoryStore",
    "LayoutStore",
    "RemoteStore",
    "AssetDirectory",
    "build_deck",
    "build_deck_from_file",
    "TransferEvent",
    "TransferReport",
    "copy",
    "push_deck",
    "save_deck_local",
    "open_source",
    "load_deck",
]
