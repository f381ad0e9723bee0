"""
OCI data model for card deck artifacts.

Descriptors, manifests and the reconstructed deck, plus the media types and
annotation keys used by the artifact.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Optional

from .errors import ManifestDecodeError

# Media types
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
MANIFEST_MEDIA_TYPES = frozenset({OCI_IMAGE_MANIFEST, OCI_IMAGE_INDEX})

ARTIFACT_TYPE = "application/vnd.card-deck"
CONFIG_MEDIA_TYPE = "application/vnd.card-deck.config+json"
CARD_MEDIA_TYPE = "image/png"

# Annotations
ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_REF_NAME = "org.opencontainers.image.ref.name"
ANNOTATION_CARD = "vnd.card-deck.card"


def canonical_json(obj) -> bytes:
    """Encode with sorted keys and compact separators so equal values give equal bytes."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class Descriptor:
    """
    Reference to a blob by media type, digest and size.

    Annotations travel with the descriptor inside manifests; they are not
    part of the stored blob and do not affect its digest.
    """

    media_type: str
    digest: str
    size: int
    annotations: dict = field(default_factory=dict)

    @property
    def title(self) -> Optional[str]:
        return self.annotations.get(ANNOTATION_TITLE)

    def with_annotations(self, annotations: dict) -> "Descriptor":
        return replace(self, annotations=dict(annotations))

    def to_dict(self) -> dict:
        d = {"mediaType": self.media_type, "digest": self.digest, "size": self.size}
        if self.annotations:
            d["annotations"] = dict(self.annotations)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Descriptor":
        annotations = d.get("annotations") or {}
        if not isinstance(annotations, dict):
            raise ValueError("descriptor annotations must be an object")
        size = d["size"]
        if not isinstance(size, int) or size < 0:
            raise ValueError(f"invalid descriptor size {size!r}")
        return cls(
            media_type=str(d["mediaType"]),
            digest=str(d["digest"]),
            size=size,
            annotations={str(k): str(v) for k, v in annotations.items()},
        )


@dataclass(frozen=True)
class Manifest:
    """
    OCI image manifest describing one version of a card deck.

    Format:
        {
            "schemaVersion": 2,
            "mediaType": "application/vnd.oci.image.manifest.v1+json",
            "artifactType": "application/vnd.card-deck",
            "config": {"mediaType": "application/vnd.card-deck.config+json", ...},
            "layers": [
                {
                    "mediaType": "image/png",
                    "digest": "sha256:...",
                    "size": 1234,
                    "annotations": {
                        "org.opencontainers.image.title": "2_of_clubs.png",
                        "vnd.card-deck.card": "2c"
                    }
                }
            ]
        }
    """

    artifact_type: str
    config: Optional[Descriptor]
    layers: tuple = ()
    annotations: dict = field(default_factory=dict)

    def references(self) -> list:
        """Descriptors referenced by the manifest, config first then layers in order."""
        refs = [self.config] if self.config is not None else []
        refs.extend(self.layers)
        return refs

    def to_dict(self) -> dict:
        d = {
            "schemaVersion": 2,
            "mediaType": OCI_IMAGE_MANIFEST,
            "artifactType": self.artifact_type,
            "layers": [layer.to_dict() for layer in self.layers],
        }
        if self.config is not None:
            d["config"] = self.config.to_dict()
        if self.annotations:
            d["annotations"] = dict(self.annotations)
        return d

    def to_bytes(self) -> bytes:
        return canonical_json(self.to_dict())

    @classmethod
    def from_bytes(cls, data: bytes) -> "Manifest":
        """
        Decode manifest bytes.

        Raises:
            ManifestDecodeError: If the bytes are not JSON or not an OCI image manifest
        """
        try:
            doc = json.loads(data)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestDecodeError(f"unmarshaling manifest: {e}") from e

        if not isinstance(doc, dict):
            raise ManifestDecodeError("unmarshaling manifest: not a JSON object")
        if doc.get("schemaVersion") != 2:
            raise ManifestDecodeError(f"unsupported schemaVersion {doc.get('schemaVersion')!r}")
        media_type = doc.get("mediaType", OCI_IMAGE_MANIFEST)
        if media_type != OCI_IMAGE_MANIFEST:
            raise ManifestDecodeError(f"unsupported manifest media type {media_type!r}")

        try:
            config = Descriptor.from_dict(doc["config"]) if "config" in doc else None
            layers = doc.get("layers", [])
            if not isinstance(layers, list):
                raise ValueError("layers must be an array")
            return cls(
                artifact_type=doc.get("artifactType", ""),
                config=config,
                layers=tuple(Descriptor.from_dict(layer) for layer in layers),
                annotations=dict(doc.get("annotations") or {}),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ManifestDecodeError(f"invalid manifest: {e!r}") from e


@dataclass
class Deck:
    """Card deck reconstructed from an artifact, ready to be served."""

    cards: list = field(default_factory=list)
    images: dict = field(default_factory=dict)
