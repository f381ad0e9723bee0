"""
Content-addressed blob stores.

A blob store keeps bytes keyed by their sha256 digest and a table of mutable
tags pointing at manifest descriptors. Two local variants live here:

    - MemoryStore: process memory, used as the staging area of a build
    - LayoutStore: OCI image layout directory on disk

The registry-backed variant is RemoteStore in cardoci.remote.
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import BlobNotFound, LayoutError, TagNotFound
from .models import (
    ANNOTATION_REF_NAME,
    OCI_IMAGE_INDEX,
    Descriptor,
    canonical_json,
)
from .validation import compute_sha256, validate_digest, validate_tag

logger = logging.getLogger(__name__)

OCI_LAYOUT_FILE = "oci-layout"
OCI_LAYOUT_VERSION = "1.0.0"
INDEX_FILE = "index.json"


class BlobStore(ABC):
    """
    Content-addressed key/value store with a tag table.

    Subclasses implement existence checks, reads, raw writes and tagging;
    put_if_absent() is shared so every variant deduplicates the same way.
    """

    @abstractmethod
    def exists(self, descriptor: Descriptor) -> bool:
        """Return True if a blob with the descriptor's digest is stored."""

    @abstractmethod
    def get(self, descriptor: Descriptor) -> bytes:
        """
        Return the stored bytes for a descriptor.

        Bytes are returned as stored; callers verify them with verify_blob().

        Raises:
            BlobNotFound: If no blob with that digest exists
        """

    @abstractmethod
    def _write_blob(self, descriptor: Descriptor, data: bytes) -> None:
        """Store bytes under the descriptor's digest."""

    @abstractmethod
    def tag(self, descriptor: Descriptor, name: str) -> None:
        """
        Bind a tag to a manifest descriptor, replacing any previous binding.

        Raises:
            InvalidReference: If the tag name is invalid
            BlobNotFound: If the manifest is not stored
        """

    @abstractmethod
    def resolve(self, name: str) -> Descriptor:
        """
        Return the manifest descriptor bound to a tag.

        Raises:
            TagNotFound: If the tag is not bound
        """

    @abstractmethod
    def tags(self) -> list:
        """Return the bound tag names, sorted."""

    def put_if_absent(self, media_type: str, data: bytes) -> Descriptor:
        """
        Store bytes unless a blob with the same digest already exists.

        Args:
            media_type: Media type recorded in the returned descriptor
            data: Blob content

        Returns:
            Descriptor of the content, identical for repeated calls
        """
        descriptor = Descriptor(media_type=media_type, digest=compute_sha256(data), size=len(data))
        if self.exists(descriptor):
            logger.debug(f"Blob already present, skipping write: {descriptor.digest}")
            return descriptor

        self._write_blob(descriptor, data)
        logger.debug(f"Stored blob {descriptor.digest} ({descriptor.size} bytes, {media_type})")
        return descriptor


class MemoryStore(BlobStore):
    """In-process blob store. Contents are lost with the process."""

    def __init__(self):
        self._blobs = {}
        self._tags = {}
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._blobs)

    def exists(self, descriptor: Descriptor) -> bool:
        with self._lock:
            return descriptor.digest in self._blobs

    def get(self, descriptor: Descriptor) -> bytes:
        with self._lock:
            data = self._blobs.get(descriptor.digest)
        if data is None:
            raise BlobNotFound(f"blob not found: {descriptor.digest}")
        return data

    def _write_blob(self, descriptor: Descriptor, data: bytes) -> None:
        with self._lock:
            self._blobs.setdefault(descriptor.digest, bytes(data))

    def tag(self, descriptor: Descriptor, name: str) -> None:
        validate_tag(name)
        if not self.exists(descriptor):
            raise BlobNotFound(f"cannot tag {name!r}: manifest {descriptor.digest} not found")
        with self._lock:
            self._tags[name] = descriptor
        logger.debug(f"Tagged {descriptor.digest} as {name!r}")

    def resolve(self, name: str) -> Descriptor:
        with self._lock:
            descriptor = self._tags.get(name)
        if descriptor is None:
            raise TagNotFound(f"tag not found: {name!r}")
        return descriptor

    def tags(self) -> list:
        with self._lock:
            return sorted(self._tags)


class LayoutStore(BlobStore):
    """
    Blob store backed by an OCI image layout directory.

    Directory Structure:
        {root}/
            ├── oci-layout            ({"imageLayoutVersion": "1.0.0"})
            ├── index.json            (image index, one entry per tag)
            └── blobs/
                └── sha256/
                    └── <hex digest>  (one file per blob)

    Tags are recorded as the org.opencontainers.image.ref.name annotation
    of index.json entries, so any OCI layout reader can resolve them.
    """

    def __init__(self, root):
        self.root = Path(root)
        self._lock = threading.Lock()

        if self.root.exists() and not self.root.is_dir():
            raise LayoutError(f"not a directory: {self.root}")
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / "blobs" / "sha256").mkdir(parents=True, exist_ok=True)

        layout_path = self.root / OCI_LAYOUT_FILE
        if layout_path.exists():
            try:
                layout = json.loads(layout_path.read_bytes())
            except (OSError, ValueError) as e:
                raise LayoutError(f"reading {layout_path}: {e}") from e
            version = layout.get("imageLayoutVersion") if isinstance(layout, dict) else None
            if version != OCI_LAYOUT_VERSION:
                raise LayoutError(f"unsupported OCI layout version {version!r} in {self.root}")
        else:
            self._atomic_write(layout_path, canonical_json({"imageLayoutVersion": OCI_LAYOUT_VERSION}))
            logger.info(f"Created OCI layout at {self.root}")

        if not (self.root / INDEX_FILE).exists():
            self._save_index([])

    def __repr__(self):
        return f"LayoutStore({str(self.root)!r})"

    def _blob_path(self, digest: str) -> Path:
        validate_digest(digest)
        algorithm, encoded = digest.split(":", 1)
        return self.root / "blobs" / algorithm / encoded

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        # Write to a sibling temp file and rename, so readers and concurrent
        # writers never observe a partially written file.
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def exists(self, descriptor: Descriptor) -> bool:
        return self._blob_path(descriptor.digest).is_file()

    def get(self, descriptor: Descriptor) -> bytes:
        path = self._blob_path(descriptor.digest)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise BlobNotFound(f"blob not found: {descriptor.digest} in {self.root}") from None

    def _write_blob(self, descriptor: Descriptor, data: bytes) -> None:
        path = self._blob_path(descriptor.digest)
        path.parent.mkdir(parents=True, exist_ok=True)
        self._atomic_write(path, data)

    # -------------------------------
    # index.json
    # -------------------------------

    def _load_index(self) -> list:
        path = self.root / INDEX_FILE
        try:
            index = json.loads(path.read_bytes())
            return [Descriptor.from_dict(m) for m in index.get("manifests", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise LayoutError(f"reading {path}: {e}") from e

    def _save_index(self, manifests: list) -> None:
        index = {
            "schemaVersion": 2,
            "mediaType": OCI_IMAGE_INDEX,
            "manifests": [m.to_dict() for m in manifests],
        }
        self._atomic_write(self.root / INDEX_FILE, canonical_json(index))

    def tag(self, descriptor: Descriptor, name: str) -> None:
        validate_tag(name)
        if not self.exists(descriptor):
            raise BlobNotFound(f"cannot tag {name!r}: manifest {descriptor.digest} not found")

        entry = descriptor.with_annotations({**descriptor.annotations, ANNOTATION_REF_NAME: name})
        with self._lock:
            manifests = [
                m for m in self._load_index()
                if m.annotations.get(ANNOTATION_REF_NAME) != name
            ]
            manifests.append(entry)
            self._save_index(manifests)
        logger.debug(f"Tagged {descriptor.digest} as {name!r} in {self.root}")

    def resolve(self, name: str) -> Descriptor:
        with self._lock:
            manifests = self._load_index()
        for m in reversed(manifests):
            if m.annotations.get(ANNOTATION_REF_NAME) == name:
                annotations = {k: v for k, v in m.annotations.items() if k != ANNOTATION_REF_NAME}
                return m.with_annotations(annotations)
        raise TagNotFound(f"tag not found: {name!r} in {self.root}")

    def tags(self) -> list:
        with self._lock:
            manifests = self._load_index()
        return sorted({
            m.annotations[ANNOTATION_REF_NAME]
            for m in manifests
            if ANNOTATION_REF_NAME in m.annotations
        })
