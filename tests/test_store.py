"""Tests for the in-memory and OCI layout blob stores."""

import json
import os
from concurrent.futures import ThreadPoolExecutor

import pytest

from cardoci.errors import BlobNotFound, InvalidReference, LayoutError, TagNotFound
from cardoci.models import ANNOTATION_REF_NAME, OCI_IMAGE_MANIFEST, Descriptor
from cardoci.store import LayoutStore, MemoryStore
from cardoci.validation import compute_sha256


@pytest.fixture(params=["memory", "layout"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    return LayoutStore(tmp_path / "layout")


def count_writes(monkeypatch, store):
    calls = []
    original = store._write_blob

    def counting(descriptor, data):
        calls.append(descriptor.digest)
        original(descriptor, data)

    monkeypatch.setattr(store, "_write_blob", counting)
    return calls


class TestBlobStore:
    def test_put_and_get(self, store):
        desc = store.put_if_absent("image/png", b"two of clubs")
        assert desc.digest == compute_sha256(b"two of clubs")
        assert desc.size == len(b"two of clubs")
        assert desc.media_type == "image/png"
        assert store.exists(desc)
        assert store.get(desc) == b"two of clubs"

    def test_put_if_absent_is_idempotent(self, store, monkeypatch):
        writes = count_writes(monkeypatch, store)
        first = store.put_if_absent("image/png", b"ace of diamonds")
        second = store.put_if_absent("image/png", b"ace of diamonds")
        assert first == second
        assert writes == [first.digest]

    def test_get_missing_blob(self, store):
        desc = Descriptor("image/png", compute_sha256(b"missing"), 7)
        assert not store.exists(desc)
        with pytest.raises(BlobNotFound):
            store.get(desc)

    def test_tag_and_resolve(self, store):
        desc = store.put_if_absent(OCI_IMAGE_MANIFEST, b'{"schemaVersion":2}')
        store.tag(desc, "v1")
        assert store.resolve("v1") == desc
        assert store.tags() == ["v1"]

    def test_retag_overwrites_binding(self, store):
        first = store.put_if_absent(OCI_IMAGE_MANIFEST, b'{"n":1}')
        second = store.put_if_absent(OCI_IMAGE_MANIFEST, b'{"n":2}')
        store.tag(first, "latest")
        store.tag(second, "latest")
        store.tag(first, "v1")
        assert store.resolve("latest") == second
        assert store.resolve("v1") == first
        assert store.tags() == ["latest", "v1"]

    def test_resolve_unknown_tag(self, store):
        with pytest.raises(TagNotFound):
            store.resolve("nope")

    def test_tag_requires_stored_manifest(self, store):
        desc = Descriptor(OCI_IMAGE_MANIFEST, compute_sha256(b"{}"), 2)
        with pytest.raises(BlobNotFound):
            store.tag(desc, "v1")

    def test_tag_name_is_validated(self, store):
        desc = store.put_if_absent(OCI_IMAGE_MANIFEST, b"{}")
        with pytest.raises(InvalidReference):
            store.tag(desc, "bad/tag")

    def test_concurrent_identical_puts(self, store):
        data = b"king of hearts" * 1000
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: store.put_if_absent("image/png", data), range(16)))
        assert len({r.digest for r in results}) == 1
        assert store.get(results[0]) == data


class TestMemoryStore:
    def test_duplicate_bytes_stored_once(self):
        store = MemoryStore()
        store.put_if_absent("image/png", b"same")
        store.put_if_absent("image/png", b"same")
        assert len(store) == 1


class TestLayoutStore:
    def test_layout_structure(self, tmp_path):
        root = tmp_path / "layout"
        store = LayoutStore(root)
        desc = store.put_if_absent(OCI_IMAGE_MANIFEST, b'{"schemaVersion":2}')
        store.tag(desc, "latest")

        assert json.loads((root / "oci-layout").read_text()) == {"imageLayoutVersion": "1.0.0"}
        blob_path = root / "blobs" / "sha256" / desc.digest.split(":", 1)[1]
        assert blob_path.read_bytes() == b'{"schemaVersion":2}'

        index = json.loads((root / "index.json").read_text())
        assert index["schemaVersion"] == 2
        assert index["manifests"] == [{
            "mediaType": OCI_IMAGE_MANIFEST,
            "digest": desc.digest,
            "size": desc.size,
            "annotations": {ANNOTATION_REF_NAME: "latest"},
        }]

    def test_duplicate_bytes_stored_once(self, tmp_path):
        store = LayoutStore(tmp_path / "layout")
        store.put_if_absent("image/png", b"same")
        store.put_if_absent("image/png", b"same")
        files = [f for f in os.listdir(tmp_path / "layout" / "blobs" / "sha256") if not f.startswith(".")]
        assert len(files) == 1

    def test_contents_survive_reopen(self, tmp_path):
        root = tmp_path / "layout"
        store = LayoutStore(root)
        desc = store.put_if_absent(OCI_IMAGE_MANIFEST, b'{"schemaVersion":2}')
        store.tag(desc, "v1")

        reopened = LayoutStore(root)
        assert reopened.resolve("v1") == desc
        assert reopened.get(desc) == b'{"schemaVersion":2}'

    def test_rejects_unknown_layout_version(self, tmp_path):
        root = tmp_path / "layout"
        root.mkdir()
        (root / "oci-layout").write_text('{"imageLayoutVersion": "9.9.9"}')
        with pytest.raises(LayoutError):
            LayoutStore(root)

    def test_rejects_file_path(self, tmp_path):
        path = tmp_path / "file"
        path.write_text("x")
        with pytest.raises(LayoutError):
            LayoutStore(path)

    def test_corrupt_index(self, tmp_path):
        root = tmp_path / "layout"
        LayoutStore(root)
        (root / "index.json").write_text("{not json")
        with pytest.raises(LayoutError):
            LayoutStore(root).resolve("latest")
