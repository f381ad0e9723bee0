"""
Minimal OCI distribution registry backed by blob stores.

Implements the subset of the OCI Distribution Specification v1.0 that
RemoteStore needs, with monolithic uploads only. Each repository gets its
own BlobStore from a factory: a MemoryStore by default, or a LayoutStore
under a storage directory.

OCI Endpoints:
    - GET /v2/ - Version check
    - GET/HEAD /v2/<name>/manifests/<reference> - Get/check manifest by tag or digest
    - PUT /v2/<name>/manifests/<reference> - Store manifest, bind tag
    - GET/HEAD /v2/<name>/blobs/<digest> - Get/check blob
    - POST /v2/<name>/blobs/uploads/ - Open upload (or monolithic with ?digest=)
    - PUT /v2/<name>/blobs/uploads/<id>?digest=<digest> - Complete upload
    - GET /v2/<name>/tags/list - List tags
"""

import io
import json
import logging
import os
import threading
import uuid

from flask import Flask, Response, abort, jsonify, make_response, request, send_file

from .errors import BlobNotFound, InvalidReference, ManifestDecodeError, TagNotFound
from .models import MANIFEST_MEDIA_TYPES, OCI_IMAGE_MANIFEST, Descriptor, Manifest
from .store import LayoutStore, MemoryStore
from .validation import DIGEST_RE, compute_sha256, validate_digest, validate_repository, validate_tag

logger = logging.getLogger(__name__)


class RepositoryStores:
    """Lazily created blob store per repository name."""

    def __init__(self, factory=None):
        self._factory = factory or (lambda name: MemoryStore())
        self._stores = {}
        self._lock = threading.Lock()

    @classmethod
    def on_disk(cls, root: str) -> "RepositoryStores":
        """One OCI layout per repository under root (e.g. {root}/games/deck/)."""
        return cls(lambda name: LayoutStore(os.path.join(root, *name.split("/"))))

    def get(self, name: str, create: bool = False):
        with self._lock:
            store = self._stores.get(name)
            if store is None and create:
                store = self._stores[name] = self._factory(name)
                logger.info(f"Created repository '{name}'")
            return store


def _manifest_media_type(data: bytes) -> str:
    try:
        media_type = json.loads(data).get("mediaType")
    except (ValueError, AttributeError):
        media_type = None
    return media_type if media_type in MANIFEST_MEDIA_TYPES else OCI_IMAGE_MANIFEST


def create_registry_app(stores: RepositoryStores = None) -> Flask:
    """
    Create the registry Flask application.

    Args:
        stores: Repository stores. Default: in-memory stores
    """
    stores = stores or RepositoryStores()
    uploads = set()
    uploads_lock = threading.Lock()

    app = Flask(__name__)

    @app.errorhandler(InvalidReference)
    def handle_invalid(e):
        logger.warning(f"Bad request: {e}")
        return jsonify(errors=[{"code": "NAME_INVALID", "message": str(e)}]), 400

    @app.errorhandler(BlobNotFound)
    @app.errorhandler(TagNotFound)
    def handle_not_found(e):
        logger.info(f"Not found: {e}")
        return jsonify(errors=[{"code": "NOT_FOUND", "message": str(e)}]), 404

    def repository(name: str, create: bool = False):
        validate_repository(name)
        store = stores.get(name, create=create)
        if store is None:
            raise TagNotFound(f"repository not found: {name}")
        return store

    @app.route("/v2/")
    def v2_root():
        """
        OCI Distribution API version check endpoint.

        Headers:
            Docker-Distribution-API-Version: registry/2.0
        """
        resp = Response(status=200)
        resp.headers["Docker-Distribution-API-Version"] = "registry/2.0"
        return resp

    @app.route("/v2/<path:name>/manifests/<reference>", methods=["GET", "HEAD"])
    def get_manifest(name, reference):
        """
        Get or check a manifest by tag or digest.

        Response Headers:
            Content-Type: Manifest media type
            Content-Length: Size of manifest in bytes
            Docker-Content-Digest: SHA256 digest of manifest
        """
        store = repository(name)
        if DIGEST_RE.match(reference):
            data = store.get(Descriptor(OCI_IMAGE_MANIFEST, reference, 0))
            desc = Descriptor(_manifest_media_type(data), reference, len(data))
        else:
            validate_tag(reference)
            desc = store.resolve(reference)
            data = store.get(desc)

        resp = make_response(data)
        resp.headers["Content-Type"] = desc.media_type
        resp.headers["Content-Length"] = len(data)
        resp.headers["Docker-Content-Digest"] = desc.digest
        logger.info(f"Manifest {request.method}: {name}:{reference} -> {desc.digest}")
        return resp

    @app.route("/v2/<path:name>/manifests/<reference>", methods=["PUT"])
    def put_manifest(name, reference):
        """
        Store a manifest and, for tag references, bind the tag.

        Rejects manifests whose bytes do not match a digest reference and
        manifests referencing blobs the repository does not hold.
        """
        data = request.get_data()
        media_type = (request.content_type or OCI_IMAGE_MANIFEST).split(";")[0].strip()
        if media_type not in MANIFEST_MEDIA_TYPES:
            abort(415, f"Unsupported manifest media type: {media_type}")

        digest = compute_sha256(data)
        is_digest = DIGEST_RE.match(reference) is not None
        if is_digest and reference != digest:
            logger.warning(f"Manifest digest mismatch: {reference} != {digest}")
            return jsonify(errors=[{"code": "DIGEST_INVALID", "message": digest}]), 400
        if not is_digest:
            validate_tag(reference)

        try:
            manifest = Manifest.from_bytes(data)
        except ManifestDecodeError as e:
            return jsonify(errors=[{"code": "MANIFEST_INVALID", "message": str(e)}]), 400

        store = repository(name, create=True)
        missing = [d.digest for d in manifest.references() if not store.exists(d)]
        if missing:
            logger.warning(f"Manifest references unknown blobs: {missing}")
            return jsonify(errors=[{"code": "MANIFEST_BLOB_UNKNOWN", "message": missing[0]}]), 400

        desc = store.put_if_absent(media_type, data)
        if not is_digest:
            store.tag(desc, reference)

        resp = Response(status=201)
        resp.headers["Location"] = f"/v2/{name}/manifests/{desc.digest}"
        resp.headers["Docker-Content-Digest"] = desc.digest
        logger.info(f"Manifest stored: {name}:{reference} -> {desc.digest}")
        return resp

    @app.route("/v2/<path:name>/blobs/<digest>", methods=["GET", "HEAD"])
    def get_blob(name, digest):
        """
        Get or check a blob by digest.

        Response Headers:
            Content-Length: Size of blob in bytes
            Docker-Content-Digest: SHA256 digest (echoed from request)
        """
        validate_digest(digest)
        data = repository(name).get(Descriptor("application/octet-stream", digest, 0))

        if request.method == "HEAD":
            resp = Response(status=200)
            resp.headers["Content-Type"] = "application/octet-stream"
            resp.headers["Content-Length"] = len(data)
        else:
            resp = send_file(io.BytesIO(data), mimetype="application/octet-stream")
            resp.headers["Content-Length"] = len(data)
        resp.headers["Docker-Content-Digest"] = digest
        logger.debug(f"Blob {request.method}: {name}@{digest}")
        return resp

    def store_blob(name: str, digest: str, data: bytes) -> Response:
        validate_digest(digest)
        actual = compute_sha256(data)
        if actual != digest:
            logger.warning(f"Upload digest mismatch: expected {digest}, got {actual}")
            return jsonify(errors=[{"code": "DIGEST_INVALID", "message": actual}]), 400

        repository(name, create=True).put_if_absent("application/octet-stream", data)
        resp = Response(status=201)
        resp.headers["Location"] = f"/v2/{name}/blobs/{digest}"
        resp.headers["Docker-Content-Digest"] = digest
        logger.info(f"Blob stored: {name}@{digest} ({len(data)} bytes)")
        return resp

    @app.route("/v2/<path:name>/blobs/uploads/", methods=["POST"])
    def start_upload(name):
        """Open an upload session, or store the body directly when ?digest= is given."""
        validate_repository(name)
        digest = request.args.get("digest")
        if digest:
            return store_blob(name, digest, request.get_data())

        upload_id = str(uuid.uuid4())
        with uploads_lock:
            uploads.add(upload_id)
        resp = Response(status=202)
        resp.headers["Location"] = f"/v2/{name}/blobs/uploads/{upload_id}"
        resp.headers["Docker-Upload-UUID"] = upload_id
        resp.headers["Range"] = "0-0"
        return resp

    @app.route("/v2/<path:name>/blobs/uploads/<upload_id>", methods=["PUT"])
    def finish_upload(name, upload_id):
        """Complete a monolithic upload with the full body and its digest."""
        with uploads_lock:
            if upload_id not in uploads:
                abort(404, "Unknown upload")
            uploads.discard(upload_id)
        digest = request.args.get("digest", "")
        return store_blob(name, digest, request.get_data())

    @app.route("/v2/<path:name>/tags/list")
    def list_tags(name):
        """List the tags of a repository."""
        return jsonify(name=name, tags=repository(name).tags())

    return app
