"""
Transfer engine: copy a tagged artifact between blob stores.

The copy walks the manifest's config and layers, skips every blob the
destination already holds (deduplication by digest), verifies every blob it
reads, and binds the destination tag only after all blobs and the manifest
are in place.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import requests

from .builder import build_deck_from_file
from .config import config
from .errors import CardOCIError, TransferFailed
from .models import CARD_MEDIA_TYPE, Descriptor, Manifest
from .remote import RemoteStore
from .store import LayoutStore
from .validation import DEFAULT_TAG, parse_reference, verify_blob

logger = logging.getLogger(__name__)

UPLOAD = "upload"
SKIP = "skip"


@dataclass(frozen=True)
class TransferEvent:
    """One blob handled by a copy: kind is "upload" or "skip"."""

    kind: str
    descriptor: Descriptor


@dataclass
class TransferReport:
    """Outcome of a successful copy."""

    manifest: Descriptor
    uploaded: list = field(default_factory=list)
    skipped: list = field(default_factory=list)


def _guarded(action, what: str, *args):
    """Run a store operation, turning raw I/O failures into TransferFailed."""
    try:
        return action(*args)
    except CardOCIError:
        raise
    except (OSError, requests.RequestException) as e:
        logger.error(f"Transfer failed while {what}: {e}")
        raise TransferFailed(f"{what}: {e}") from e


def _copy_blob(src, dst, descriptor: Descriptor) -> str:
    if _guarded(dst.exists, f"checking {descriptor.digest} in destination", descriptor):
        return SKIP
    data = _guarded(src.get, f"fetching {descriptor.digest}", descriptor)
    verify_blob(descriptor, data)
    _guarded(dst.put_if_absent, f"writing {descriptor.digest}", descriptor.media_type, data)
    return UPLOAD


def _unique_by_digest(descriptors) -> list:
    seen = set()
    unique = []
    for desc in descriptors:
        if desc.digest not in seen:
            seen.add(desc.digest)
            unique.append(desc)
    return unique


def copy(src, src_tag: str, dst, dst_tag: str, on_event=None, concurrency=None) -> TransferReport:
    """
    Copy a tagged manifest and every blob it references from src to dst.

    Args:
        src: Source BlobStore
        src_tag: Tag to resolve in the source
        dst: Destination BlobStore
        dst_tag: Tag to bind in the destination
        on_event: Optional callable receiving a TransferEvent per blob, called
            on the caller's thread in manifest order (config, layers, manifest)
        concurrency: Maximum parallel blob transfers. Default: config.TRANSFER_CONCURRENCY

    Returns:
        TransferReport listing uploaded and skipped descriptors

    Raises:
        TagNotFound: If src_tag is not bound in the source
        BlobNotFound: If the source lacks a referenced blob
        BlobCorrupted: If a fetched blob fails verification
        ManifestDecodeError: If the source manifest is malformed
        TransferFailed: On network or filesystem failures

    On failure the destination tag is left untouched; blobs already written
    stay behind as unreferenced content.
    """
    manifest_desc = _guarded(src.resolve, f"resolving tag {src_tag!r}", src_tag)
    manifest_bytes = verify_blob(
        manifest_desc, _guarded(src.get, f"fetching manifest {manifest_desc.digest}", manifest_desc)
    )
    manifest = Manifest.from_bytes(manifest_bytes)
    children = _unique_by_digest(manifest.references())

    workers = max(1, concurrency or config.TRANSFER_CONCURRENCY)
    logger.info(f"Copying {src_tag!r} ({manifest_desc.digest}, {len(children)} blobs) to {dst!r} as {dst_tag!r}")

    report = TransferReport(manifest=manifest_desc)

    def record(kind: str, desc: Descriptor) -> None:
        (report.uploaded if kind == UPLOAD else report.skipped).append(desc)
        logger.debug(f"{kind}: {desc.digest} ({desc.media_type}, {desc.size} bytes)")
        if on_event is not None:
            on_event(TransferEvent(kind=kind, descriptor=desc))

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="card-oci-copy") as pool:
        futures = [pool.submit(_copy_blob, src, dst, desc) for desc in children]
        try:
            for desc, future in zip(children, futures):
                record(future.result(), desc)
        except BaseException:
            for future in futures:
                future.cancel()
            raise

    if _guarded(dst.exists, f"checking manifest {manifest_desc.digest}", manifest_desc):
        record(SKIP, manifest_desc)
    else:
        _guarded(dst.put_if_absent, "writing manifest", manifest_desc.media_type, manifest_bytes)
        record(UPLOAD, manifest_desc)
    _guarded(dst.tag, f"tagging {dst_tag!r}", manifest_desc, dst_tag)

    logger.info(
        f"Copied {manifest_desc.digest}: {len(report.uploaded)} uploaded, {len(report.skipped)} skipped"
    )
    return report


# -------------------------------
# Build-and-publish helpers
# -------------------------------


def log_progress(upload_verb: str = "uploaded"):
    """Event sink logging one line per card image handled by a copy."""

    def on_event(event: TransferEvent) -> None:
        desc = event.descriptor
        if desc.media_type != CARD_MEDIA_TYPE:
            return
        if event.kind == UPLOAD:
            logger.info(f"  {upload_verb} {desc.title} ({desc.size} bytes)")
        else:
            logger.info(f"  skipped {desc.title} (already exists)")

    return on_event


def push_deck(target: str, deck_path: str, images_dir: str, plain_http=None, session=None) -> TransferReport:
    """
    Build a deck artifact and push it to a registry.

    Args:
        target: Registry reference, e.g. "localhost:5000/deck:v1" (tag defaults to "latest")
        deck_path: Deck definition file
        images_dir: Directory with the card PNG files
        plain_http: Use HTTP instead of HTTPS. Default: config.PLAIN_HTTP
        session: Optional requests.Session for the registry
    """
    ref = parse_reference(target)
    store, _ = build_deck_from_file(deck_path, images_dir, ref.tag)
    dst = RemoteStore(ref, plain_http=plain_http, session=session)

    logger.info(f"Pushing to {ref} ...")
    report = copy(store, ref.tag, dst, ref.tag, on_event=log_progress("uploaded"))
    logger.info("Done.")
    return report


def save_deck_local(output_dir: str, deck_path: str, images_dir: str, tag: str = DEFAULT_TAG) -> TransferReport:
    """Build a deck artifact and write it to a local OCI layout directory."""
    store, _ = build_deck_from_file(deck_path, images_dir, tag)
    dst = LayoutStore(output_dir)

    logger.info(f"Saving to {output_dir} ...")
    report = copy(store, tag, dst, tag, on_event=log_progress("wrote"))
    logger.info("Done.")
    return report
