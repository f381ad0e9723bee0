"""
Content addressing and input validation for card-oci.

Provides the sha256 content addresser, blob verification, and validation of
tags, digests, repository names and registry references.
"""

import hashlib
import logging
import re
from dataclasses import dataclass

from .config import config
from .errors import BlobCorrupted, InvalidReference

logger = logging.getLogger(__name__)

DIGEST_RE = re.compile(r"^sha256:[a-f0-9]{64}$")
TAG_RE = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9._-]*$")
REPOSITORY_RE = re.compile(
    r"^[a-z0-9]+(?:(?:\.|_|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:\.|_|__|-+)[a-z0-9]+)*)*$"
)
HOST_RE = re.compile(r"^[a-zA-Z0-9.-]+(?::[0-9]+)?$")

DEFAULT_TAG = "latest"


def compute_sha256(data: bytes) -> str:
    """
    Compute SHA256 digest in OCI/Docker format.

    Args:
        data: Bytes to hash

    Returns:
        String in format "sha256:<64 hex chars>"

    Example:
        >>> compute_sha256(b"hello")
        'sha256:2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'
    """
    h = hashlib.sha256()
    h.update(data)
    return "sha256:" + h.hexdigest()


def verify_blob(descriptor, data: bytes) -> bytes:
    """
    Check fetched bytes against the descriptor they were fetched by.

    Args:
        descriptor: Descriptor the bytes were requested with
        data: Bytes returned by a store

    Returns:
        The same bytes, so calls can be chained on fetch

    Raises:
        BlobCorrupted: If the size or the recomputed digest differs
    """
    if len(data) != descriptor.size:
        logger.error(f"Size mismatch for {descriptor.digest}: expected {descriptor.size}, got {len(data)}")
        raise BlobCorrupted(
            f"blob {descriptor.digest}: expected {descriptor.size} bytes, got {len(data)}"
        )

    actual = compute_sha256(data)
    if actual != descriptor.digest:
        logger.error(f"Digest mismatch: expected {descriptor.digest}, got {actual}")
        raise BlobCorrupted(f"blob {descriptor.digest}: content digest is {actual}")

    return data


def validate_digest(digest: str) -> None:
    """
    Validate SHA256 digest format per OCI specification.

    Raises:
        InvalidReference: If digest is not sha256:<64 lowercase hex characters>
    """
    if not isinstance(digest, str) or not DIGEST_RE.match(digest):
        logger.warning(f"Invalid digest format: {digest}")
        raise InvalidReference(f"invalid digest {digest!r}: must be sha256:<64 hex characters>")


def validate_tag(tag: str) -> None:
    """
    Validate tag name.

    Validation Rules:
        - Must be 1-{MAX_TAG_LENGTH} characters (configurable)
        - Alphanumeric characters, dots (.), hyphens (-), and underscores (_)
        - Must not start with a dot or hyphen

    Raises:
        InvalidReference: If tag is invalid
    """
    if not tag or len(tag) > config.MAX_TAG_LENGTH:
        logger.warning(f"Invalid tag length: {len(tag or '')}")
        raise InvalidReference(f"invalid tag {tag!r}: must be 1-{config.MAX_TAG_LENGTH} characters")

    if not TAG_RE.match(tag):
        logger.warning(f"Invalid tag format: {tag}")
        raise InvalidReference(
            f"invalid tag {tag!r}: only alphanumeric, dots, hyphens, and underscores allowed"
        )


def validate_repository(name: str) -> None:
    """
    Validate repository path (e.g. "deck" or "games/deck").

    Raises:
        InvalidReference: If name is empty, too long, or not lowercase path components
    """
    if not name or len(name) > config.MAX_REPOSITORY_LENGTH:
        logger.warning(f"Invalid repository length: {len(name or '')}")
        raise InvalidReference(
            f"invalid repository {name!r}: must be 1-{config.MAX_REPOSITORY_LENGTH} characters"
        )

    if not REPOSITORY_RE.match(name):
        logger.warning(f"Invalid repository format: {name}")
        raise InvalidReference(
            f"invalid repository {name!r}: lowercase alphanumeric path components required"
        )


@dataclass(frozen=True)
class Reference:
    """Parsed registry reference."""

    host: str
    repository: str
    tag: str = DEFAULT_TAG

    def __str__(self):
        return f"{self.host}/{self.repository}:{self.tag}"


def parse_reference(reference: str) -> Reference:
    """
    Parse a registry reference of the form <host>[:<port>]/<path>[:<tag>].

    Args:
        reference: Reference string, e.g. "localhost:5000/deck:v1"

    Returns:
        Reference with the tag defaulting to "latest"

    Raises:
        InvalidReference: If any component is missing or malformed

    Examples:
        >>> parse_reference("localhost:5000/deck:v1")
        Reference(host='localhost:5000', repository='deck', tag='v1')

        >>> parse_reference("myregistry.io/ns/repo")
        Reference(host='myregistry.io', repository='ns/repo', tag='latest')
    """
    reference = (reference or "").strip()
    host, sep, path = reference.partition("/")
    if not sep or not host or not path:
        raise InvalidReference(f"invalid reference {reference!r}: expected <host>/<path>[:<tag>]")

    if not HOST_RE.match(host):
        raise InvalidReference(f"invalid reference {reference!r}: bad host {host!r}")

    repository, tag = path, DEFAULT_TAG
    if ":" in path:
        repository, tag = path.rsplit(":", 1)

    validate_repository(repository)
    validate_tag(tag)

    parsed = Reference(host=host, repository=repository, tag=tag)
    logger.debug(f"Parsed reference {reference!r}: {parsed}")
    return parsed
