"""
Registry-backed blob store.

Talks to an OCI distribution registry (Docker Registry v2 API) with requests.
Only monolithic uploads are used:

    1. HEAD /v2/<name>/blobs/<digest>          existence check (dedup)
    2. POST /v2/<name>/blobs/uploads/          open upload session
    3. PUT  <location>?digest=<digest>         upload bytes in one request
    4. PUT  /v2/<name>/manifests/<reference>   store manifest / bind tag
"""

import logging
from urllib.parse import urljoin

import requests

from .config import config
from .errors import BlobNotFound, RegistryError, TagNotFound
from .models import MANIFEST_MEDIA_TYPES, OCI_IMAGE_MANIFEST, Descriptor
from .store import BlobStore
from .validation import Reference, compute_sha256, parse_reference, validate_tag, verify_blob

logger = logging.getLogger(__name__)

MANIFEST_ACCEPT = ", ".join(sorted(MANIFEST_MEDIA_TYPES))


class RemoteStore(BlobStore):
    """
    Blob store backed by one repository of a remote registry.

    Args:
        reference: Registry reference ("localhost:5000/deck:v1") or parsed Reference;
            only host and repository are used
        plain_http: Use http:// instead of https://. Default: config.PLAIN_HTTP
        session: requests.Session to use, e.g. one carrying credentials
        timeout: Per-request timeout in seconds. Default: config.REGISTRY_TIMEOUT
    """

    def __init__(self, reference, plain_http=None, session=None, timeout=None):
        if not isinstance(reference, Reference):
            reference = parse_reference(reference)
        self.reference = reference
        self.plain_http = config.PLAIN_HTTP if plain_http is None else plain_http
        self.session = session or requests.Session()
        self.timeout = config.REGISTRY_TIMEOUT if timeout is None else timeout

        scheme = "http" if self.plain_http else "https"
        self.base_url = f"{scheme}://{reference.host}/v2/{reference.repository}/"

    def __repr__(self):
        return f"RemoteStore({self.base_url!r})"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        logger.debug(f"{method} {url}")
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Registry request failed: {method} {url}: {e}")
            raise RegistryError(f"{method} {url}: {e}") from e

    @staticmethod
    def _unexpected(resp: requests.Response) -> RegistryError:
        request = resp.request
        logger.error(f"Unexpected registry response {resp.status_code} for {request.method} {request.url}")
        return RegistryError(
            f"{request.method} {request.url}: unexpected status {resp.status_code}: {resp.text[:200]}",
            status_code=resp.status_code,
        )

    def _url(self, descriptor: Descriptor) -> str:
        kind = "manifests" if descriptor.media_type in MANIFEST_MEDIA_TYPES else "blobs"
        return urljoin(self.base_url, f"{kind}/{descriptor.digest}")

    def exists(self, descriptor: Descriptor) -> bool:
        resp = self._request("HEAD", self._url(descriptor), headers={"Accept": MANIFEST_ACCEPT})
        if resp.status_code == 200:
            return True
        if resp.status_code == 404:
            return False
        raise self._unexpected(resp)

    def get(self, descriptor: Descriptor) -> bytes:
        resp = self._request("GET", self._url(descriptor), headers={"Accept": MANIFEST_ACCEPT})
        if resp.status_code == 404:
            raise BlobNotFound(f"blob not found: {descriptor.digest} in {self.reference.repository}")
        if resp.status_code != 200:
            raise self._unexpected(resp)
        return resp.content

    def _write_blob(self, descriptor: Descriptor, data: bytes) -> None:
        if descriptor.media_type in MANIFEST_MEDIA_TYPES:
            self._put_manifest(descriptor.digest, descriptor.media_type, data)
            return

        resp = self._request("POST", urljoin(self.base_url, "blobs/uploads/"))
        if resp.status_code != 202 or "Location" not in resp.headers:
            raise self._unexpected(resp)

        location = urljoin(self.base_url, resp.headers["Location"])
        resp = self._request(
            "PUT",
            location,
            params={"digest": descriptor.digest},
            data=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        if resp.status_code != 201:
            raise self._unexpected(resp)
        logger.debug(f"Uploaded blob {descriptor.digest} to {self.reference.repository}")

    def _put_manifest(self, ref: str, media_type: str, data: bytes) -> None:
        resp = self._request(
            "PUT",
            urljoin(self.base_url, f"manifests/{ref}"),
            data=data,
            headers={"Content-Type": media_type},
        )
        if resp.status_code != 201:
            raise self._unexpected(resp)

    def tag(self, descriptor: Descriptor, name: str) -> None:
        validate_tag(name)
        data = verify_blob(descriptor, self.get(descriptor))
        self._put_manifest(name, descriptor.media_type, data)
        logger.debug(f"Tagged {descriptor.digest} as {self.reference.repository}:{name}")

    def resolve(self, name: str) -> Descriptor:
        resp = self._request(
            "GET", urljoin(self.base_url, f"manifests/{name}"), headers={"Accept": MANIFEST_ACCEPT}
        )
        if resp.status_code == 404:
            raise TagNotFound(f"tag not found: {self.reference.repository}:{name}")
        if resp.status_code != 200:
            raise self._unexpected(resp)

        media_type = resp.headers.get("Content-Type", OCI_IMAGE_MANIFEST).split(";")[0].strip()
        descriptor = Descriptor(
            media_type=media_type,
            digest=compute_sha256(resp.content),
            size=len(resp.content),
        )
        header_digest = resp.headers.get("Docker-Content-Digest")
        if header_digest and header_digest != descriptor.digest:
            logger.warning(
                f"Registry digest {header_digest} differs from computed {descriptor.digest} for tag {name!r}"
            )
        return descriptor

    def tags(self) -> list:
        resp = self._request("GET", urljoin(self.base_url, "tags/list"))
        if resp.status_code == 404:
            return []
        if resp.status_code != 200:
            raise self._unexpected(resp)
        return sorted(resp.json().get("tags") or [])
