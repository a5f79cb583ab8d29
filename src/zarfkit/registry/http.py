#!/usr/bin/env python3
"""
ZARFKIT REGISTRY - HTTP Client
------------------------------
RegistryClient over the OCI distribution API (`/v2/...`) using httpx.
Anonymous access only.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
from typing import Optional

import httpx

from zarfkit.core.errors import RegistryError
from zarfkit.registry.client import RegistryClient, parse_oci_url
from zarfkit.registry.oci import MANIFEST_MEDIA_TYPES, Descriptor, OCI_IMAGE_MANIFEST, digest_of

logger = logging.getLogger("zarfkit.registry.http")

_ACCEPT = ", ".join(MANIFEST_MEDIA_TYPES)


class HttpRegistryClient(RegistryClient):
    """
    Talks to one repository of one registry. `client` may be injected
    (tests pass an httpx.Client with a MockTransport).
    """

    def __init__(self, reference: str, plain_http: bool = False,
                 client: Optional[httpx.Client] = None, timeout: float = 30.0):
        super().__init__(reference)
        self.registry, self.repository, self.tag = parse_oci_url(reference)
        scheme = "http" if plain_http else "https"
        self.base_url = f"{scheme}://{self.registry}/v2/{self.repository}"
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout, connect=10.0),
                                              follow_redirects=True)

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _tag(self) -> str:
        return self.tag

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RegistryError(
                f"{method} {url} for {self.reference} failed: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RegistryError(f"{method} {url} for {self.reference} failed: {e}") from e
        return response

    def resolve(self, reference: str) -> Descriptor:
        url = f"{self.base_url}/manifests/{reference}"
        response = self._request("GET", url, headers={"Accept": _ACCEPT})
        media_type = response.headers.get("Content-Type", OCI_IMAGE_MANIFEST).split(";")[0].strip()
        digest = response.headers.get("Docker-Content-Digest") or digest_of(response.content)
        logger.debug(f"Resolved {self.repository}:{reference} to {digest}")
        return Descriptor(media_type=media_type, digest=digest, size=len(response.content))

    def fetch(self, desc: Descriptor) -> bytes:
        if desc.media_type in MANIFEST_MEDIA_TYPES:
            url = f"{self.base_url}/manifests/{desc.digest}"
            response = self._request("GET", url, headers={"Accept": desc.media_type})
        else:
            url = f"{self.base_url}/blobs/{desc.digest}"
            response = self._request("GET", url)
        if digest_of(response.content) != desc.digest:
            raise RegistryError(f"digest mismatch fetching {desc.digest} from {self.reference}")
        return response.content

    def push(self, desc: Descriptor, data: bytes, reference: str = "") -> None:
        if desc.media_type in MANIFEST_MEDIA_TYPES:
            url = f"{self.base_url}/manifests/{reference or desc.digest}"
            self._request("PUT", url, content=data, headers={"Content-Type": desc.media_type})
            return

        head = self._client.head(f"{self.base_url}/blobs/{desc.digest}")
        if head.status_code == 200:
            return
        start = self._request("POST", f"{self.base_url}/blobs/uploads/")
        location = start.headers.get("Location")
        if not location:
            raise RegistryError(f"registry did not return an upload location for {self.reference}")
        upload_url = httpx.URL(self.base_url).join(location)
        self._request(
            "PUT",
            str(upload_url.copy_merge_params({"digest": desc.digest})),
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        logger.debug(f"Pushed blob {desc.digest} ({desc.size} bytes)")
