"""OCI registry implementation of the BundleFetcher port."""

import asyncio
import dataclasses
import hashlib
import re
import tarfile
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Dict, Optional

import httpx
from tqdm import tqdm

from ..application.domain import BundleFetcher
from ..application.exceptions import FetchError

from .base_client import BaseClient
from .decorators import retry_on_network_error
from .registry_models import Descriptor, ImageManifest, TokenResponse

_MANIFEST_MEDIA_TYPES = ", ".join([
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
])
_DEFAULT_TAG = "latest"
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


@dataclasses.dataclass(frozen=True)
class ImageReference:
    """A parsed `registry/repository:tag` image reference."""

    registry: str
    repository: str
    tag: str

    @classmethod
    def parse(cls, source_ref: str) -> "ImageReference":
        """
        Splits a reference such as 'host:5000/team/image:1.22'.

        Raises:
            FetchError: If the reference has no registry or no repository.
        """
        head, sep, last = source_ref.rpartition("/")
        name, _, tag = last.partition(":")
        registry, _, repository = f"{head}{sep}{name}".partition("/")
        if not registry or not repository:
            raise FetchError(f"Invalid image reference: {source_ref!r}")
        return cls(registry, repository, tag or _DEFAULT_TAG)


def _parse_challenge(header: str) -> Dict[str, str]:
    """Parses the parameters of a `WWW-Authenticate: Bearer ...` header."""
    scheme, _, params = header.partition(" ")
    if scheme.lower() != "bearer":
        return {}
    return dict(_CHALLENGE_PARAM.findall(params))


class RegistryFetcher(BaseClient, BundleFetcher):
    """A fetcher that pulls image layers from a registry over HTTP."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: Optional[str] = None,
        scheme: str = "https",
        timeout: int = 60,
        chunk_size: int = 65536,
    ):
        """Initializes the registry adapter."""
        super().__init__(client, token)
        self.scheme = scheme
        self.timeout = timeout
        self.chunk_size = chunk_size

    def _url(self, ref: ImageReference, kind: str, name: str) -> str:
        return (
            f"{self.scheme}://{ref.registry}/v2/{ref.repository}/{kind}/{name}"
        )

    async def _request_token(
        self, ref: ImageReference, challenge: Dict[str, str]
    ) -> str:
        """Exchanges a Bearer challenge for an anonymous pull token."""
        params = dict(challenge)
        realm = params.pop("realm", None)
        if not realm:
            raise FetchError(
                f"Registry {ref.registry} requires unsupported authentication"
            )
        params.setdefault("scope", f"repository:{ref.repository}:pull")

        response = await self.client.get(
            realm, params=params, timeout=self.timeout, follow_redirects=True
        )
        response.raise_for_status()

        token = TokenResponse.model_validate(response.json()).value
        if not token:
            raise FetchError(f"Registry {ref.registry} returned no token")
        return token

    @retry_on_network_error
    async def _authorize(self, ref: ImageReference) -> Dict[str, str]:
        """Returns the headers needed to read from the repository."""
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}

        response = await self.client.get(
            f"{self.scheme}://{ref.registry}/v2/", timeout=self.timeout
        )
        if response.status_code != 401:
            response.raise_for_status()
            return {}

        challenge = _parse_challenge(response.headers.get("WWW-Authenticate", ""))
        token = await self._request_token(ref, challenge)
        return {"Authorization": f"Bearer {token}"}

    @retry_on_network_error
    async def _get_manifest(
        self, ref: ImageReference, auth: Dict[str, str]
    ) -> ImageManifest:
        """Fetches and validates the image manifest of the tag."""
        response = await self.client.get(
            self._url(ref, "manifests", ref.tag),
            headers={**auth, "Accept": _MANIFEST_MEDIA_TYPES},
            timeout=self.timeout,
            follow_redirects=True,
        )
        response.raise_for_status()
        return ImageManifest.model_validate(response.json())

    async def _stream_chunks(
        self, response: httpx.Response, target_file: Path, hasher,
    ):
        """Produce byte chunks from a response and write them to a file."""
        with open(target_file, "wb") as f:
            async for chunk in response.aiter_bytes(self.chunk_size):
                hasher.update(chunk)
                await asyncio.to_thread(f.write, chunk)
                yield len(chunk)

    async def _consume_stream_with_progress(
        self,
        stream: AsyncGenerator[int, None],
        total_size: int,
        desc: str,
    ):
        """Consume the byte stream to update a TQDM progress bar."""

        with tqdm(
            total=total_size, unit="B", unit_scale=True, desc=desc
        ) as progress_bar:
            async for progress in stream:
                progress_bar.update(progress)

        if total_size != 0 and progress_bar.n != total_size:
            raise FetchError(
                f"Size mismatch: {progress_bar.n} != {total_size}"
            )

    @retry_on_network_error
    async def _download_blob(
        self,
        ref: ImageReference,
        auth: Dict[str, str],
        layer: Descriptor,
        target_file: Path,
    ):
        """Stream one layer blob to a file and check its digest."""
        hasher = hashlib.sha256()
        async with self.client.stream(
            "GET",
            self._url(ref, "blobs", layer.digest),
            headers=auth,
            timeout=self.timeout,
            follow_redirects=True,
        ) as response:
            response.raise_for_status()
            stream = self._stream_chunks(response, target_file, hasher)
            await self._consume_stream_with_progress(
                stream, layer.size, layer.digest[:19]
            )

        digest = f"sha256:{hasher.hexdigest()}"
        if layer.digest.startswith("sha256:") and digest != layer.digest:
            raise FetchError(
                f"Digest mismatch for layer. "
                f"Expected {layer.digest}, got {digest}"
            )

    def _extract_layer(self, archive: Path, destination: Path):
        """Unpack a (possibly compressed) tar layer into destination."""
        with tarfile.open(archive, "r:*") as tar:
            tar.extractall(destination, filter="data")

    async def fetch(self, source_ref: str, destination: Path):
        """
        Pulls every layer of an image and unpacks it into destination.

        Layer blobs are staged next to destination, so they count against the
        same disk as the unpacked bundle.

        Raises:
            FetchError: If the reference is invalid, authentication is
                        unsupported or a layer fails its size or digest check.
            httpx.HTTPError: If the registry cannot be reached or refuses.
            OSError: If writing or unpacking a layer fails.
        """

        ref = ImageReference.parse(source_ref)
        auth = await self._authorize(ref)
        manifest = await self._get_manifest(ref, auth)

        self.logger.info(
            f"Pulling {len(manifest.layers)} layers of {source_ref}..."
        )

        with tempfile.TemporaryDirectory(
            prefix=".layers-", dir=destination.parent
        ) as work_dir:
            for layer in manifest.layers:
                archive = Path(work_dir) / layer.digest.replace(":", "-")
                await self._download_blob(ref, auth, layer, archive)
                await asyncio.to_thread(self._extract_layer, archive, destination)
                archive.unlink()

        self.logger.info(f"Finished pulling {source_ref}")
