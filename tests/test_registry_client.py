"""Tests for the registry fetcher, served by an httpx.MockTransport."""

import hashlib
import io
import tarfile

import httpx
import pytest

from bundle_downloader.application.exceptions import (
    BundleDownloadError,
    ConfigurationError,
    FetchError,
)
from bundle_downloader.application.service import BundleDownloader
from bundle_downloader.infrastructure.registry_client import (
    ImageReference,
    RegistryFetcher,
    _parse_challenge,
)

from conftest import K8S_VERSION, OS_VERSION

REPOSITORY = f"bundles/{OS_VERSION}"
SOURCE_REF = f"registry.test/{REPOSITORY}:{K8S_VERSION}"


def _layer(files):
    """Build a gzipped tar layer holding the given files."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def _digest(blob):
    return f"sha256:{hashlib.sha256(blob).hexdigest()}"


class FakeRegistry:
    """A minimal registry serving a single two-layer image."""

    def __init__(self, require_token=False, corrupt=False, layers=None):
        self.require_token = require_token
        self.layers = layers or [
            _layer({"kubeadm.deb": "kubeadm"}),
            _layer({"conf/containerd.toml": "version = 2"}),
        ]
        self.blobs = {_digest(blob): blob for blob in self.layers}
        self.corrupt = corrupt
        self.token_requests = []

    def manifest(self):
        return {
            "schemaVersion": 2,
            "mediaType": "application/vnd.oci.image.manifest.v1+json",
            "config": {
                "mediaType": "application/vnd.oci.image.config.v1+json",
                "digest": _digest(b"{}"),
                "size": 2,
            },
            "layers": [
                {
                    "mediaType": "application/vnd.oci.image.layer.v1.tar+gzip",
                    "digest": digest,
                    "size": len(blob),
                }
                for digest, blob in self.blobs.items()
            ],
        }

    def _authorized(self, request):
        if not self.require_token:
            return True
        return request.headers.get("Authorization") == "Bearer s3cret"

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path

        if request.url.host == "auth.test" and path == "/token":
            self.token_requests.append(dict(request.url.params))
            return httpx.Response(200, json={"token": "s3cret"})

        if path == "/v2/":
            if self.require_token:
                return httpx.Response(401, headers={
                    "WWW-Authenticate":
                        'Bearer realm="https://auth.test/token",'
                        'service="registry.test"',
                })
            return httpx.Response(200)

        if not self._authorized(request):
            return httpx.Response(401)

        if path == f"/v2/{REPOSITORY}/manifests/{K8S_VERSION}":
            return httpx.Response(200, json=self.manifest())

        prefix = f"/v2/{REPOSITORY}/blobs/"
        if path.startswith(prefix):
            blob = self.blobs.get(path[len(prefix):])
            if blob is not None:
                return httpx.Response(200, content=blob[::-1] if self.corrupt else blob)

        return httpx.Response(404)


def _fetcher(registry, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(registry))
    return RegistryFetcher(client, **kwargs)


class TestImageReference:
    def test_parse(self):
        ref = ImageReference.parse(SOURCE_REF)
        assert ref == ImageReference("registry.test", REPOSITORY, K8S_VERSION)

    def test_registry_with_port(self):
        ref = ImageReference.parse("localhost:5000/os:1.22")
        assert ref == ImageReference("localhost:5000", "os", "1.22")

    def test_default_tag(self):
        assert ImageReference.parse("registry.test/os").tag == "latest"

    @pytest.mark.parametrize("source_ref", [
        f"/{OS_VERSION}:{K8S_VERSION}",
        "registry.test",
    ])
    def test_invalid(self, source_ref):
        with pytest.raises(FetchError):
            ImageReference.parse(source_ref)


class TestParseChallenge:
    def test_bearer(self):
        challenge = _parse_challenge(
            'Bearer realm="https://auth.test/token",service="registry.test"'
        )
        assert challenge == {
            "realm": "https://auth.test/token",
            "service": "registry.test",
        }

    def test_basic_is_ignored(self):
        assert _parse_challenge('Basic realm="registry"') == {}


class TestRegistryFetcher:
    @pytest.mark.asyncio
    async def test_extracts_all_layers(self, tmp_path):
        destination = tmp_path / "bundle"
        destination.mkdir()

        await _fetcher(FakeRegistry()).fetch(SOURCE_REF, destination)

        assert (destination / "kubeadm.deb").read_text() == "kubeadm"
        assert (destination / "conf" / "containerd.toml").read_text() == (
            "version = 2"
        )
        assert sorted(p.name for p in tmp_path.iterdir()) == ["bundle"]

    @pytest.mark.asyncio
    async def test_anonymous_token_flow(self, tmp_path):
        registry = FakeRegistry(require_token=True)

        await _fetcher(registry).fetch(SOURCE_REF, tmp_path)

        assert registry.token_requests == [{
            "service": "registry.test",
            "scope": f"repository:{REPOSITORY}:pull",
        }]
        assert (tmp_path / "kubeadm.deb").exists()

    @pytest.mark.asyncio
    async def test_static_token_skips_challenge(self, tmp_path):
        registry = FakeRegistry(require_token=True)

        await _fetcher(registry, token="s3cret").fetch(SOURCE_REF, tmp_path)

        assert registry.token_requests == []

    @pytest.mark.asyncio
    async def test_digest_mismatch(self, tmp_path):
        with pytest.raises(FetchError, match="Digest mismatch"):
            await _fetcher(FakeRegistry(corrupt=True)).fetch(SOURCE_REF, tmp_path)

    @pytest.mark.asyncio
    async def test_missing_tag(self, tmp_path):
        with pytest.raises(httpx.HTTPStatusError):
            await _fetcher(FakeRegistry()).fetch(
                f"registry.test/{REPOSITORY}:0.0", tmp_path
            )

    @pytest.mark.asyncio
    async def test_layer_escaping_destination_is_refused(self, tmp_path):
        destination = tmp_path / "bundle"
        destination.mkdir()
        registry = FakeRegistry(layers=[_layer({"../escaped.sh": "rm -rf /"})])

        with pytest.raises(tarfile.FilterError):
            await _fetcher(registry).fetch(SOURCE_REF, destination)

        assert not (tmp_path / "escaped.sh").exists()

    def test_placeholder_token(self):
        with pytest.raises(ConfigurationError):
            _fetcher(FakeRegistry(), token="YOUR_TOKEN_HERE")


class TestDownloaderWithRegistry:
    @pytest.mark.asyncio
    async def test_downloads_into_cache(self, tmp_path):
        downloader = BundleDownloader(
            "registry.test/bundles", tmp_path, _fetcher(FakeRegistry())
        )

        path = await downloader.download(OS_VERSION, K8S_VERSION)

        assert path == tmp_path / OS_VERSION / K8S_VERSION
        assert (path / "kubeadm.deb").read_text() == "kubeadm"

    @pytest.mark.asyncio
    async def test_unknown_repo_is_download_error(self, tmp_path):
        downloader = BundleDownloader(
            "registry.test/elsewhere", tmp_path, _fetcher(FakeRegistry())
        )

        with pytest.raises(BundleDownloadError):
            await downloader.download(OS_VERSION, K8S_VERSION)

        bundle_dir = tmp_path / OS_VERSION / K8S_VERSION
        assert bundle_dir.is_dir()
        assert list(bundle_dir.iterdir()) == []
