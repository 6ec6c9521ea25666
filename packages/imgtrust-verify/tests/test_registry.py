"""Tests for the HTTP and crane registry transports."""

import json
import subprocess
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from imgtrust_verify.errors import BlobFetchError, ManifestFetchError
from imgtrust_verify.extractor import AttestationExtractor
from imgtrust_verify.models import Platform
from imgtrust_verify.registry import MAX_RETRY_DELAY, CraneRegistryClient, HttpRegistryClient

from oci_fixtures import ATT_AMD64_DIGEST, SBOM_AMD64_BLOB, SPDX, attestation_manifest


def http_response(status=200, body=b"", headers=None):
    response = Mock()
    response.status_code = status
    response.content = body
    response.headers = headers or {}
    response.json.side_effect = lambda: json.loads(body)
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error", response=response)
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


class TestHttpRegistryClient:
    def test_get_manifest_requests_index_media_types(self, reference, index, session):
        session.get.return_value = http_response(body=json.dumps(index).encode())
        manifest = HttpRegistryClient(session=session).get_manifest(reference)

        assert len(manifest.entries) == 4
        url = session.get.call_args[0][0]
        assert url == "https://ghcr.io/v2/acme/app/manifests/1.0.0"
        accept = session.get.call_args.kwargs["headers"]["Accept"]
        assert "application/vnd.oci.image.index.v1+json" in accept
        assert "application/vnd.docker.distribution.manifest.list.v2+json" in accept

    def test_anonymous_token_exchange(self, reference, index, session):
        challenge = 'Bearer realm="https://ghcr.io/token",service="ghcr.io",scope="repository:acme/app:pull"'
        session.get.side_effect = [
            http_response(401, headers={"WWW-Authenticate": challenge}),
            http_response(body=b'{"token": "anon"}'),
            http_response(body=json.dumps(index).encode()),
        ]
        client = HttpRegistryClient(session=session)
        client.get_manifest(reference)

        token_call = session.get.call_args_list[1]
        assert token_call[0][0] == "https://ghcr.io/token"
        assert token_call.kwargs["params"] == {"service": "ghcr.io", "scope": "repository:acme/app:pull"}
        retry = session.get.call_args_list[2]
        assert retry.kwargs["headers"]["Authorization"] == "Bearer anon"

    def test_token_reused_for_later_requests(self, reference, index, session):
        challenge = 'Bearer realm="https://ghcr.io/token",service="ghcr.io"'
        session.get.side_effect = [
            http_response(401, headers={"WWW-Authenticate": challenge}),
            http_response(body=b'{"access_token": "anon"}'),
            http_response(body=json.dumps(index).encode()),
            http_response(body=b"{}"),
        ]
        client = HttpRegistryClient(session=session)
        client.get_manifest(reference)
        client.get_blob(reference, SBOM_AMD64_BLOB)

        assert session.get.call_count == 4
        assert session.get.call_args_list[3].kwargs["headers"]["Authorization"] == "Bearer anon"

    def test_attestation_manifest_by_digest(self, reference, session):
        body = json.dumps(attestation_manifest((SBOM_AMD64_BLOB, SPDX))).encode()
        session.get.return_value = http_response(body=body)
        manifest = HttpRegistryClient(session=session).get_attestation_manifest(reference, ATT_AMD64_DIGEST)

        assert session.get.call_args[0][0].endswith(f"/manifests/{ATT_AMD64_DIGEST}")
        assert manifest.digest == ATT_AMD64_DIGEST
        assert manifest.layers[0].predicate_type == SPDX

    def test_get_blob(self, reference, session):
        session.get.return_value = http_response(body=b'{"predicate": {}}')
        blob = HttpRegistryClient(session=session).get_blob(reference, SBOM_AMD64_BLOB)

        assert blob == b'{"predicate": {}}'
        assert session.get.call_args[0][0] == f"https://ghcr.io/v2/acme/app/blobs/{SBOM_AMD64_BLOB}"

    def test_manifest_http_error(self, reference, session):
        session.get.return_value = http_response(404)
        with pytest.raises(ManifestFetchError):
            HttpRegistryClient(session=session).get_manifest(reference)

    def test_manifest_invalid_json(self, reference, session):
        session.get.return_value = http_response(body=b"<html>")
        with pytest.raises(ManifestFetchError, match="invalid JSON"):
            HttpRegistryClient(session=session).get_manifest(reference)

    def test_manifest_timeout(self, reference, session):
        session.get.side_effect = requests.Timeout()
        with pytest.raises(ManifestFetchError, match="timed out after 7s"):
            HttpRegistryClient(manifest_timeout=7, session=session).get_manifest(reference)

    def test_blob_timeout(self, reference, session):
        session.get.side_effect = requests.Timeout()
        with pytest.raises(BlobFetchError, match="timed out after 9s"):
            HttpRegistryClient(blob_timeout=9, session=session).get_blob(reference, SBOM_AMD64_BLOB)

    def test_blob_connection_error(self, reference, session):
        session.get.side_effect = requests.ConnectionError("refused")
        with pytest.raises(BlobFetchError):
            HttpRegistryClient(session=session).get_blob(reference, SBOM_AMD64_BLOB)

    def test_rate_limit_retried(self, reference, session):
        session.get.side_effect = [
            http_response(429, headers={"Retry-After": "0"}),
            http_response(body=b"blob"),
        ]
        with patch("imgtrust_verify.registry.time.sleep") as mock_sleep:
            blob = HttpRegistryClient(session=session).get_blob(reference, SBOM_AMD64_BLOB)

        assert blob == b"blob"
        mock_sleep.assert_called_once_with(0.0)

    @pytest.mark.parametrize("retry_after", ["-1", "inf", "nan", "soon"])
    def test_unusable_retry_after_falls_back_to_backoff(self, reference, session, retry_after):
        session.get.side_effect = [
            http_response(429, headers={"Retry-After": retry_after}),
            http_response(body=b"blob"),
        ]
        with patch("imgtrust_verify.registry.time.sleep") as mock_sleep:
            blob = HttpRegistryClient(session=session).get_blob(reference, SBOM_AMD64_BLOB)

        assert blob == b"blob"
        mock_sleep.assert_called_once_with(1.0)

    def test_long_retry_after_capped(self, reference, session):
        session.get.side_effect = [
            http_response(429, headers={"Retry-After": "86400"}),
            http_response(body=b"blob"),
        ]
        with patch("imgtrust_verify.registry.time.sleep") as mock_sleep:
            HttpRegistryClient(session=session).get_blob(reference, SBOM_AMD64_BLOB)

        mock_sleep.assert_called_once_with(MAX_RETRY_DELAY)

    def test_rate_limit_exhausted(self, reference, session):
        session.get.return_value = http_response(429)
        with patch("imgtrust_verify.registry.time.sleep"):
            with pytest.raises(BlobFetchError):
                HttpRegistryClient(session=session).get_blob(reference, SBOM_AMD64_BLOB)

        assert session.get.call_count == 4


class TestCraneRegistryClient:
    def test_get_manifest(self, reference, index):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout=json.dumps(index).encode(), stderr=b"")
            manifest = CraneRegistryClient(manifest_timeout=12).get_manifest(reference)

        assert mock_run.call_args[0][0] == ["crane", "manifest", "ghcr.io/acme/app:1.0.0"]
        assert mock_run.call_args.kwargs["timeout"] == 12
        assert len(manifest.entries) == 4

    def test_get_blob_pins_digest(self, reference):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout=b'{"a": 1}', stderr=b"")
            blob = CraneRegistryClient().get_blob(reference, SBOM_AMD64_BLOB)

        assert mock_run.call_args[0][0] == ["crane", "blob", f"ghcr.io/acme/app@{SBOM_AMD64_BLOB}"]
        assert blob == b'{"a": 1}'

    def test_manifest_failure(self, reference):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=1, stdout=b"", stderr=b"MANIFEST_UNKNOWN")
            with pytest.raises(ManifestFetchError, match="MANIFEST_UNKNOWN"):
                CraneRegistryClient().get_attestation_manifest(reference, ATT_AMD64_DIGEST)

    def test_blob_timeout(self, reference):
        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired("crane", 3)):
            with pytest.raises(BlobFetchError, match="timed out after 3s"):
                CraneRegistryClient(blob_timeout=3).get_blob(reference, SBOM_AMD64_BLOB)

    def test_blob_bytes_returned_unchanged(self, reference):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout=b"\xff\xfe", stderr=b"")
            blob = CraneRegistryClient().get_blob(reference, SBOM_AMD64_BLOB)

        assert "text" not in mock_run.call_args.kwargs
        assert blob == b"\xff\xfe"

    def test_non_utf8_manifest_is_fetch_error(self, reference):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0, stdout=b"\xff\xfe", stderr=b"")
            with pytest.raises(ManifestFetchError, match="invalid JSON"):
                CraneRegistryClient().get_manifest(reference)

    def test_non_utf8_blob_becomes_warning(self, reference):
        manifest = json.dumps(attestation_manifest((SBOM_AMD64_BLOB, SPDX))).encode()
        with patch("subprocess.run") as mock_run:
            mock_run.side_effect = [
                Mock(returncode=0, stdout=manifest, stderr=b""),
                Mock(returncode=0, stdout=b"\xff\xfe", stderr=b""),
            ]
            result = AttestationExtractor(CraneRegistryClient(), reference).classify_and_extract(
                ATT_AMD64_DIGEST, Platform("linux", "amd64")
            )

        assert len(result.attestations) == 1
        assert result.attestations[0].summary.package_count is None
        assert "[linux/amd64] is incomplete" in result.warnings[0]
