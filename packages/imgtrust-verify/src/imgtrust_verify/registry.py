"""
Read-only registry access.

Two transports satisfy ``RegistryClient``:

- ``HttpRegistryClient`` talks the OCI distribution API directly, fetching an
  anonymous bearer token when the registry challenges.
- ``CraneRegistryClient`` shells out to ``crane``.

Both raise ``ManifestFetchError`` / ``BlobFetchError`` on any failure,
timeouts included.
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
from typing import Any, Optional, Protocol

import requests

from imgtrust_verify.commands import TIMEOUT_MESSAGE, run_cmd_bytes
from imgtrust_verify.constants import (
    DEFAULT_BLOB_TIMEOUT,
    DEFAULT_MANIFEST_TIMEOUT,
    MANIFEST_ACCEPT_TYPES,
)
from imgtrust_verify.errors import BlobFetchError, ManifestFetchError
from imgtrust_verify.models import AttestationManifest, ImageReference, Manifest

logger = logging.getLogger(__name__)

# Retry configuration for rate limiting
MAX_RETRIES = 3
BASE_RETRY_DELAY = 1.0  # seconds
MAX_RETRY_DELAY = 60.0  # seconds

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


class RegistryClient(Protocol):
    def get_manifest(self, reference: ImageReference) -> Manifest:
        """Fetch the top-level manifest (image index) for a reference."""
        ...

    def get_attestation_manifest(
        self, reference: ImageReference, digest: str
    ) -> AttestationManifest:
        """Fetch an attestation manifest by digest from the same repository."""
        ...

    def get_blob(self, reference: ImageReference, digest: str) -> bytes:
        """Fetch a content blob by digest from the same repository."""
        ...


def _decode_json(ref: str, payload: bytes) -> Any:
    try:
        return json.loads(payload)
    except ValueError as e:  # includes UnicodeDecodeError
        raise ManifestFetchError(ref, f"invalid JSON: {e}") from e


def _retry_delay(retry_after: Optional[str], attempt: int) -> float:
    """Seconds to wait before retrying a 429.

    Honors a numeric Retry-After between 0 and MAX_RETRY_DELAY, otherwise
    falls back to exponential backoff.
    """
    backoff = BASE_RETRY_DELAY * (2 ** attempt)
    try:
        delay = float(retry_after) if retry_after else backoff
    except ValueError:
        return backoff
    if not math.isfinite(delay) or delay < 0:
        return backoff
    return min(delay, MAX_RETRY_DELAY)


class HttpRegistryClient:
    """
    OCI distribution API client.

    Uses a requests Session for connection pooling and caches one bearer
    token per repository scope.
    """

    def __init__(
        self,
        manifest_timeout: int = DEFAULT_MANIFEST_TIMEOUT,
        blob_timeout: int = DEFAULT_BLOB_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.manifest_timeout = manifest_timeout
        self.blob_timeout = blob_timeout
        self._session = session or requests.Session()
        self._tokens: dict[str, str] = {}

    def get_manifest(self, reference: ImageReference) -> Manifest:
        ref = reference.full_name
        data = self._fetch_manifest(reference, reference.reference, ref)
        return Manifest.from_dict(data)

    def get_attestation_manifest(
        self, reference: ImageReference, digest: str
    ) -> AttestationManifest:
        ref = reference.with_digest(digest).full_name
        data = self._fetch_manifest(reference, digest, ref)
        return AttestationManifest.from_dict(digest, data)

    def get_blob(self, reference: ImageReference, digest: str) -> bytes:
        url = f"https://{reference.registry}/v2/{reference.repository}/blobs/{digest}"
        try:
            response = self._get(reference, url, {}, self.blob_timeout)
            response.raise_for_status()
        except requests.Timeout as e:
            raise BlobFetchError(digest, f"timed out after {self.blob_timeout}s") from e
        except requests.RequestException as e:
            raise BlobFetchError(digest, str(e)) from e
        return response.content

    def _fetch_manifest(self, reference: ImageReference, tag_or_digest: str, ref: str) -> Any:
        url = f"https://{reference.registry}/v2/{reference.repository}/manifests/{tag_or_digest}"
        headers = {"Accept": ", ".join(MANIFEST_ACCEPT_TYPES)}
        try:
            response = self._get(reference, url, headers, self.manifest_timeout)
            response.raise_for_status()
        except requests.Timeout as e:
            raise ManifestFetchError(ref, f"timed out after {self.manifest_timeout}s") from e
        except requests.RequestException as e:
            raise ManifestFetchError(ref, str(e)) from e
        return _decode_json(ref, response.content)

    def _get(
        self,
        reference: ImageReference,
        url: str,
        headers: dict[str, str],
        timeout: int,
    ) -> requests.Response:
        """GET with anonymous token auth and rate-limit backoff."""
        scope = f"repository:{reference.repository}:pull"
        response = None

        for attempt in range(MAX_RETRIES + 1):
            request_headers = dict(headers)
            token = self._tokens.get(scope)
            if token:
                request_headers["Authorization"] = f"Bearer {token}"

            response = self._session.get(url, headers=request_headers, timeout=timeout)

            if response.status_code == 401 and not token:
                challenge = response.headers.get("WWW-Authenticate", "")
                if challenge.lower().startswith("bearer"):
                    self._tokens[scope] = self._fetch_token(challenge, scope, timeout)
                    continue
                return response

            if response.status_code == 429 and attempt < MAX_RETRIES:
                delay = _retry_delay(response.headers.get("Retry-After"), attempt)
                logger.debug(
                    f"Rate limited fetching {url}, retrying in {delay:.1f}s "
                    f"(attempt {attempt + 1}/{MAX_RETRIES})"
                )
                time.sleep(delay)
                continue

            return response

        return response

    def _fetch_token(self, challenge: str, scope: str, timeout: int) -> str:
        """Exchange a ``WWW-Authenticate: Bearer`` challenge for an anonymous token."""
        params = dict(_CHALLENGE_PARAM.findall(challenge))
        realm = params.pop("realm", None)
        if not realm:
            raise requests.RequestException(f"unusable auth challenge: {challenge}")
        params.setdefault("scope", scope)

        response = self._session.get(realm, params=params, timeout=timeout)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as e:
            raise requests.RequestException(f"invalid token response from {realm}") from e

        token = (body.get("token") or body.get("access_token")) if isinstance(body, dict) else None
        if not token:
            raise requests.RequestException(f"no token in response from {realm}")
        logger.debug(f"Obtained anonymous registry token for {scope}")
        return token


class CraneRegistryClient:
    """Registry access through the crane CLI."""

    REQUIRED_TOOLS = ["crane"]

    def __init__(
        self,
        manifest_timeout: int = DEFAULT_MANIFEST_TIMEOUT,
        blob_timeout: int = DEFAULT_BLOB_TIMEOUT,
    ):
        self.manifest_timeout = manifest_timeout
        self.blob_timeout = blob_timeout

    def get_manifest(self, reference: ImageReference) -> Manifest:
        ref = reference.full_name
        return Manifest.from_dict(self._crane_manifest(ref))

    def get_attestation_manifest(
        self, reference: ImageReference, digest: str
    ) -> AttestationManifest:
        ref = reference.with_digest(digest).full_name
        return AttestationManifest.from_dict(digest, self._crane_manifest(ref))

    def get_blob(self, reference: ImageReference, digest: str) -> bytes:
        ref = reference.with_digest(digest).full_name
        success, stdout, stderr = run_cmd_bytes(["crane", "blob", ref], timeout=self.blob_timeout)
        if not success:
            raise BlobFetchError(digest, self._reason(stderr, self.blob_timeout))
        return stdout

    def _crane_manifest(self, ref: str) -> Any:
        success, stdout, stderr = run_cmd_bytes(["crane", "manifest", ref], timeout=self.manifest_timeout)
        if not success:
            raise ManifestFetchError(ref, self._reason(stderr, self.manifest_timeout))
        return _decode_json(ref, stdout)

    @staticmethod
    def _reason(stderr: str, timeout: int) -> str:
        if stderr == TIMEOUT_MESSAGE:
            return f"timed out after {timeout}s"
        return stderr.strip() or "crane failed"
