"""Shared pytest fixtures for imgtrust-verify tests."""

import pytest

from imgtrust_core.context import ExecutionContext
from imgtrust_verify.models import ImageReference, SignatureRecord, VerificationResult

from oci_fixtures import (
    AMD64_DIGEST,
    ARM64_DIGEST,
    ATT_AMD64_DIGEST,
    ATT_ARM64_DIGEST,
    INDEX_DIGEST,
    PROV_AMD64_BLOB,
    PROV_ARM64_BLOB,
    SBOM_AMD64_BLOB,
    SBOM_ARM64_BLOB,
    SLSA,
    SPDX,
    FakeRegistry,
    FakeVerifier,
    attestation_entry,
    attestation_manifest,
    image_entry,
    provenance_statement,
    sbom_statement,
)


@pytest.fixture
def reference():
    return ImageReference.from_parts("ghcr.io", "acme/app", "1.0.0")


@pytest.fixture
def index():
    return {
        "schemaVersion": 2,
        "mediaType": "application/vnd.oci.image.index.v1+json",
        "manifests": [
            image_entry(AMD64_DIGEST, "linux", "amd64"),
            image_entry(ARM64_DIGEST, "linux", "arm64"),
            attestation_entry(ATT_AMD64_DIGEST, AMD64_DIGEST),
            attestation_entry(ATT_ARM64_DIGEST, ARM64_DIGEST),
        ],
    }


@pytest.fixture
def registry(index):
    packages = [{"name": f"pkg{i}", "versionInfo": f"1.{i}"} for i in range(8)]
    return FakeRegistry(
        index,
        attestations={
            ATT_AMD64_DIGEST: attestation_manifest((PROV_AMD64_BLOB, SLSA), (SBOM_AMD64_BLOB, SPDX)),
            ATT_ARM64_DIGEST: attestation_manifest((SBOM_ARM64_BLOB, SPDX), (PROV_ARM64_BLOB, SLSA)),
        },
        blobs={
            SBOM_AMD64_BLOB: sbom_statement(packages),
            PROV_AMD64_BLOB: provenance_statement(),
            SBOM_ARM64_BLOB: sbom_statement(packages[:2]),
            PROV_ARM64_BLOB: provenance_statement(),
        },
    )


@pytest.fixture
def verified():
    return FakeVerifier(
        VerificationResult(ok=True, records=(SignatureRecord(manifest_digest=INDEX_DIGEST),))
    )


@pytest.fixture
def rejected():
    return FakeVerifier(VerificationResult(ok=False, error="no matching signatures"))


@pytest.fixture
def ctx():
    return ExecutionContext()
