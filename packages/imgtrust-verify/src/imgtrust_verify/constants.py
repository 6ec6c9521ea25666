"""
Constants shared across the verification tool.

Annotation keys and predicate URIs follow what BuildKit writes into image
indexes; defaults describe the image this tool was first written for.
"""

__version__ = "0.1.0"

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_REGISTRY = "ghcr.io"
DEFAULT_REPOSITORY = "jacobwoffenden/multi-arch-of-madness"
DEFAULT_TAG = "latest"

DEFAULT_IDENTITY_REGEXP = (
    "^https://github.com/{repository}/.github/workflows/release.yml@refs/tags/.*"
)
"""Certificate identity pattern; {repository} is substituted at load time."""

GITHUB_ACTIONS_ISSUER = "https://token.actions.githubusercontent.com"

DEFAULT_VERIFY_TIMEOUT = 60
DEFAULT_MANIFEST_TIMEOUT = 30
DEFAULT_BLOB_TIMEOUT = 60

# ============================================================================
# OCI annotations
# ============================================================================

REFERENCE_TYPE_ANNOTATION = "vnd.docker.reference.type"
REFERENCE_DIGEST_ANNOTATION = "vnd.docker.reference.digest"
ATTESTATION_MANIFEST_TYPE = "attestation-manifest"
PREDICATE_TYPE_ANNOTATION = "in-toto.io/predicate-type"

MANIFEST_ACCEPT_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
)

# ============================================================================
# Predicate types
# ============================================================================

SPDX_DOCUMENT_URI = "https://spdx.dev/Document"
SLSA_PROVENANCE_V02_URI = "https://slsa.dev/provenance/v0.2"
SLSA_PROVENANCE_V1_URI = "https://slsa.dev/provenance/v1"

UNKNOWN = "unknown"
"""Sentinel for absent or malformed fields."""

SAMPLE_PACKAGE_LIMIT = 5
MATERIAL_LIMIT = 3
