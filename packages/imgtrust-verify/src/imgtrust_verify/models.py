"""
Data models for image trust verification.

Registry documents are decoded with tolerant ``from_dict`` constructors:
absent or mistyped fields fall back to empty values instead of raising, so a
damaged manifest degrades to fewer entries rather than a failed run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from imgtrust_verify.constants import (
    PREDICATE_TYPE_ANNOTATION,
    REFERENCE_DIGEST_ANNOTATION,
    REFERENCE_TYPE_ANNOTATION,
    UNKNOWN,
)


def _str_mapping(value: Any) -> dict[str, str]:
    """Keep only the string-valued items of a JSON object."""
    if not isinstance(value, dict):
        return {}
    return {k: v for k, v in value.items() if isinstance(k, str) and isinstance(v, str)}


@dataclass(frozen=True)
class ImageReference:
    """
    An image reference pinned to one repository.

    Constructed once from CLI input and configuration.
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def from_parts(cls, registry: str, repository: str, tag_or_digest: str) -> "ImageReference":
        """Build a reference from a registry, repository and tag (or digest)."""
        if tag_or_digest.startswith("sha256:"):
            return cls(registry=registry, repository=repository, digest=tag_or_digest)
        return cls(registry=registry, repository=repository, tag=tag_or_digest)

    @property
    def name(self) -> str:
        """Registry and repository without tag or digest."""
        return f"{self.registry}/{self.repository}"

    @property
    def reference(self) -> str:
        """The tag or digest part used in registry API paths."""
        return self.digest or self.tag or "latest"

    @property
    def full_name(self) -> str:
        if self.digest:
            return f"{self.name}@{self.digest}"
        return f"{self.name}:{self.tag or 'latest'}"

    def with_digest(self, digest: str) -> "ImageReference":
        """Same repository, pinned to ``digest``."""
        return ImageReference(registry=self.registry, repository=self.repository, digest=digest)

    def __str__(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class Platform:
    """Operating system and architecture of a platform-specific image."""

    os: str
    architecture: str
    variant: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Platform"]:
        """Decode a manifest ``platform`` object; None when incomplete."""
        if not isinstance(data, dict):
            return None
        os_name = data.get("os")
        arch = data.get("architecture")
        if not isinstance(os_name, str) or not isinstance(arch, str) or not os_name or not arch:
            return None
        variant = data.get("variant")
        return cls(os=os_name, architecture=arch, variant=variant if isinstance(variant, str) and variant else None)

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


UNKNOWN_PLATFORM = Platform(os=UNKNOWN, architecture=UNKNOWN)


@dataclass(frozen=True)
class ManifestEntry:
    """One descriptor in an image index."""

    digest: str
    media_type: str = ""
    platform: Optional[Platform] = None
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ManifestEntry"]:
        if not isinstance(data, dict):
            return None
        digest = data.get("digest")
        if not isinstance(digest, str) or not digest:
            return None
        media_type = data.get("mediaType")
        return cls(
            digest=digest,
            media_type=media_type if isinstance(media_type, str) else "",
            platform=Platform.from_dict(data.get("platform")),
            annotations=_str_mapping(data.get("annotations")),
        )

    @property
    def reference_type(self) -> Optional[str]:
        return self.annotations.get(REFERENCE_TYPE_ANNOTATION)

    @property
    def reference_digest(self) -> Optional[str]:
        return self.annotations.get(REFERENCE_DIGEST_ANNOTATION)


@dataclass(frozen=True)
class Manifest:
    """Top-level image index (OCI index or Docker manifest list)."""

    media_type: str = ""
    entries: tuple[ManifestEntry, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "Manifest":
        if not isinstance(data, dict):
            return cls()
        raw_entries = data.get("manifests")
        if not isinstance(raw_entries, list):
            raw_entries = []
        entries = [ManifestEntry.from_dict(item) for item in raw_entries]
        media_type = data.get("mediaType")
        return cls(
            media_type=media_type if isinstance(media_type, str) else "",
            entries=tuple(e for e in entries if e is not None),
        )

    def find(self, digest: str) -> Optional[ManifestEntry]:
        """First entry with the given digest, if any."""
        for entry in self.entries:
            if entry.digest == digest:
                return entry
        return None


@dataclass(frozen=True)
class Layer:
    """A layer of an attestation manifest."""

    digest: str
    media_type: str = ""
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def predicate_type(self) -> Optional[str]:
        return self.annotations.get(PREDICATE_TYPE_ANNOTATION)


@dataclass(frozen=True)
class AttestationManifest:
    """An attestation manifest fetched by digest."""

    digest: str
    layers: tuple[Layer, ...] = ()

    @classmethod
    def from_dict(cls, digest: str, data: Any) -> "AttestationManifest":
        raw_layers = data.get("layers") if isinstance(data, dict) else None
        if not isinstance(raw_layers, list):
            raw_layers = []
        layers = []
        for item in raw_layers:
            if not isinstance(item, dict) or not isinstance(item.get("digest"), str):
                continue
            media_type = item.get("mediaType")
            layers.append(
                Layer(
                    digest=item["digest"],
                    media_type=media_type if isinstance(media_type, str) else "",
                    annotations=_str_mapping(item.get("annotations")),
                )
            )
        return cls(digest=digest, layers=tuple(layers))


class PredicateType(Enum):
    """Classification of an attestation predicate URI."""

    SPDX_SBOM = "spdx-sbom"
    SLSA_PROVENANCE = "slsa-provenance"
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        return _PREDICATE_LABELS[self]


_PREDICATE_LABELS = {
    PredicateType.SPDX_SBOM: "SBOM (Software Bill of Materials)",
    PredicateType.SLSA_PROVENANCE: "Provenance (Build Information)",
    PredicateType.UNKNOWN: "Unrecognized attestation",
}


@dataclass(frozen=True)
class PackageRef:
    name: str
    version: str = UNKNOWN


@dataclass(frozen=True)
class SbomSummary:
    """Digest of an SPDX SBOM attestation."""

    format_version: str = UNKNOWN
    package_count: Optional[int] = None
    sample_packages: tuple[PackageRef, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "format_version": self.format_version,
            "package_count": self.package_count if self.package_count is not None else UNKNOWN,
            "sample_packages": [{"name": p.name, "version": p.version} for p in self.sample_packages],
        }


@dataclass(frozen=True)
class ProvenanceSummary:
    """Digest of a SLSA provenance attestation."""

    builder_id: str = UNKNOWN
    build_type: str = UNKNOWN
    build_started_at: str = UNKNOWN
    build_finished_at: str = UNKNOWN
    materials: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "builder_id": self.builder_id,
            "build_type": self.build_type,
            "build_started_at": self.build_started_at,
            "build_finished_at": self.build_finished_at,
            "materials": list(self.materials),
        }


AttestationSummary = Union[SbomSummary, ProvenanceSummary]


@dataclass(frozen=True)
class PlatformAttestation:
    """One recognized predicate found in one attestation manifest."""

    platform: Platform
    predicate_type: PredicateType
    predicate_uri: str
    digest: str
    layer_digest: str
    summary: AttestationSummary

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": str(self.platform),
            "predicate_type": self.predicate_type.value,
            "predicate_uri": self.predicate_uri,
            "digest": self.digest,
            "layer_digest": self.layer_digest,
            "summary": self.summary.to_dict(),
        }


@dataclass(frozen=True)
class SignatureRecord:
    """A verified signature as reported by the verifier."""

    manifest_digest: str
    identity: Optional[str] = None
    issuer: Optional[str] = None


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of signature verification."""

    ok: bool
    records: tuple[SignatureRecord, ...] = ()
    error: str = ""


@dataclass
class VerificationReport:
    """Everything the renderer needs; built fresh per run."""

    image_reference: ImageReference
    identity_pattern: str
    oidc_issuer: str
    signature_verified: bool = False
    signature_digest: Optional[str] = None
    signature_error: str = ""
    attestation_manifest_count: int = 0
    attestations: list[PlatformAttestation] = field(default_factory=list)
    skipped_predicates: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "image_reference": self.image_reference.full_name,
            "identity_pattern": self.identity_pattern,
            "oidc_issuer": self.oidc_issuer,
            "signature_verified": self.signature_verified,
            "signature_digest": self.signature_digest,
            "signature_error": self.signature_error or None,
            "attestation_manifest_count": self.attestation_manifest_count,
            "attestations": [a.to_dict() for a in self.attestations],
            "skipped_predicates": list(self.skipped_predicates),
            "warnings": list(self.warnings),
        }
