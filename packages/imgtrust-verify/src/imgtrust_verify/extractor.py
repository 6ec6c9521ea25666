"""
Classify attestation layers by predicate type and summarize their documents.

Attestation blobs are in-toto statements; the interesting content is the
``predicate`` object. Extraction is tolerant: a missing or mistyped field
becomes ``"unknown"``, an undecodable document becomes an all-unknown
summary, and fetch failures are returned as warnings instead of raised.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from imgtrust_verify.constants import (
    MATERIAL_LIMIT,
    SAMPLE_PACKAGE_LIMIT,
    SLSA_PROVENANCE_V02_URI,
    SLSA_PROVENANCE_V1_URI,
    SPDX_DOCUMENT_URI,
    UNKNOWN,
)
from imgtrust_verify.errors import AttestationParseError, BlobFetchError, ManifestFetchError
from imgtrust_verify.models import (
    AttestationSummary,
    ImageReference,
    PackageRef,
    Platform,
    PlatformAttestation,
    PredicateType,
    ProvenanceSummary,
    SbomSummary,
)
from imgtrust_verify.registry import RegistryClient

logger = logging.getLogger(__name__)

PREDICATE_TYPES: dict[str, PredicateType] = {
    SPDX_DOCUMENT_URI: PredicateType.SPDX_SBOM,
    SLSA_PROVENANCE_V02_URI: PredicateType.SLSA_PROVENANCE,
    SLSA_PROVENANCE_V1_URI: PredicateType.SLSA_PROVENANCE,
}


def classify_predicate(uri: str) -> PredicateType:
    return PREDICATE_TYPES.get(uri, PredicateType.UNKNOWN)


def _field(data: Any, *path: str) -> str:
    """Walk nested objects; non-empty string at the end or ``UNKNOWN``."""
    for key in path:
        if not isinstance(data, dict):
            return UNKNOWN
        data = data.get(key)
    if isinstance(data, str) and data:
        return data
    return UNKNOWN


def _predicate(document: Any) -> Any:
    """The statement's predicate, or the document itself when it is bare."""
    if isinstance(document, dict) and isinstance(document.get("predicate"), dict):
        return document["predicate"]
    return document


def decode_document(digest: str, blob: bytes) -> Any:
    """
    Decode an attestation blob as JSON.

    Raises:
        AttestationParseError: If the blob is not UTF-8 JSON.
    """
    try:
        return json.loads(blob.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise AttestationParseError(digest, str(e)) from e


def parse_sbom(document: Any) -> SbomSummary:
    """Summarize an SPDX document: version, package count, first named packages."""
    predicate = _predicate(document)
    packages = predicate.get("packages") if isinstance(predicate, dict) else None
    if not isinstance(packages, list):
        return SbomSummary(format_version=_field(predicate, "spdxVersion"))

    samples = []
    for package in packages:
        if len(samples) >= SAMPLE_PACKAGE_LIMIT:
            break
        if not isinstance(package, dict) or package.get("name") is None:
            continue
        samples.append(
            PackageRef(name=str(package["name"]), version=_field(package, "versionInfo"))
        )

    return SbomSummary(
        format_version=_field(predicate, "spdxVersion"),
        package_count=len(packages),
        sample_packages=tuple(samples),
    )


def _material_uris(items: Any) -> tuple[str, ...]:
    if not isinstance(items, list):
        return ()
    uris = [item["uri"] for item in items if isinstance(item, dict) and isinstance(item.get("uri"), str)]
    return tuple(uris[:MATERIAL_LIMIT])


def parse_provenance(document: Any) -> ProvenanceSummary:
    """
    Summarize a SLSA provenance predicate.

    v0.2 keeps builder, build type, timestamps and materials at the top level
    of the predicate; v1 moves them under ``buildDefinition`` and
    ``runDetails``.
    """
    predicate = _predicate(document)

    if isinstance(predicate, dict) and ("buildDefinition" in predicate or "runDetails" in predicate):
        build_definition = predicate.get("buildDefinition")
        return ProvenanceSummary(
            builder_id=_field(predicate, "runDetails", "builder", "id"),
            build_type=_field(predicate, "buildDefinition", "buildType"),
            build_started_at=_field(predicate, "runDetails", "metadata", "startedOn"),
            build_finished_at=_field(predicate, "runDetails", "metadata", "finishedOn"),
            materials=_material_uris(
                build_definition.get("resolvedDependencies")
                if isinstance(build_definition, dict) else None
            ),
        )

    return ProvenanceSummary(
        builder_id=_field(predicate, "builder", "id"),
        build_type=_field(predicate, "buildType"),
        build_started_at=_field(predicate, "metadata", "buildStartedOn"),
        build_finished_at=_field(predicate, "metadata", "buildFinishedOn"),
        materials=_material_uris(predicate.get("materials") if isinstance(predicate, dict) else None),
    )


def summarize(predicate_type: PredicateType, document: Any) -> AttestationSummary:
    if predicate_type is PredicateType.SPDX_SBOM:
        return parse_sbom(document)
    if predicate_type is PredicateType.SLSA_PROVENANCE:
        return parse_provenance(document)
    raise ValueError(f"no summary for predicate type {predicate_type.value}")


@dataclass
class ExtractionResult:
    """What one attestation manifest contributed to the report."""

    attestations: list[PlatformAttestation] = field(default_factory=list)
    skipped_predicates: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class AttestationExtractor:
    """Fetch attestation manifests and summarize their recognized predicates."""

    def __init__(self, registry: RegistryClient, reference: ImageReference):
        self.registry = registry
        self.reference = reference

    def classify_and_extract(self, digest: str, platform: Platform) -> ExtractionResult:
        """
        Summarize one attestation manifest.

        Only the first layer of each predicate type is used. Unrecognized
        predicate URIs are listed once per manifest in ``skipped_predicates``.
        """
        result = ExtractionResult()

        try:
            manifest = self.registry.get_attestation_manifest(self.reference, digest)
        except ManifestFetchError as e:
            logger.warning(str(e))
            result.warnings.append(f"Attestation manifest skipped: {e}")
            return result

        seen: set[PredicateType] = set()
        for layer in manifest.layers:
            uri = layer.predicate_type
            if not uri:
                logger.debug(f"Layer {layer.digest} in {digest} has no predicate type")
                continue

            predicate_type = classify_predicate(uri)
            if predicate_type is PredicateType.UNKNOWN:
                if uri not in result.skipped_predicates:
                    result.skipped_predicates.append(uri)
                continue

            if predicate_type in seen:
                logger.debug(f"Ignoring duplicate {predicate_type.value} layer {layer.digest} in {digest}")
                continue
            seen.add(predicate_type)

            try:
                blob = self.registry.get_blob(self.reference, layer.digest)
            except BlobFetchError as e:
                logger.warning(str(e))
                result.warnings.append(f"{predicate_type.label} [{platform}] omitted: {e}")
                continue

            try:
                document = decode_document(layer.digest, blob)
            except AttestationParseError as e:
                logger.warning(str(e))
                result.warnings.append(f"{predicate_type.label} [{platform}] is incomplete: {e}")
                document = None

            result.attestations.append(
                PlatformAttestation(
                    platform=platform,
                    predicate_type=predicate_type,
                    predicate_uri=uri,
                    digest=digest,
                    layer_digest=layer.digest,
                    summary=summarize(predicate_type, document),
                )
            )

        return result
