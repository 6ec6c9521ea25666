"""
Render a VerificationReport as text or JSON.

Text layout: image and signature result, then attestations grouped by
platform (first-seen order, SBOM before provenance), then skipped predicates
and warnings, then a note that the attestations are not cosign-signed.
"""

from __future__ import annotations

import json

from imgtrust_verify.constants import UNKNOWN
from imgtrust_verify.models import (
    PlatformAttestation,
    PredicateType,
    ProvenanceSummary,
    SbomSummary,
    VerificationReport,
)

BUILDKIT_NOTE = "Note: attestations are native BuildKit attestations (not cosign-signed)"

_PREDICATE_ORDER = {
    PredicateType.SPDX_SBOM: 0,
    PredicateType.SLSA_PROVENANCE: 1,
    PredicateType.UNKNOWN: 2,
}


def separator(width: int = 60) -> str:
    """Return a visual separator line."""
    return "=" * width


def exit_status(report: VerificationReport) -> int:
    """0 when the signature verified; attestation problems never change it."""
    return 0 if report.signature_verified else 1


def group_by_platform(
    attestations: list[PlatformAttestation],
) -> list[tuple[str, list[PlatformAttestation]]]:
    """Group attestations by platform in first-seen order, SBOM first within each."""
    groups: dict[str, list[PlatformAttestation]] = {}
    for attestation in attestations:
        groups.setdefault(str(attestation.platform), []).append(attestation)
    return [
        # sorted() is stable, so manifest order survives within a type
        (platform, sorted(items, key=lambda a: _PREDICATE_ORDER[a.predicate_type]))
        for platform, items in groups.items()
    ]


def _render_sbom(summary: SbomSummary) -> list[str]:
    count = summary.package_count if summary.package_count is not None else UNKNOWN
    lines = [
        f"  Format: {summary.format_version}",
        f"  Total packages: {count}",
    ]
    if summary.sample_packages:
        lines.append("  Sample packages:")
        lines.extend(f"    • {p.name} {p.version}" for p in summary.sample_packages)
    return lines


def _render_provenance(summary: ProvenanceSummary) -> list[str]:
    lines = [
        f"  Builder: {summary.builder_id}",
        f"  Build type: {summary.build_type}",
        f"  Build started: {summary.build_started_at}",
        f"  Build finished: {summary.build_finished_at}",
    ]
    if summary.materials:
        lines.append("  Base images:")
        lines.extend(f"    • {uri}" for uri in summary.materials)
    return lines


def _render_attestation(attestation: PlatformAttestation, platform: str) -> list[str]:
    lines = [
        f"{attestation.predicate_type.label} [{platform}]:",
        f"  Type: {attestation.predicate_uri}",
        f"  Attestation manifest: {attestation.digest}",
    ]
    summary = attestation.summary
    if isinstance(summary, SbomSummary):
        lines.extend(_render_sbom(summary))
    elif isinstance(summary, ProvenanceSummary):
        lines.extend(_render_provenance(summary))
    return lines


def render_text(report: VerificationReport) -> str:
    """Human-readable report."""
    lines = [
        separator(),
        f"Image: {report.image_reference.full_name}",
        separator(),
        "",
        "Verification criteria:",
        f"  Certificate identity: {report.identity_pattern}",
        f"  OIDC issuer: {report.oidc_issuer}",
        "",
    ]

    if not report.signature_verified:
        lines.append("✗ Signature verification FAILED")
        if report.signature_error:
            lines.append(f"  Reason: {report.signature_error}")
        return "\n".join(lines)

    lines.append("✓ Signature verification PASSED")
    if report.signature_digest:
        lines.append(f"  Digest: {report.signature_digest}")
    lines.append("")

    if report.attestation_manifest_count:
        lines.append(f"✓ Found {report.attestation_manifest_count} attestation manifest(s)")
    else:
        lines.append("! No attestation manifests found")

    groups = group_by_platform(report.attestations)
    if report.attestation_manifest_count and not groups:
        lines.append("! No recognized attestations found")

    for platform, items in groups:
        for attestation in items:
            lines.append("")
            lines.extend(_render_attestation(attestation, platform))

    if report.skipped_predicates:
        lines.append("")
        lines.append(f"Skipped {len(report.skipped_predicates)} unrecognized predicate type(s):")
        lines.extend(f"  - {uri}" for uri in report.skipped_predicates)

    if report.warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"  ! {warning}" for warning in report.warnings)

    if groups:
        lines.append("")
        lines.append(BUILDKIT_NOTE)

    return "\n".join(lines)


def render_json(report: VerificationReport) -> str:
    """Structured report; attestations keep the grouped text ordering."""
    data = report.to_dict()
    data["attestations"] = [
        attestation.to_dict()
        for _, items in group_by_platform(report.attestations)
        for attestation in items
    ]
    data["exit_status"] = exit_status(report)
    return json.dumps(data, indent=2)
