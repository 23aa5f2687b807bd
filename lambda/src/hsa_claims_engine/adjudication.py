"""Decide a claim's initial status from catalog and classifier evidence."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from hsa_claims_engine.catalog import SERVICE_CATALOG, CatalogEntry, qualified_service_names
from hsa_claims_engine.claude_client import ClassifierResult
from hsa_claims_engine.matcher import match_service

logger = logging.getLogger(__name__)

AUTO_DECISION_THRESHOLD = 80
AI_REVIEW_THRESHOLD = 60
CATALOG_ANSWER_THRESHOLD = 70

PRESCRIPTION = "prescription"
LETTER_OF_NECESSITY = "letter of medical necessity"

Classify = Callable[[str], ClassifierResult]


class ClaimStatus(str, Enum):
    PENDING = "pending"
    COVERED = "covered"
    NOT_COVERED = "not_covered"
    MORE_INFORMATION_NEEDED = "more_information_needed"


@dataclass(frozen=True)
class Adjudication:
    status: ClaimStatus
    notes: str
    requires_documentation: bool = False
    documentation_type: str | None = None


@dataclass
class EligibilityCheck:
    """Answer to a stand-alone "is this service eligible?" lookup."""

    eligible: bool
    confidence: int
    entry: CatalogEntry | None = None
    exact_match: bool = False
    explanation: str | None = None
    suggested_alternative: str | None = None
    suggested_services: list[str] = field(default_factory=list)
    requires_review: bool = False


def adjudicate(
    service_description: str,
    has_documentation: bool,
    document_count: int,
    classify: Classify,
    catalog: tuple[CatalogEntry, ...] = SERVICE_CATALOG,
) -> Adjudication:
    """Assign a claim its first-pass status and notes.

    Coverage is only granted on strong positive evidence. Every other outcome is
    PENDING; first-pass adjudication never returns NOT_COVERED.
    """
    if has_documentation:
        return Adjudication(
            status=ClaimStatus.PENDING,
            notes=f"Claim submitted with {document_count} document(s). Under review.",
        )

    match = match_service(service_description, catalog)
    if match.entry is not None and match.confidence >= AUTO_DECISION_THRESHOLD:
        return _from_catalog(match.entry)

    try:
        result = classify(service_description)
    except Exception:
        logger.exception("Classifier failed for %r", service_description)
        return Adjudication(
            status=ClaimStatus.PENDING,
            notes="Requires manual review. Eligibility could not be determined automatically.",
        )

    return _from_classifier(result)


def _from_catalog(entry: CatalogEntry) -> Adjudication:
    if not entry.irs_qualified:
        return Adjudication(status=ClaimStatus.PENDING, notes="Service may not be HSA-eligible, under review.")
    if entry.requires_prescription:
        return Adjudication(
            status=ClaimStatus.PENDING,
            notes="Requires prescription verification. Please upload a prescription.",
            requires_documentation=True,
            documentation_type=PRESCRIPTION,
        )
    if entry.requires_letter_of_necessity:
        return Adjudication(
            status=ClaimStatus.PENDING,
            notes=(
                "Requires letter of medical necessity. "
                "Please upload documentation from your healthcare provider."
            ),
            requires_documentation=True,
            documentation_type=LETTER_OF_NECESSITY,
        )
    return Adjudication(status=ClaimStatus.COVERED, notes="")


def _from_classifier(result: ClassifierResult) -> Adjudication:
    assessment = f"({result.confidence}% confidence): {result.explanation}"

    if result.confidence >= AUTO_DECISION_THRESHOLD:
        if result.eligible:
            return Adjudication(status=ClaimStatus.COVERED, notes=f"AI-verified as eligible {assessment}")
        return Adjudication(status=ClaimStatus.PENDING, notes=f"AI-verified as not eligible {assessment}")

    if result.confidence >= AI_REVIEW_THRESHOLD:
        return Adjudication(status=ClaimStatus.PENDING, notes=f"Under review with AI assessment {assessment}")

    return Adjudication(
        status=ClaimStatus.PENDING,
        notes=f"Requires manual review. AI assessment uncertain {assessment}",
    )


def check_eligibility(
    query: str,
    classify: Classify,
    catalog: tuple[CatalogEntry, ...] = SERVICE_CATALOG,
) -> EligibilityCheck:
    """Look up whether a service is eligible without creating a claim."""
    match = match_service(query, catalog)
    if match.entry is not None and match.confidence >= CATALOG_ANSWER_THRESHOLD:
        return EligibilityCheck(
            eligible=match.entry.irs_qualified,
            confidence=match.confidence,
            entry=match.entry,
            exact_match=match.exact_match,
        )

    result = classify(query)
    alternative = result.suggested_alternative
    if alternative is None and match.entry is not None:
        alternative = match.entry.name

    return EligibilityCheck(
        eligible=result.eligible,
        confidence=result.confidence,
        entry=match.entry,
        explanation=result.explanation,
        suggested_alternative=alternative,
        suggested_services=qualified_service_names(catalog),
        requires_review=not result.eligible or result.confidence < AUTO_DECISION_THRESHOLD,
    )
