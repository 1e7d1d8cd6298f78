"""Automated listing quality checks.

The score starts at 1.0 and each finding subtracts a fixed penalty; the
result is clamped to [0, 1]. A listing "passes" at 0.5, but the approval
workflow only uses the raw score, comparing it against its auto-approval
threshold when no reviewer decides before the deadline.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Protocol

SUSPICIOUS_KEYWORDS = ("urgent", "guaranteed", "limited time", "act now", "call now")
COMPLETENESS_FIELDS = ("bedrooms", "bathrooms", "area", "title", "description", "price")
CONTACT_INFO = re.compile(r"\b\d{10}\b|[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

PASS_SCORE = 0.5


@dataclass
class QualityReport:
    score: float
    issues: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.score >= PASS_SCORE

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "issues": list(self.issues), "passed": self.passed}


class QualityScorer(Protocol):
    def score(self, listing_id: str, listing: dict[str, Any]) -> QualityReport: ...


def score_listing(listing: dict[str, Any]) -> QualityReport:
    score = 1.0
    issues: list[str] = []
    images = listing.get("images") or []
    description = listing.get("description") or ""
    title = listing.get("title") or ""

    if len(images) < 5:
        score -= 0.1
        issues.append("Less than 5 images provided (recommended: 5-10)")
    if len(description) < 200:
        score -= 0.1
        issues.append("Description is short (recommended: 200+ characters)")
    if len(description) > 2000:
        score -= 0.05
        issues.append("Description is very long (recommended: under 2000 characters)")

    text = f"{title.lower()}\n{description.lower()}"
    found = [keyword for keyword in SUSPICIOUS_KEYWORDS if keyword in text]
    if found:
        score -= 0.2
        issues.append(f"Contains suspicious keywords: {', '.join(found)}")

    if CONTACT_INFO.search(description):
        score -= 0.3
        issues.append("Contains contact information (phone/email) - use platform messaging instead")

    present = sum(1 for name in COMPLETENESS_FIELDS if listing.get(name))
    if present / len(COMPLETENESS_FIELDS) < 0.8:
        score -= 0.1
        issues.append("Incomplete property details")

    return QualityReport(score=round(max(0.0, min(1.0, score)), 4), issues=issues)


class AutomatedQualityScorer:
    """Default scorer: the rule-based checks above."""

    def score(self, listing_id: str, listing: dict[str, Any]) -> QualityReport:
        return score_listing(listing)


__all__ = [
    "QualityReport",
    "QualityScorer",
    "AutomatedQualityScorer",
    "score_listing",
    "PASS_SCORE",
]
