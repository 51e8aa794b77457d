"""Eligibility rules: free, in Tyrol, (AI-relevant), public."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from radar.config import RegionVocabulary, get_settings
from radar.models import ValidationResult

logger = logging.getLogger(__name__)

MISSING_REQUIRED_FIELDS = "missing_required_fields"
HAS_COST = "has_cost"
NOT_IN_REGION = "not_in_region"
NOT_RELEVANT = "not_relevant"
PRIVATE_OR_RESTRICTED = "private_or_restricted"


def _get(event: Any, name: str) -> str:
    value = event.get(name) if isinstance(event, Mapping) else getattr(event, name, None)
    return "" if value is None else str(value)


def _contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(term in text for term in terms)


class EligibilityValidator:
    """Apply the inclusion/exclusion rules to a candidate event.

    Matching is plain lowercase substring containment against the configured
    vocabularies. Every failing rule is reported, except missing
    title/date which stops evaluation immediately.
    """

    def __init__(
        self,
        vocabulary: RegionVocabulary | None = None,
        *,
        check_relevance: bool = False,
    ) -> None:
        self.vocabulary = vocabulary or get_settings().vocabulary
        self.check_relevance = check_relevance

    def validate(self, event: Any) -> ValidationResult:
        result = ValidationResult()
        vocab = self.vocabulary

        if not _get(event, "title").strip() or not _get(event, "date").strip():
            result.fail(MISSING_REQUIRED_FIELDS)
            return result

        text = f"{_get(event, 'title')} {_get(event, 'description')}".lower()
        place = " ".join(
            _get(event, name) for name in ("location", "city", "address")
        ).lower()

        if _contains_any(text, vocab.cost_terms) and not _contains_any(text, vocab.free_terms):
            result.fail(HAS_COST)

        in_region = _contains_any(place, vocab.region_allow)
        excluded = _contains_any(place, vocab.region_deny)
        if not in_region or excluded:
            result.fail(NOT_IN_REGION)

        if self.check_relevance and not _contains_any(text, vocab.relevance_terms):
            result.fail(NOT_RELEVANT)

        if _contains_any(text, vocab.private_terms):
            result.fail(PRIVATE_OR_RESTRICTED)

        if not result.is_valid:
            logger.debug(
                "Rejected %r: %s", _get(event, "title"), ", ".join(result.reasons)
            )
        return result
