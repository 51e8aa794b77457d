"""Unit tests for eligibility rules."""
import pytest

from radar.config import RegionVocabulary
from radar.models import CandidateEvent
from radar.validation import (
    HAS_COST,
    MISSING_REQUIRED_FIELDS,
    NOT_IN_REGION,
    NOT_RELEVANT,
    PRIVATE_OR_RESTRICTED,
    EligibilityValidator,
)


@pytest.fixture
def vocabulary():
    return RegionVocabulary(_env_file=None)


@pytest.fixture
def lenient(vocabulary):
    return EligibilityValidator(vocabulary)


@pytest.fixture
def strict(vocabulary):
    return EligibilityValidator(vocabulary, check_relevance=True)


class TestEligibilityValidator:
    """Tests for EligibilityValidator."""

    def test_free_ai_event_in_innsbruck_passes_strict(self, strict):
        event = CandidateEvent(
            title="KI Stammtisch", date="2026-03-15", location="Innsbruck",
            description="Kostenlos für alle",
        )
        result = strict.validate(event)
        assert result.is_valid
        assert result.reasons == []

    def test_vienna_fails_region_even_when_free(self, lenient):
        event = CandidateEvent(title="Workshop Wien", date="2026-04-01", location="Wien", description="Gratis")
        result = lenient.validate(event)
        assert not result.is_valid
        assert result.reasons == [NOT_IN_REGION]

    def test_missing_title_short_circuits(self, strict):
        result = strict.validate({"date": "2026-04-01", "location": "Wien", "description": "Ticket 20€"})
        assert result.reasons == [MISSING_REQUIRED_FIELDS]

    def test_missing_date(self, lenient):
        assert lenient.validate({"title": "Meetup", "date": "   "}).reasons == [MISSING_REQUIRED_FIELDS]

    def test_paid_event_rejected(self, lenient):
        event = {"title": "Startup Summit", "date": "2026-04-01", "city": "Innsbruck", "description": "Tickets ab 49 EUR"}
        assert lenient.validate(event).reasons == [HAS_COST]

    def test_free_marker_cancels_cost(self, lenient):
        event = {"title": "Demo Night", "date": "2026-04-01", "city": "Innsbruck", "description": "Eintritt frei"}
        assert lenient.validate(event).is_valid

    def test_region_matches_address(self, lenient):
        event = {"title": "Demo Night", "date": "2026-04-01", "location": "Werkstätte", "address": "Salurner Str. 1, Schwaz"}
        assert lenient.validate(event).is_valid

    def test_unknown_place_is_not_in_region(self, lenient):
        assert lenient.validate({"title": "Demo Night", "date": "2026-04-01"}).reasons == [NOT_IN_REGION]

    def test_relevance_only_checked_when_enabled(self, lenient, strict):
        event = {"title": "Gründerfrühstück", "date": "2026-04-01", "city": "Innsbruck"}
        assert lenient.validate(event).is_valid
        assert strict.validate(event).reasons == [NOT_RELEVANT]

    def test_private_event_rejected(self, lenient):
        event = {"title": "Team Offsite", "date": "2026-04-01", "city": "Innsbruck", "description": "Employees only"}
        assert lenient.validate(event).reasons == [PRIVATE_OR_RESTRICTED]

    def test_reports_every_failing_rule(self, strict):
        event = {"title": "Closed Gala", "date": "2026-04-01", "city": "Graz", "description": "Members only, 80 Euro"}
        assert strict.validate(event).reasons == [HAS_COST, NOT_IN_REGION, NOT_RELEVANT, PRIVATE_OR_RESTRICTED]

    def test_custom_vocabulary(self):
        vocab = RegionVocabulary(_env_file=None, region_allow=["bozen"], region_deny=[])
        validator = EligibilityValidator(vocab)
        assert validator.validate({"title": "Meetup", "date": "2026-04-01", "city": "Bozen"}).is_valid
        assert not validator.validate({"title": "Meetup", "date": "2026-04-01", "city": "Innsbruck"}).is_valid
