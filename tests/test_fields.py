"""Tests for merchant, note and date extraction."""

import pytest
from datetime import datetime, timedelta, timezone

from voice_expense.extraction import DateExtractor, MerchantExtractor, NoteExtractor


CAPTURED_AT = datetime(2025, 3, 14, 16, 42, 7, 123456, tzinfo=timezone(timedelta(hours=4)))


class TestMerchantExtractor:
    """Tests for "at/from/to <name>"."""

    @pytest.fixture
    def extractor(self) -> MerchantExtractor:
        return MerchantExtractor()

    def test_at_merchant_before_for(self, extractor):
        """Test the name stops at "for"."""
        text = "I spent 15.50 AED at Starbucks for coffee"
        assert extractor.extract(text) == "Starbucks"

    def test_multi_word_merchant(self, extractor):
        """Test names with spaces and apostrophes keep their casing."""
        assert extractor.extract("paid 20 dollars at Joe's Pizza Place") == "Joe's Pizza Place"

    def test_stops_at_on_and_punctuation(self, extractor):
        """Test "on" and commas end the name."""
        assert extractor.extract("40 dollars at Carrefour on groceries") == "Carrefour"
        assert extractor.extract("40 dollars at Carrefour, groceries") == "Carrefour"

    def test_stops_at_date_word(self, extractor):
        """Test a trailing date phrase is not part of the name."""
        assert extractor.extract("12 dollars at Costa yesterday") == "Costa"

    def test_from_and_to(self, extractor):
        """Test the other prepositions."""
        assert extractor.extract("bought shoes from Nike Store") == "Nike Store"
        assert extractor.extract("sent 50 dollars to Ahmed") == "Ahmed"

    def test_at_is_preferred(self, extractor):
        """Test "at" is tried before "from"."""
        text = "ordered from home at Noon Mart"
        assert extractor.extract(text) == "Noon Mart"

    def test_too_short_is_ignored(self, extractor):
        """Test names under three characters are dropped."""
        assert extractor.extract("paid 5 dollars at KFC") == "KFC"
        assert extractor.extract("paid 5 dollars at BK") is None

    def test_trailing_period_removed(self, extractor):
        """Test the sentence period is not part of the name."""
        assert extractor.extract("Lunch at Wagamama.") == "Wagamama"

    def test_no_merchant(self, extractor):
        """Test transcripts without a merchant."""
        assert extractor.extract("I spent 25 dollars on food") is None


class TestNoteExtractor:
    """Tests for "for <text>" and "note: <text>"."""

    @pytest.fixture
    def extractor(self) -> NoteExtractor:
        return NoteExtractor()

    def test_for_note(self, extractor):
        """Test the note runs to the end of the transcript."""
        assert extractor.extract("15 dollars at Starbucks for coffee") == "coffee"
        assert extractor.extract("50 dollars for my sister's birthday gift.") == "my sister's birthday gift"

    def test_note_prefix(self, extractor):
        """Test an explicit "note:" prefix."""
        assert extractor.extract("40 dirhams taxi note: airport run") == "airport run"

    def test_no_note(self, extractor):
        """Test transcripts without a note."""
        assert extractor.extract("I spent 25 dollars on food") is None

    def test_too_long_note_dropped(self, extractor):
        """Test notes over 500 characters are not kept."""
        assert extractor.extract("5 dollars for " + "x" * 501) is None


class TestDateExtractor:
    """Tests for relative date resolution."""

    @pytest.fixture
    def extractor(self) -> DateExtractor:
        return DateExtractor()

    def test_no_date_word_is_capture_time(self, extractor):
        """Test that the capture time is the default."""
        assert extractor.extract("25 dollars on food", CAPTURED_AT) == CAPTURED_AT

    def test_yesterday(self, extractor):
        """Test yesterday is exactly 24 hours earlier."""
        assert extractor.extract("Yesterday I paid 30 dollars", CAPTURED_AT) == CAPTURED_AT - timedelta(hours=24)

    def test_today_and_just(self, extractor):
        """Test "today" and "just" mean now."""
        assert extractor.extract("today 10 dollars", CAPTURED_AT) == CAPTURED_AT
        assert extractor.extract("I just spent 10 dollars", CAPTURED_AT) == CAPTURED_AT

    @pytest.mark.parametrize("phrase,hour", [
        ("this morning", 9),
        ("this afternoon", 14),
        ("this evening", 19),
    ])
    def test_time_of_day(self, extractor, phrase, hour):
        """Test fixed hours on the capture date, in the capture timezone."""
        result = extractor.extract(f"coffee {phrase} 4 dollars", CAPTURED_AT)
        assert result == datetime(2025, 3, 14, hour, 0, tzinfo=CAPTURED_AT.tzinfo)

    def test_yesterday_wins_over_this_morning(self, extractor):
        """Test the keyword order decides when several appear."""
        result = extractor.extract("yesterday, not this morning", CAPTURED_AT)
        assert result == CAPTURED_AT - timedelta(hours=24)

    def test_just_wins_over_this_morning(self, extractor):
        """Test "just" is checked before the time-of-day phrases."""
        assert extractor.extract("I just paid this morning", CAPTURED_AT) == CAPTURED_AT


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
