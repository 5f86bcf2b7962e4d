"""
Tests for payee name standardization.
"""
import asyncio

import pytest

from meridian.errors import OperationCancelled
from meridian.scheduling import CancellationToken
from meridian.standardizer import (
    PayeeNameStandardizer,
    batch_standardize,
    batch_standardize_async,
    compute_standardization_stats,
    standardize_payee_name,
)


@pytest.fixture(scope="module")
def standardizer():
    return PayeeNameStandardizer()


class TestMissingValues:
    """Null, empty and non-string inputs."""

    @pytest.mark.parametrize("raw", [None, "", 0, 12.5, [], {}])
    def test_missing_becomes_unknown(self, standardizer, raw):
        """Falsy or non-string input maps to UNKNOWN."""
        result = standardizer.standardize(raw)
        assert result.normalized == "UNKNOWN"
        assert result.cleaning_steps == ("handled_null_or_empty",)

    def test_none_original_is_empty_string(self, standardizer):
        """None is reported as an empty original."""
        assert standardizer.standardize(None).original == ""

    def test_whitespace_only_falls_back(self, standardizer):
        """A name with nothing left after cleaning falls back to UNKNOWN."""
        result = standardizer.standardize("   ")
        assert result.normalized == "UNKNOWN"
        assert "fallback_to_unknown" in result.cleaning_steps

    @pytest.mark.parametrize("raw", ["unknown", "UNKNOWN", " Unknown "])
    def test_literal_unknown(self, standardizer, raw):
        """Any casing of 'unknown' normalizes to the UNKNOWN sentinel."""
        assert standardizer.standardize(raw).normalized == "UNKNOWN"


class TestCleaningSteps:
    """Individual pipeline steps and their tags."""

    def test_business_suffixes_and_article(self, standardizer):
        """Stacked suffixes and a leading article are removed."""
        result = standardizer.standardize("  The Acme Widget Co., Inc. ")
        assert result.normalized == "Acme Widget"
        assert "trimmed_whitespace" in result.cleaning_steps
        assert "removed_punctuation" in result.cleaning_steps
        assert "removed_business_suffixes" in result.cleaning_steps
        assert "removed_leading_articles" in result.cleaning_steps

    def test_suffix_needs_preceding_word(self, standardizer):
        """A name that is only a suffix word is left alone."""
        assert standardizer.standardize("Company").normalized == "Company"

    def test_titles_and_generational_suffix(self, standardizer):
        """Honorifics in front and Jr/Sr at the end are removed."""
        result = standardizer.standardize("Mr. John Smith Jr.")
        assert result.normalized == "John Smith"
        assert "removed_titles" in result.cleaning_steps
        assert "removed_generational_suffixes" in result.cleaning_steps

    def test_accents_transliterated(self, standardizer):
        """Accented characters are folded to ASCII."""
        result = standardizer.standardize("José Núñez")
        assert result.normalized == "Jose Nunez"
        assert "normalized_accents" in result.cleaning_steps

    def test_abbreviation_expanded(self, standardizer):
        """Known abbreviations expand and record a per-abbreviation tag."""
        result = standardizer.standardize("Intl Trading")
        assert result.normalized == "International Trading"
        assert "expanded_intl_abbreviation" in result.cleaning_steps

    def test_phone_number_removed(self, standardizer):
        """Phone numbers are dropped before digits are stripped."""
        result = standardizer.standardize("Bob Jones (555) 123-4567")
        assert result.normalized == "Bob Jones"
        assert "removed_phone_numbers" in result.cleaning_steps

    def test_email_only_name_uses_domain(self, standardizer):
        """A bare e-mail address is reduced to its domain identity."""
        result = standardizer.standardize("billing@acme.com")
        assert result.normalized == "Acme"
        assert "extracted_from_email" in result.cleaning_steps

    def test_title_case(self, standardizer):
        """Output is title-cased."""
        result = standardizer.standardize("JANE DOE")
        assert result.normalized == "Jane Doe"
        assert "applied_title_case" in result.cleaning_steps

    def test_unchanged_name_has_no_steps(self, standardizer):
        """A clean name is returned as-is with an empty step log."""
        result = standardizer.standardize("Jane Doe")
        assert result.normalized == "Jane Doe"
        assert result.cleaning_steps == ()
        assert result.changed is False


class TestIdempotence:
    """Standardizing a standardized name is a no-op."""

    @pytest.mark.parametrize("raw", [
        "The Acme Widget Co., Inc.",
        "Acme Holdings Group LLC",
        "Mr. John Smith Jr.",
        "  jane   DOE ",
        "O'Brien-Smith Consulting, LLC",
        "123 Main St. Plumbing",
        "billing@acme.com",
        "Dept of Natl Svcs",
        "Unknown",
    ])
    def test_second_pass_is_stable(self, standardizer, raw):
        """normalize(normalize(x)) == normalize(x)."""
        once = standardizer.standardize(raw).normalized
        twice = standardizer.standardize(once).normalized
        assert twice == once

    def test_case_variants_collapse(self):
        """Names differing only by case and spacing share a key."""
        keys = {standardize_payee_name(n).normalized for n in ["Alice", "alice", "  ALICE  "]}
        assert keys == {"Alice"}


class TestBatch:
    """Batch helpers and statistics."""

    def test_batch_preserves_order(self):
        """One result per input, in input order."""
        results = batch_standardize(["Bob", None, "Acme Inc"])
        assert [r.normalized for r in results] == ["Bob", "UNKNOWN", "Acme"]

    def test_async_matches_sync(self):
        """The chunked variant produces the same results."""
        names = [f"Payee {i} LLC" if i % 2 else f"person {i}" for i in range(250)]
        sync = batch_standardize(names)
        chunked = asyncio.run(batch_standardize_async(names))
        assert chunked == sync

    def test_async_reports_progress(self):
        """Progress reaches 100 percent."""
        seen = []
        asyncio.run(batch_standardize_async(
            ["a"] * 250,
            on_progress=lambda done, total, pct: seen.append((done, total, pct)),
        ))
        assert seen[-1] == (250, 250, 100.0)
        assert [s[0] for s in seen] == sorted(s[0] for s in seen)

    def test_async_cancellation(self):
        """A fired token aborts before the first chunk."""
        async def run():
            token = CancellationToken()
            token.cancel("user aborted")
            await batch_standardize_async(["a", "b"], cancel_token=token)

        with pytest.raises(OperationCancelled):
            asyncio.run(run())

    def test_stats(self):
        """Stats count changed names and the most common steps."""
        results = batch_standardize(["Jane Doe", "ACME INC", "BETA LLC"])
        stats = compute_standardization_stats(results)
        assert stats.total_processed == 3
        assert stats.changes_detected == 2
        steps = dict(stats.most_common_steps)
        assert steps["removed_business_suffixes"] == 2

    def test_stats_empty(self):
        """Empty input gives zeroed stats."""
        stats = compute_standardization_stats([])
        assert stats.total_processed == 0
        assert stats.most_common_steps == ()
