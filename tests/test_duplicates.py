"""Tests for strict duplicate and loose candidate matching."""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from dateutil.relativedelta import relativedelta

from finance_engine.models.transaction import InstallmentInfo
from finance_engine.reconciliation.duplicates import (
    description_similarity,
    find_candidate_matches,
    find_duplicates,
    is_candidate_match,
    is_installment_duplicate,
    is_strict_duplicate,
    month_bounds,
    snapshot_bounds,
)

from tests.conftest import make_draft, make_existing


class TestSimilarity:
    """Tests for the word-overlap measure."""

    def test_identical_after_normalization(self):
        """Case and installment suffixes are ignored."""
        assert description_similarity("Notebook (3/12)", "NOTEBOOK") == 1.0

    def test_short_words_ignored(self):
        """Words of two characters or less do not count."""
        assert description_similarity("de la", "da le") == 0.0

    def test_min_versus_max_denominator(self):
        """The strict check divides by the smaller set, the loose one by the larger."""
        assert description_similarity("Uber Trip", "Uber Trip Centro", min) == 1.0
        assert description_similarity("Uber Trip", "Uber Trip Centro", max) == pytest.approx(2 / 3)


class TestStrictDuplicate:
    """Tests for is_strict_duplicate."""

    def test_uber_trip_within_a_cent(self):
        """'Uber Trip' 199.99 and 'UBER *TRIP' 200.00 in the same month are duplicates."""
        first = make_draft(description="Uber Trip", amount=Decimal("199.99"), date=date(2025, 3, 2))
        second = make_existing(description="UBER *TRIP", amount=Decimal("200.00"), date=date(2025, 3, 28))
        assert is_strict_duplicate(first, second)

    def test_symmetric(self):
        """Swapping the arguments never changes the answer."""
        first = make_draft(description="Uber Trip", amount=Decimal("199.99"))
        second = make_draft(description="UBER *TRIP", amount=Decimal("200.00"))
        assert is_strict_duplicate(first, second) == is_strict_duplicate(second, first)
        assert is_candidate_match(first, second) == is_candidate_match(second, first)

    def test_threshold_is_inclusive(self):
        """Similarity exactly at the threshold matches; just above it does not."""
        first = make_draft(description="Uber Trip")
        second = make_draft(description="UBER *TRIP")
        assert is_strict_duplicate(first, second, threshold=0.5)
        assert not is_strict_duplicate(first, second, threshold=0.51)

    def test_amount_outside_tolerance(self):
        """Two cents apart is a different transaction."""
        first = make_draft(amount=Decimal("100.00"))
        second = make_draft(amount=Decimal("100.02"))
        assert not is_strict_duplicate(first, second)

    def test_different_month(self):
        """Adjacent days in different months never match strictly."""
        first = make_draft(date=date(2025, 3, 31))
        second = make_draft(date=date(2025, 4, 1))
        assert not is_strict_duplicate(first, second)

    def test_different_year_same_month(self):
        """Year and month both have to agree."""
        assert not is_strict_duplicate(make_draft(date=date(2024, 3, 15)), make_draft())


class TestCandidateMatch:
    """Tests for the loose merge-candidate check."""

    def test_window_boundary(self):
        """Five days apart is inside the window, six is outside."""
        draft = make_draft(date=date(2025, 3, 10))
        assert is_candidate_match(draft, make_draft(date=date(2025, 3, 15)))
        assert not is_candidate_match(draft, make_draft(date=date(2025, 3, 16)))

    def test_threshold_boundary(self):
        """One shared word out of three passes 0.3 but not 0.34."""
        first = make_draft(description="Padaria Central Norte")
        second = make_draft(description="Padaria Sul Leste")
        assert is_candidate_match(first, second)
        assert not is_candidate_match(first, second, threshold=0.34)

    def test_candidates_ordered_by_similarity_then_proximity(self):
        """Best description first, nearest date breaking ties."""
        draft = make_draft(description="Uber Trip Centro", amount=Decimal("50"), date=date(2025, 3, 15))
        existing = [
            make_existing("far", description="Uber Trip Centro", amount=Decimal("50"), date=date(2025, 3, 18)),
            make_existing("partial", description="Uber Trip", amount=Decimal("50"), date=date(2025, 3, 15)),
            make_existing("near", description="Uber Trip Centro", amount=Decimal("50"), date=date(2025, 3, 16)),
            make_existing("outside", description="Uber Trip Centro", amount=Decimal("50"), date=date(2025, 3, 25)),
        ]

        matches = find_candidate_matches(draft, existing)

        assert [m.id for m in matches] == ["near", "far", "partial"]


class TestFindDuplicates:
    """Tests for the batch scan against a ledger snapshot."""

    def test_maps_draft_index_to_first_match(self):
        """Only matching drafts appear, keyed by their index."""
        drafts = [
            make_draft(description="Aluguel", amount=Decimal("1800")),
            make_draft(description="Uber Trip", amount=Decimal("199.99")),
        ]
        existing = [
            make_existing("tx-1", description="UBER *TRIP", amount=Decimal("200.00")),
            make_existing("tx-2", description="Uber Trip", amount=Decimal("199.99")),
        ]

        duplicates = find_duplicates(drafts, existing)

        assert list(duplicates) == [1]
        assert duplicates[1].id == "tx-1"

    def test_snapshot_not_modified(self):
        """The existing list is only read."""
        existing = [make_existing()]
        find_duplicates([make_draft()], existing)
        assert len(existing) == 1

    def test_month_bounds(self):
        """Bounds cover whole months."""
        start, end = month_bounds([date(2025, 3, 15), date(2025, 2, 10), date(2025, 4, 2)])
        assert start == date(2025, 2, 1)
        assert end == date(2025, 4, 30)


def stored_installment(number: int, total: int = 12, **overrides):
    group_id = str(uuid4())
    fields = {
        "description": f"Notebook ({number}/{total})",
        "date": date(2025, 4, 7) + relativedelta(months=number - 1),
        "installment": InstallmentInfo(current=number, total=total),
        "installment_group_id": group_id,
        "group_id": group_id,
    }
    fields.update(overrides)
    return make_existing(f"inst-{number}", **fields)


class TestInstallmentGroupDuplicates:
    """Tests for statement lines of a purchase already stored as a group."""

    def test_next_statement_line_matches_stored_group(self):
        """'Parcela 03 de 12' matches the group stored from 'Parcela 02 de 12'."""
        draft = make_draft(description="Notebook", installment=InstallmentInfo(current=3, total=12))
        assert is_installment_duplicate(draft, stored_installment(5))

    def test_plan_size_must_agree(self):
        """A 10x plan is a different purchase from a 12x plan."""
        draft = make_draft(description="Notebook", installment=InstallmentInfo(current=3, total=10))
        assert not is_installment_duplicate(draft, stored_installment(5))

    def test_rows_outside_groups_ignored(self):
        """Only rows written as part of an expanded group are considered."""
        draft = make_draft(description="Notebook", installment=InstallmentInfo(current=3, total=12))
        loose = stored_installment(5, installment_group_id=None, group_id=None)
        assert not is_installment_duplicate(draft, loose)

    def test_scan_crosses_months_only_when_asked(self):
        """The group check runs only for drafts that will be expanded."""
        drafts = [
            make_draft(
                description="Notebook",
                date=date(2025, 3, 15),
                installment=InstallmentInfo(current=3, total=12),
            ),
        ]
        existing = [stored_installment(n) for n in range(1, 13)]

        assert find_duplicates(drafts, existing) == {}
        duplicates = find_duplicates(drafts, existing, installment_groups=True)
        assert duplicates[0].id == "inst-1"

    def test_snapshot_bounds_cover_the_plan(self):
        """Installment drafts widen the snapshot by their plan length."""
        drafts = [
            make_draft(date=date(2025, 3, 15)),
            make_draft(date=date(2025, 3, 15), installment=InstallmentInfo(current=2, total=12)),
        ]

        assert snapshot_bounds(drafts) == (date(2025, 3, 1), date(2025, 3, 31))
        assert snapshot_bounds(drafts, installment_groups=True) == (
            date(2024, 3, 1),
            date(2026, 5, 31),
        )
