"""
Tests for deterministic tie-breaking.
"""

from datetime import datetime, timedelta, timezone

from rizq.config import InternalBankData
from rizq.controls import BankOffer
from rizq.tie_breaking import (
    InternalBankDataStore,
    deterministic_hash,
    get_internal_data_store,
    resolve_tie_breaking,
    set_internal_data_store,
)

COMMIT_TIME = datetime(2024, 3, 10, 9, 15, 0, tzinfo=timezone.utc)


def offer(bank_name, amount, timestamp=COMMIT_TIME, **kwargs):
    return BankOffer(bank_name=bank_name, amount=amount, timestamp=timestamp, **kwargs)


def winners(result):
    return [o.bank_name for o in result.updated_offers if o.is_winner]


class TestDeterministicHash:
    """Test the stable customer/bank hash."""

    def test_known_value(self):
        """Test 31-multiplier string hash of "a-b"."""
        assert deterministic_hash("a", "b") == 94710

    def test_non_negative_for_long_input(self):
        """Test 32-bit wraparound keeps the result non-negative and bounded."""
        value = deterministic_hash("customer_with_a_long_identifier_123456789", "Saudi National Bank")

        assert 0 <= value <= 2 ** 31

    def test_stable(self):
        """Test identical inputs hash identically."""
        assert deterministic_hash("cust_001", "SNB") == deterministic_hash("cust_001", "SNB")


class TestResolveTieBreaking:
    """Test the tie-breaking cascade."""

    def test_empty_offers(self):
        """Test resolving nothing."""
        result = resolve_tie_breaking([], "cust_001")

        assert result.updated_offers == []
        assert result.winner is None
        assert result.audit_trail == ["No offers to resolve"]

    def test_unique_highest(self):
        """Test clear winner without the cascade."""
        result = resolve_tie_breaking([offer("SNB", 20000), offer("ANB", 18000)], "cust_001")

        assert result.winner == "SNB"
        assert result.resolved_by == "unique_highest"
        assert "Clear winner: SNB (unique highest offer)" in result.audit_trail

    def test_earliest_commit_wins(self):
        """Test stage A."""
        offers = [
            offer("SNB", 20000, COMMIT_TIME + timedelta(minutes=5)),
            offer("ANB", 20000, COMMIT_TIME),
        ]

        result = resolve_tie_breaking(offers, "cust_001")

        assert result.winner == "ANB"
        assert result.resolved_by == "earliest_commit"
        assert "Winner: ANB (earliest commit time: 09:15:00)" in result.audit_trail

    def test_missing_timestamp_ranks_last(self):
        """Test that offers without a commit time lose stage A to stamped offers."""
        offers = [offer("SNB", 20000, None), offer("ANB", 20000, COMMIT_TIME)]

        result = resolve_tie_breaking(offers, "cust_001")

        assert result.winner == "ANB"

    def test_retailer_preference(self):
        """Test stage B with an Amazon cobrand."""
        offers = [offer("SNB", 20000), offer("ANB", 20000)]

        result = resolve_tie_breaking(offers, "cust_001", cobrand_partner="amazon")

        assert result.winner == "ANB"
        assert result.resolved_by == "retailer_preference"
        assert "Winner: ANB (retailer preference for amazon cobrand)" in result.audit_trail

    def test_trust_score(self):
        """Test stage C picks SNB over ANB on trust score."""
        offers = [offer("SNB", 20000), offer("ANB", 20000)]

        result = resolve_tie_breaking(offers, "cust_001")

        assert result.winner == "SNB"
        assert result.resolved_by == "trust_score"
        assert "Winner: SNB (highest trust score: 85)" in result.audit_trail
        assert winners(result) == ["SNB"]

    def test_retailer_preference_with_display_names(self):
        """Test stage B matches full bank names through the alias map."""
        offers = [offer("Saudi National Bank", 20000), offer("Arab National Bank", 20000)]

        result = resolve_tie_breaking(offers, "cust_001", cobrand_partner="amazon")

        assert result.winner == "Arab National Bank"
        assert result.resolved_by == "retailer_preference"
        assert "Winner: Arab National Bank (retailer preference for amazon cobrand)" in result.audit_trail

    def test_preference_for_bank_not_tied_falls_through(self):
        """Test stage B is skipped when the preferred bank is not among the tied offers."""
        offers = [offer("SNB", 20000), offer("Al Ahli Bank", 20000), offer("ANB", 15000)]

        result = resolve_tie_breaking(offers, "cust_001", cobrand_partner="amazon")

        assert result.winner == "SNB"
        assert result.resolved_by == "trust_score"

    def test_portfolio_balance(self):
        """Test stage D picks the bank with fewer wins today."""
        store = InternalBankDataStore({
            "Bank A": InternalBankData(trust_score=80, today_wins=2),
            "Bank B": InternalBankData(trust_score=80, today_wins=1),
        })
        offers = [offer("Bank A", 20000), offer("Bank B", 20000)]

        result = resolve_tie_breaking(offers, "cust_001", internal_data=store)

        assert result.winner == "Bank B"
        assert result.resolved_by == "portfolio_balance"

    def test_deterministic_hash_stage(self):
        """Test stage E for banks without internal data."""
        offers = [offer("Bank X", 20000), offer("Bank Y", 20000)]
        expected = max(["Bank X", "Bank Y"], key=lambda name: deterministic_hash("cust_001", name))

        result = resolve_tie_breaking(offers, "cust_001")
        reversed_result = resolve_tie_breaking(list(reversed(offers)), "cust_001")

        assert result.winner == expected
        assert reversed_result.winner == expected
        assert result.resolved_by == "deterministic_hash"

    def test_exactly_one_winner_and_no_ties(self):
        """Test resolved offers carry exactly one winner and no tied flags."""
        offers = [
            offer("SNB", 20000, is_winner=True, is_tied=True),
            offer("ANB", 20000, is_winner=True, is_tied=True),
            offer("Al Ahli Bank", 20000, is_winner=True, is_tied=True),
            offer("Rajhi Bank", 10000),
        ]

        result = resolve_tie_breaking(offers, "cust_001")

        assert len(winners(result)) == 1
        assert not any(o.is_tied for o in result.updated_offers)
        assert [o.amount for o in result.updated_offers] == [o.amount for o in offers]

    def test_input_offers_untouched(self):
        """Test resolution returns copies."""
        offers = [offer("SNB", 20000, is_tied=True), offer("ANB", 20000, is_tied=True)]

        resolve_tie_breaking(offers, "cust_001")

        assert all(o.is_tied for o in offers)

    def test_audit_trail_opening(self):
        """Test the first audit lines."""
        result = resolve_tie_breaking([offer("SNB", 20000), offer("ANB", 20000)], "cust_001")

        assert result.audit_trail[0] == "Highest offer: 20,000"
        assert result.audit_trail[1] == "Offers tied at highest amount: SNB, ANB"
        assert result.audit_trail[2] == "Applying tie-breaking cascade..."


class TestInternalBankDataStore:
    """Test internal reputation data."""

    def test_aliases_resolve_display_names(self):
        """Test full bank names map to internal keys."""
        store = InternalBankDataStore()

        assert store.get("Saudi National Bank").trust_score == 85
        assert store.get("Riyad Bank").trust_score == 88

    def test_canonical_name(self):
        """Test internal keys and display names resolve to the same key."""
        store = InternalBankDataStore()

        assert store.canonical_name("Arab National Bank") == "ANB"
        assert store.canonical_name("ANB") == "ANB"
        assert store.canonical_name("Unknown Bank") == "Unknown Bank"

    def test_unknown_bank(self):
        """Test unknown banks have zero trust and no wins."""
        data = InternalBankDataStore().get("Unknown Bank")

        assert data.trust_score == 0
        assert data.today_wins == 0

    def test_record_win_returns_new_store(self):
        """Test recording a win leaves the original store untouched."""
        store = InternalBankDataStore()
        updated = store.record_win("SNB")

        assert store.get("SNB").today_wins == 2
        assert updated.get("SNB").today_wins == 3

    def test_global_store_swap(self):
        """Test replacing the process-wide store changes resolution."""
        set_internal_data_store(get_internal_data_store().record_win("SNB").record_win("SNB"))

        assert get_internal_data_store().get("SNB").today_wins == 4
