"""
Tests for welcome-balance bid generation.
"""

from datetime import datetime, timedelta, timezone

import numpy as np

from rizq.bidding import (
    calculate_base_bid,
    calculate_bid_amount,
    create_eligibility_profile,
    generate_bids,
    get_bank_by_id,
    get_quota_remaining,
    is_eligible_for_bank,
    round_half_up,
    simulate_quota_depletion,
)
from rizq.config import BANK_PARTNERS
from rizq.eligibility import is_eligible


class TestRounding:
    """Test half-up rounding."""

    def test_round_half_up(self):
        """Test rounding to a step."""
        assert round_half_up(122.5, 5) == 125
        assert round_half_up(122.4, 5) == 120
        assert round_half_up(16500, 1000) == 17000
        assert round_half_up(16499, 1000) == 16000


class TestQuota:
    """Test time-of-day quota simulation."""

    def test_aggressive_bank_at_midnight(self):
        """Test aggressive bank starts the day with 30% quota left."""
        snb = get_bank_by_id("snb")
        midnight = datetime(2024, 3, 10, 0, 0, tzinfo=timezone.utc)

        assert get_quota_remaining(snb, midnight) == 30

    def test_quota_within_bounds_all_day(self):
        """Test remaining quota never goes negative or above the daily quota."""
        for bank in BANK_PARTNERS:
            for hour in range(24):
                now = datetime(2024, 3, 10, hour, 30, tzinfo=timezone.utc)
                remaining = get_quota_remaining(bank, now)
                assert 0 <= remaining <= bank.daily_quota

    def test_quota_depletes_over_the_day(self):
        """Test remaining quota does not increase as the day goes on."""
        rajhi = get_bank_by_id("rajhi")
        morning = get_quota_remaining(rajhi, datetime(2024, 3, 10, 8, 0, tzinfo=timezone.utc))
        evening = get_quota_remaining(rajhi, datetime(2024, 3, 10, 20, 0, tzinfo=timezone.utc))

        assert evening <= morning

    def test_simulate_quota_depletion(self, make_customer, noon):
        """Test consuming one unit of quota."""
        bids = generate_bids(make_customer(), now=noon, rng=np.random.default_rng(1))
        depleted = simulate_quota_depletion(bids[0])

        assert depleted.quota_remaining == bids[0].quota_remaining - 1
        assert simulate_quota_depletion(depleted.model_copy(update={"quota_remaining": 0})).quota_remaining == 0


class TestBankPreferences:
    """Test bank-specific preferences."""

    def test_low_credit_score_excluded_everywhere(self, make_customer):
        """Test base credit score rule."""
        customer = make_customer(credit_score=550)

        assert not any(is_eligible_for_bank(customer, bank) for bank in BANK_PARTNERS)

    def test_high_debt_burden_excluded_everywhere(self, make_customer):
        """Test base debt burden rule."""
        customer = make_customer(debt_burden_ratio=0.6)

        assert not any(is_eligible_for_bank(customer, bank) for bank in BANK_PARTNERS)

    def test_snb_requires_premium_location(self, make_customer):
        """Test SNB location preference."""
        snb = get_bank_by_id("snb")

        assert is_eligible_for_bank(make_customer(location="Jeddah"), snb)
        assert not is_eligible_for_bank(make_customer(location="Dammam"), snb)

    def test_samba_requires_affluent_profile(self, make_customer):
        """Test Samba income and score preference."""
        samba = get_bank_by_id("samba")

        assert is_eligible_for_bank(make_customer(income=15000, credit_score=700), samba)
        assert not is_eligible_for_bank(make_customer(income=14000, credit_score=760), samba)

    def test_profiles_accept_customers_banks_prefer(self, make_customer):
        """Test eligibility profiles are consistent with bank preferences for a strong customer."""
        customer = make_customer()

        for bank in BANK_PARTNERS:
            if is_eligible_for_bank(customer, bank):
                assert is_eligible(customer, create_eligibility_profile(bank))

    def test_unknown_bank_id(self):
        """Test looking up an unknown bank."""
        assert get_bank_by_id("unknown") is None


class TestBidAmount:
    """Test bid sizing."""

    def test_base_bid_bonuses(self, make_customer):
        """Test graduated profile bonuses."""
        anb = get_bank_by_id("anb")
        customer = make_customer(
            income=15000, credit_score=760, age=28, debt_burden_ratio=0.1, location="Riyadh", cobrand_partner="jarir"
        )

        # 30 + 100 + 80 + 40 + 50 + 30 + 25
        assert calculate_base_bid(customer, anb) == 355

    def test_bid_within_bank_bounds(self, make_customer):
        """Test bids are multiples of 5 within the bank's bounds."""
        rng = np.random.default_rng(7)
        customer = make_customer()

        for bank in BANK_PARTNERS:
            for _ in range(50):
                amount = calculate_bid_amount(customer, bank, rng)
                assert bank.min_bid <= amount <= bank.max_bid
                assert amount % 5 == 0

    def test_seeded_bids_are_reproducible(self, make_customer):
        """Test same seed gives same bid."""
        anb = get_bank_by_id("anb")
        customer = make_customer()

        first = calculate_bid_amount(customer, anb, np.random.default_rng(3))
        second = calculate_bid_amount(customer, anb, np.random.default_rng(3))

        assert first == second


class TestGenerateBids:
    """Test bid generation."""

    def test_one_bid_per_bank(self, make_customer, noon):
        """Test each bank bids at most once."""
        bids = generate_bids(make_customer(), now=noon, rng=np.random.default_rng(1))
        bank_ids = [bid.bank_id for bid in bids]

        assert len(bank_ids) == len(set(bank_ids))
        assert len(bids) > 0

    def test_bid_timestamps_and_campaign(self, make_customer, noon):
        """Test submission window, expiry and campaign identifier."""
        bids = generate_bids(make_customer(), now=noon, rng=np.random.default_rng(1))

        for bid in bids:
            assert noon - timedelta(hours=1) <= bid.created_at <= noon
            assert bid.expires_at == noon + timedelta(hours=24)
            assert bid.campaign_id == f"campaign_{bid.bank_id}_2024-03-10"
            assert bid.quota_remaining > 0
            assert bid.is_winner is False

    def test_low_credit_score_gets_no_bids(self, make_customer, noon):
        """Test that no bank bids on a customer below the base credit score."""
        assert generate_bids(make_customer(credit_score=550), now=noon, rng=np.random.default_rng(1)) == []
