"""
Welcome-balance bid generation for Rizq bank partners.

Each partner produces at most one bid per evaluation. Quota depletion is
simulated from the time of day, and bid sizes combine the customer's profile
with the bank's bidding strategy and random variation.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

import numpy as np

from .config import (
    BANK_PARTNERS,
    PREMIUM_COBRAND_PARTNERS,
    PREMIUM_LOCATIONS,
    STRATEGY_MULTIPLIERS,
    get_rng,
)
from .controls import BankPartner, Customer, EligibilityProfile, WelcomeBid

logger = logging.getLogger(__name__)

BID_VALIDITY = timedelta(hours=24)
# Bids are stamped within this window to simulate asynchronous submission
SUBMISSION_WINDOW_MS = 3_600_000

# Base rules every bank applies before its own preferences
MIN_CREDIT_SCORE = 600
MAX_DEBT_BURDEN_RATIO = 0.5


def round_half_up(value: float, step: float) -> float:
    """Round to the nearest multiple of step, halves rounding up."""
    return math.floor(value / step + 0.5) * step


def get_quota_remaining(bank: BankPartner, now: datetime) -> int:
    """
    Simulate a bank's remaining daily quota at a given time of day.

    Aggressive banks use their quota fastest, conservative banks slowest.

    Args:
        bank: Bank partner
        now: Current time

    Returns:
        Remaining quota, never negative
    """
    day_progress = (now.hour + now.minute / 60) / 24

    if bank.bidding_strategy == "aggressive":
        usage_rate = 0.7 + day_progress * 0.3
    elif bank.bidding_strategy == "conservative":
        usage_rate = 0.3 + day_progress * 0.4
    else:
        usage_rate = 0.5 + day_progress * 0.4

    used = math.floor(bank.daily_quota * usage_rate)
    return max(0, bank.daily_quota - used)


def is_eligible_for_bank(customer: Customer, bank: BankPartner) -> bool:
    """Bank-specific business preferences, checked before a bid is generated."""
    if customer.credit_score < MIN_CREDIT_SCORE:
        return False
    if customer.debt_burden_ratio > MAX_DEBT_BURDEN_RATIO:
        return False

    if bank.id == "snb":
        return customer.income >= 8000 and customer.location in PREMIUM_LOCATIONS
    if bank.id == "anb":
        return customer.income >= 6000
    if bank.id == "rajhi":
        return customer.nationality == "Saudi Arabian"
    if bank.id == "alinma":
        return customer.age <= 45 and customer.income >= 7000
    if bank.id == "samba":
        return customer.income >= 15000 and customer.credit_score >= 700
    if bank.id == "riyadbank":
        return customer.income >= 5000
    return True


def calculate_base_bid(customer: Customer, bank: BankPartner) -> float:
    """Bank minimum plus graduated profile bonuses, before strategy and jitter."""
    base_bid = bank.min_bid

    # Income
    if customer.income >= 15000:
        base_bid += 100
    elif customer.income >= 10000:
        base_bid += 60
    elif customer.income >= 7000:
        base_bid += 30

    # Credit score
    if customer.credit_score >= 750:
        base_bid += 80
    elif customer.credit_score >= 700:
        base_bid += 50
    elif customer.credit_score >= 650:
        base_bid += 25

    # Younger customers preferred
    if customer.age <= 30:
        base_bid += 40
    elif customer.age <= 40:
        base_bid += 20

    # Debt burden
    if customer.debt_burden_ratio <= 0.2:
        base_bid += 50
    elif customer.debt_burden_ratio <= 0.3:
        base_bid += 25

    if customer.location in PREMIUM_LOCATIONS:
        base_bid += 30

    if customer.cobrand_partner in PREMIUM_COBRAND_PARTNERS:
        base_bid += 25

    return base_bid


def calculate_bid_amount(
    customer: Customer, bank: BankPartner, rng: Optional[np.random.Generator] = None
) -> float:
    """
    Calculate a bank's bid for a customer.

    Args:
        customer: Customer being bid on
        bank: Bidding bank
        rng: Random source for the ±20% variation

    Returns:
        Bid rounded to the nearest 5 and clamped to the bank's bid bounds
    """
    rng = rng if rng is not None else get_rng()

    bid = calculate_base_bid(customer, bank)
    bid *= STRATEGY_MULTIPLIERS.get(bank.bidding_strategy, 1.0)
    bid *= 0.8 + rng.random() * 0.4

    rounded = round_half_up(bid, 5)
    return min(max(rounded, bank.min_bid), bank.max_bid)


def create_eligibility_profile(bank: BankPartner) -> EligibilityProfile:
    """Eligibility profile reflecting the bank's actual preferences."""
    if bank.id == "snb":
        return EligibilityProfile(income_min=8000, regions=list(PREMIUM_LOCATIONS), credit_score_min=650)
    if bank.id == "anb":
        return EligibilityProfile(income_min=6000, credit_score_min=600)
    if bank.id == "rajhi":
        return EligibilityProfile(nationalities=["Saudi Arabian"], income_min=5000)
    if bank.id == "alinma":
        return EligibilityProfile(age_max=45, income_min=7000, credit_score_min=650)
    if bank.id == "samba":
        return EligibilityProfile(income_min=15000, credit_score_min=700)
    if bank.id == "riyadbank":
        return EligibilityProfile(income_min=5000, debt_burden_ratio_max=0.4)
    return EligibilityProfile()


def generate_bids(
    customer: Customer,
    now: Optional[datetime] = None,
    rng: Optional[np.random.Generator] = None,
    partners: Iterable[BankPartner] = BANK_PARTNERS,
) -> List[WelcomeBid]:
    """
    Generate one candidate bid per bank partner for a customer.

    Banks with exhausted quota or whose preferences exclude the customer do
    not bid. Output order carries no meaning.

    Args:
        customer: Customer to bid on
        now: Current time, drives quota simulation and timestamps
        rng: Random source for bid variation and submission times
        partners: Bank partners taking part

    Returns:
        Generated bids
    """
    now = now or datetime.now(timezone.utc)
    rng = rng if rng is not None else get_rng()
    bids = []

    for bank in partners:
        quota_remaining = get_quota_remaining(bank, now)
        if quota_remaining <= 0:
            logger.debug(f"{bank.name} skipped: quota exhausted", extra={"bank_id": bank.id})
            continue

        if not is_eligible_for_bank(customer, bank):
            logger.debug(
                f"{bank.name} skipped: customer outside bank preferences",
                extra={"bank_id": bank.id, "customer_id": customer.id},
            )
            continue

        bid_amount = calculate_bid_amount(customer, bank, rng)
        submitted_ms_ago = int(rng.integers(0, SUBMISSION_WINDOW_MS))

        bids.append(
            WelcomeBid(
                bank_id=bank.id,
                bank_name=bank.name,
                bank_logo=bank.logo,
                bid_amount=bid_amount,
                quota_remaining=quota_remaining,
                eligibility=create_eligibility_profile(bank),
                campaign_id=f"campaign_{bank.id}_{now.date().isoformat()}",
                expires_at=now + BID_VALIDITY,
                created_at=now - timedelta(milliseconds=submitted_ms_ago),
            )
        )

    logger.info(
        f"Generated {len(bids)} welcome bids for customer {customer.id}",
        extra={"customer_id": customer.id, "bids": len(bids)},
    )
    return bids


def simulate_quota_depletion(bid: WelcomeBid) -> WelcomeBid:
    """Copy of a bid with one unit of quota consumed."""
    return bid.model_copy(update={"quota_remaining": max(0, bid.quota_remaining - 1)})


def get_bank_by_id(bank_id: str) -> Optional[BankPartner]:
    """Look up a bank partner by identifier."""
    return next((bank for bank in BANK_PARTNERS if bank.id == bank_id), None)
