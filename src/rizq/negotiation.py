"""
Manual offer rounds for Rizq.

This module ties the core together for one customer interaction: the user's
manual offer is merged into the competitive set, rival banks get a chance to
respond, ties are resolved and the outcome is recorded in the offer history.
"""

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence
from uuid import uuid4

import numpy as np
from pydantic import BaseModel, Field

from .bidding import round_half_up
from .config import USER_BANK_NAME, get_rng, get_settings
from .controls import (
    BankOffer,
    CreditLimitControls,
    CreditOfferHistory,
    Customer,
    CustomerSnapshot,
    ValidationResult,
)
from .counter_offers import simulate_improved_offers
from .events import emit_tie_break_event
from .history import OfferHistoryStore
from .tie_breaking import InternalBankDataStore, resolve_tie_breaking

logger = logging.getLogger(__name__)

# Dashboard defaults for customers rebuilt from history without a snapshot
DEFAULT_RECONSTRUCTED_AGE = 35
DEFAULT_RECONSTRUCTED_CREDIT_SCORE = 650
DEFAULT_RECONSTRUCTED_DEBT_BURDEN = 0.3
DEFAULT_RECONSTRUCTED_NATIONALITY = "Saudi Arabian"
DEFAULT_RECONSTRUCTED_CARD = "Visa Platinum"
INCOME_FROM_AMOUNT_FACTOR = 2.5


class OfferRoundResult(BaseModel):
    """Outcome of one manual offer round."""

    offers: List[BankOffer] = Field(..., description="Offers after counter-offers and tie-breaking")
    user_offer: BankOffer = Field(..., description="The user's submitted offer")
    winner: Optional[str] = Field(None, description="Winning bank name")
    user_won: bool = Field(..., description="Whether the user's offer won")
    counter_offers_simulated: bool = Field(..., description="Whether rival banks were given a chance to respond")
    validation: ValidationResult = Field(..., description="Credit-limit validation of the user's offer")
    audit_trail: List[str] = Field(default_factory=list, description="Tie-break audit trail")
    history_record: Optional[CreditOfferHistory] = Field(None, description="Recorded history entry")


def generate_offer_id() -> str:
    """Generate a unique offer record ID."""
    return f"offer_{uuid4().hex[:16]}"


def merge_user_offer(offers: Sequence[BankOffer], user_offer: BankOffer) -> List[BankOffer]:
    """Put the user's offer into the set, replacing any earlier one."""
    merged = []
    replaced = False
    for offer in offers:
        if offer.is_user_offer or offer.bank_name == user_offer.bank_name:
            if not replaced:
                merged.append(user_offer)
                replaced = True
            continue
        merged.append(offer)

    if not replaced:
        merged.append(user_offer)
    return merged


def mark_provisional_winners(offers: Sequence[BankOffer]) -> List[BankOffer]:
    """Mark every offer at the top amount as winner, and as tied when there are several."""
    if not offers:
        return []

    highest = max(offer.amount for offer in offers)
    has_tie = sum(1 for offer in offers if offer.amount == highest) > 1
    return [
        offer.model_copy(update={
            "is_winner": offer.amount == highest,
            "is_tied": has_tie and offer.amount == highest,
        })
        for offer in offers
    ]


async def submit_manual_offer(
    customer: Customer,
    competing_offers: Sequence[BankOffer],
    amount: float,
    history: Optional[OfferHistoryStore] = None,
    rng: Optional[np.random.Generator] = None,
    response_delay: Optional[float] = None,
    now: Optional[datetime] = None,
    internal_data: Optional[InternalBankDataStore] = None,
) -> OfferRoundResult:
    """
    Submit the user's manual offer against the competing banks.

    Args:
        customer: Customer the offer is for
        competing_offers: Current offers in the round
        amount: The user's offer amount
        history: Offer history store to record the outcome in
        rng: Random source for counter-offers
        response_delay: Seconds to wait before banks respond
        now: Submission time
        internal_data: Internal bank data for tie-breaking

    Returns:
        OfferRoundResult with resolved offers
    """
    if not isinstance(amount, (int, float)) or math.isnan(amount) or amount <= 0:
        raise ValueError("Offer amount must be a positive number")

    now = now or datetime.now(timezone.utc)
    validation = CreditLimitControls.validate_amount(amount, customer.income, customer.applied_card)

    user_offer = BankOffer(bank_name=USER_BANK_NAME, amount=amount, timestamp=now, is_user_offer=True)
    offers = merge_user_offer(competing_offers, user_offer)

    logger.info(
        f"Manual offer submitted for customer {customer.id}",
        extra={
            "customer_id": customer.id,
            "amount": amount,
            "risk_level": validation.risk_level,
            "competing_offers": len(offers) - 1,
        },
    )

    rivals = [offer.amount for offer in offers if not offer.is_user_offer]
    counter_offers_simulated = bool(rivals) and amount >= max(rivals)
    if counter_offers_simulated:
        delay = get_settings().counter_offer_delay_seconds if response_delay is None else response_delay
        # Gives the UI time to show that banks are responding
        await asyncio.sleep(delay)
        offers = simulate_improved_offers(offers, user_offer, customer=customer, rng=rng, now=now)

    result = resolve_tie_breaking(offers, customer.id, customer.cobrand_partner, internal_data)
    winning_offer = next((offer for offer in result.updated_offers if offer.is_winner), None)
    user_won = winning_offer is not None and winning_offer.is_user_offer

    history_record = None
    if history is not None:
        history_record = history.add_offer(
            CreditOfferHistory(
                id=generate_offer_id(),
                customer_name=customer.name or customer.id,
                customer_location=customer.location,
                timestamp=customer.application_time or now,
                amount=amount,
                status="won" if user_won else "pending",
                competing_bank=None if user_won else result.winner,
                card_product=customer.applied_card,
                cobrand_partner=customer.cobrand_partner,
                competing_offers=[o for o in result.updated_offers if not o.is_user_offer],
                customer_snapshot=CustomerSnapshot.from_customer(customer),
            )
        )

    try:
        await emit_tie_break_event(customer.id, result)
    except Exception as e:
        logger.error(f"Failed to emit tie-break event: {e}")

    return OfferRoundResult(
        offers=result.updated_offers,
        user_offer=user_offer,
        winner=result.winner,
        user_won=user_won,
        counter_offers_simulated=counter_offers_simulated,
        validation=validation,
        audit_trail=result.audit_trail,
        history_record=history_record,
    )


# Utility functions for sample competitor offers

def generate_bank_offers(
    customer: Customer,
    prioritize_lowest_dti: bool = False,
    rng: Optional[np.random.Generator] = None,
    now: Optional[datetime] = None,
) -> List[BankOffer]:
    """
    Sample competitor credit-limit offers for a customer.

    Amounts scale with income, credit score and debt burden, rounded to the
    nearest 1,000. Commit times fall within the last one to three hours.

    By default every offer at the top amount is marked as winner. With
    prioritize_lowest_dti, offers are ranked on their DTI-adjusted value and
    the last offer at the top value is the single winner.
    """
    rng = rng if rng is not None else get_rng()
    now = now or datetime.now(timezone.utc)

    base_amount = customer.income * 0.75
    profile_factor = (customer.credit_score / 800) * (1 - customer.debt_burden_ratio)

    competitors = (
        ("SNB", 0.10, 1),
        ("ANB", 0.15, 2),
        ("Al Ahli Bank", 0.12, 3),
    )
    offers = []
    for bank_name, max_discount, window_hours in competitors:
        amount = round_half_up(base_amount * profile_factor * (1 - rng.random() * max_discount), 1000)
        committed_ms_ago = int(rng.integers(0, window_hours * 3_600_000))
        offers.append(
            BankOffer(
                bank_name=bank_name,
                amount=amount,
                timestamp=now - timedelta(milliseconds=committed_ms_ago),
            )
        )

    if not prioritize_lowest_dti:
        return mark_provisional_winners(offers)

    adjusted_values = [offer.amount * (1 - customer.debt_burden_ratio) for offer in offers]
    top_value = max(adjusted_values)
    winner_index = max(index for index, value in enumerate(adjusted_values) if value == top_value)
    return [
        offer.model_copy(update={"is_winner": index == winner_index, "is_tied": False})
        for index, offer in enumerate(offers)
    ]


def customer_from_history(record: CreditOfferHistory) -> Customer:
    """Rebuild a customer from a history record for a follow-up round."""
    snapshot = record.customer_snapshot
    if snapshot is not None:
        return Customer(
            id=snapshot.customer_id,
            name=record.customer_name,
            age=snapshot.age,
            income=snapshot.income,
            credit_score=snapshot.credit_score,
            debt_burden_ratio=snapshot.debt_burden_ratio,
            location=snapshot.location,
            nationality=snapshot.nationality,
            applied_card=snapshot.applied_card,
            cobrand_partner=record.cobrand_partner,
            application_time=record.timestamp,
        )

    return Customer(
        id=f"customer-{record.id}",
        name=record.customer_name,
        age=DEFAULT_RECONSTRUCTED_AGE,
        income=math.floor(record.amount * INCOME_FROM_AMOUNT_FACTOR),
        credit_score=DEFAULT_RECONSTRUCTED_CREDIT_SCORE,
        debt_burden_ratio=DEFAULT_RECONSTRUCTED_DEBT_BURDEN,
        location=record.customer_location,
        nationality=DEFAULT_RECONSTRUCTED_NATIONALITY,
        applied_card=record.card_product or DEFAULT_RECONSTRUCTED_CARD,
        cobrand_partner=record.cobrand_partner,
        application_time=record.timestamp,
    )
