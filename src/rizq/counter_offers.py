"""
Competitor counter-offer simulation.

After the user ties or beats the best competing offer, each rival bank may
respond by raising its offer above the user's, within its regulatory ceiling
and never more than doubling its previous offer.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

import numpy as np

from .bidding import round_half_up
from .config import get_rng, get_settings
from .controls import BankOffer, CreditLimitControls, Customer

logger = logging.getLogger(__name__)

RAISE_MIN = 0.05
RAISE_MAX = 0.15
RAISE_ROUNDING = 1000
# Banks already this close to their ceiling do not respond
CEILING_PROXIMITY = 0.95
MAX_RAISE_FACTOR = 2


def _is_user_offer(offer: BankOffer, user_offer: BankOffer) -> bool:
    return offer.is_user_offer or offer.bank_name == user_offer.bank_name


def get_response_probability(user_offer: BankOffer, customer: Optional[Customer] = None) -> float:
    """Probability that a rival bank responds to the user's offer."""
    settings = get_settings()
    if customer is None:
        return settings.counter_offer_probability

    validation = CreditLimitControls.validate_amount(user_offer.amount, customer.income, customer.applied_card)
    if validation.risk_level == "outlier":
        return settings.outlier_response_probability
    return settings.counter_offer_probability


def simulate_improved_offers(
    current_offers: Sequence[BankOffer],
    user_offer: BankOffer,
    customer: Optional[Customer] = None,
    rng: Optional[np.random.Generator] = None,
    now: Optional[datetime] = None,
    response_probability: Optional[float] = None,
) -> List[BankOffer]:
    """
    Simulate rival banks raising their offers in response to the user's.

    Args:
        current_offers: Offers in the round, may include the user's own
        user_offer: The user's submitted offer
        customer: Customer, enables outlier detection and tier ceilings
        rng: Random source for responses and raise sizes
        now: Timestamp stamped on raised offers
        response_probability: Override for the response probability

    Returns:
        New list of offers; amounts only ever increase
    """
    offers = [offer.model_copy() for offer in current_offers]
    competing = [offer for offer in offers if not _is_user_offer(offer, user_offer)]

    if not competing:
        return offers

    best_competing = max(offer.amount for offer in competing)
    if user_offer.amount < best_competing:
        logger.debug(
            f"User offer {user_offer.amount:.0f} below best competing offer {best_competing:.0f}, no response",
        )
        return offers

    rng = rng if rng is not None else get_rng()
    now = now or datetime.now(timezone.utc)
    if response_probability is None:
        response_probability = get_response_probability(user_offer, customer)

    tier_ceiling = None
    if customer is not None:
        tier_ceiling = CreditLimitControls.get_tier_ceiling(customer.income, customer.applied_card)

    raised = []
    for index, offer in enumerate(offers):
        if _is_user_offer(offer, user_offer) or offer.amount > user_offer.amount:
            continue

        if tier_ceiling is not None and offer.amount >= tier_ceiling * CEILING_PROXIMITY:
            logger.debug(f"{offer.bank_name} already near its ceiling of {tier_ceiling:.0f}")
            continue

        if rng.random() >= response_probability:
            continue

        target = round_half_up(user_offer.amount * (1 + rng.uniform(RAISE_MIN, RAISE_MAX)), RAISE_ROUNDING)
        cap = offer.amount * MAX_RAISE_FACTOR
        if tier_ceiling is not None:
            cap = min(cap, tier_ceiling)
        new_amount = min(target, cap)

        if new_amount <= offer.amount:
            continue

        offers[index] = offer.model_copy(update={
            "amount": new_amount,
            "timestamp": now,
            "is_winner": False,
            "is_tied": False,
        })
        raised.append(offer.bank_name)

    logger.info(
        f"Counter-offer simulation: {len(raised)} banks improved their offers",
        extra={
            "user_amount": user_offer.amount,
            "response_probability": response_probability,
            "raised_banks": raised,
        },
    )
    return offers
