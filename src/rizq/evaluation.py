"""
Welcome-balance bid evaluation for Rizq.

The primary evaluator filters, ranks and selects generated bids while writing a
timestamped audit trail. A flat-baseline fallback evaluator covers the case
where the primary path fails, so callers always receive a decision.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

import numpy as np

from .bidding import generate_bids
from .config import BANK_PARTNERS, get_settings
from .controls import BidResponse, Customer, WelcomeBid
from .eligibility import eligibility_failures

logger = logging.getLogger(__name__)

NO_ELIGIBLE_BIDS_REASON = (
    "No eligible bids available. Customer may not meet minimum criteria "
    "or all bank quotas are exhausted."
)

BidGenerator = Callable[..., List[WelcomeBid]]
Evaluator = Callable[..., BidResponse]


class AuditTrail:
    """Ordered, timestamped log of evaluation steps."""

    def __init__(self):
        self.entries: List[str] = []

    def add(self, message: str) -> None:
        self.entries.append(f"[{datetime.now(timezone.utc).isoformat()}] {message}")


def _format_amount(amount: float) -> str:
    return f"{get_settings().currency} {amount:.0f}"


def _mark_top_group(ranked: List[WelcomeBid]) -> List[WelcomeBid]:
    """Mark the first bid as winner and flag every bid sharing its amount as tied."""
    if not ranked:
        return ranked

    top_amount = ranked[0].bid_amount
    tied = sum(1 for bid in ranked if bid.bid_amount == top_amount) > 1
    return [
        bid.model_copy(update={
            "is_winner": index == 0,
            "is_tied": tied and bid.bid_amount == top_amount,
        })
        for index, bid in enumerate(ranked)
    ]


def _select_winner(
    customer: Customer, bids: List[WelcomeBid], audit: AuditTrail, degraded: bool = False
) -> BidResponse:
    """Rank available bids, pick the highest and close the audit trail."""
    # Stable sort keeps input order among equal amounts
    ranked = _mark_top_group(sorted(bids, key=lambda bid: bid.bid_amount, reverse=True))

    for index, bid in enumerate(ranked):
        audit.add(f"Rank {index + 1}: {bid.bank_name} - {_format_amount(bid.bid_amount)}")

    winning_bid = None
    if not ranked:
        decision_reason = NO_ELIGIBLE_BIDS_REASON
        audit.add(f"RESULT: No winning bid - {decision_reason}")
    else:
        winning_bid = ranked[0]
        decision_reason = (
            f"Highest bid selected: {winning_bid.bank_name} with {_format_amount(winning_bid.bid_amount)}"
        )
        audit.add(
            f"RESULT: Winner selected - {winning_bid.bank_name} ({_format_amount(winning_bid.bid_amount)})"
        )
        if len(ranked) > 1:
            runner_up = ranked[1]
            margin = winning_bid.bid_amount - runner_up.bid_amount
            decision_reason += f", winning margin {_format_amount(margin)} over {runner_up.bank_name}"
            audit.add(f"Winning margin: {_format_amount(margin)} over {runner_up.bank_name}")

    audit.add(
        f"Customer Profile: Income={customer.income:.0f}, CreditScore={customer.credit_score}, "
        f"Location={customer.location}, Age={customer.age}"
    )

    return BidResponse(
        winning_bid=winning_bid,
        eligible_bids=ranked,
        decision_reason=decision_reason,
        audit_trail=audit.entries,
        degraded=degraded,
    )


def evaluate_bids(
    customer: Customer,
    now: Optional[datetime] = None,
    rng: Optional[np.random.Generator] = None,
    bid_generator: BidGenerator = generate_bids,
) -> BidResponse:
    """
    Evaluate welcome-balance bids for a customer.

    Args:
        customer: Customer under review
        now: Current time passed to the bid generator
        rng: Random source passed to the bid generator
        bid_generator: Source of candidate bids

    Returns:
        BidResponse with winner, ranked eligible bids and audit trail
    """
    audit = AuditTrail()
    audit.add(f"Starting bid evaluation for customer {customer.id}")

    all_bids = bid_generator(customer, now=now, rng=rng)
    audit.add(f"Retrieved {len(all_bids)} active bids from bank partners")

    eligible_bids = []
    rejected = []
    for bid in all_bids:
        failures = eligibility_failures(customer, bid.eligibility)
        if failures:
            rejected.append((bid, failures))
        else:
            eligible_bids.append(bid)

    audit.add(f"{len(eligible_bids)} bids passed eligibility criteria")
    for bid, failures in rejected:
        audit.add(f"Filtered out {bid.bank_name}: Failed eligibility check ({'; '.join(failures)})")

    available_bids = []
    for bid in eligible_bids:
        if bid.quota_remaining > 0:
            available_bids.append(bid)
        else:
            audit.add(f"{bid.bank_name} excluded: Daily quota exhausted")
    audit.add(f"{len(available_bids)} bids have available quota")

    response = _select_winner(customer, available_bids, audit)

    logger.info(
        f"Bid evaluation completed for customer {customer.id}",
        extra={
            "customer_id": customer.id,
            "generated_bids": len(all_bids),
            "eligible_bids": len(response.eligible_bids),
            "winning_bank": response.winning_bid.bank_name if response.winning_bid else None,
            "winning_amount": response.winning_bid.bid_amount if response.winning_bid else None,
        },
    )
    return response


def fallback_evaluate_bids(customer: Customer, now: Optional[datetime] = None, **_: object) -> BidResponse:
    """
    Degraded evaluation with flat baseline offers.

    Every partner offers its minimum bid with full quota and no randomness, and
    the highest offer wins (first partner on equal amounts).
    """
    now = now or datetime.now(timezone.utc)
    audit = AuditTrail()
    audit.add(f"Fallback evaluation for customer {customer.id}: dynamic bidding unavailable")

    baseline_bids = [
        WelcomeBid(
            bank_id=bank.id,
            bank_name=bank.name,
            bank_logo=bank.logo,
            bid_amount=bank.min_bid,
            quota_remaining=bank.daily_quota,
            campaign_id=f"baseline_{bank.id}",
            created_at=now,
        )
        for bank in BANK_PARTNERS
    ]
    audit.add(f"Using {len(baseline_bids)} flat baseline offers")

    return _select_winner(customer, baseline_bids, audit, degraded=True)


def evaluate_bids_safely(
    customer: Customer,
    evaluator: Evaluator = evaluate_bids,
    fallback: Evaluator = fallback_evaluate_bids,
    **kwargs,
) -> BidResponse:
    """Run the primary evaluator, degrading to the fallback on any failure."""
    try:
        return evaluator(customer, **kwargs)
    except Exception as e:
        logger.error(
            f"Bid evaluation failed for customer {customer.id}, using fallback: {e}",
            extra={"customer_id": customer.id},
        )
        response = fallback(customer, now=kwargs.get("now"))
        response.audit_trail.insert(
            0, f"[{datetime.now(timezone.utc).isoformat()}] Primary evaluation failed: {e}"
        )
        return response


def determine_customer_segment(customer: Customer) -> str:
    """Customer segment for analytics."""
    if customer.income >= 20000 and customer.credit_score >= 750:
        return "premium"
    if customer.income >= 10000 and customer.credit_score >= 700:
        return "affluent"
    if customer.income >= 7000 and customer.credit_score >= 650:
        return "mass_market"
    return "emerging"


def generate_bidding_report(responses: List[BidResponse]) -> str:
    """One-line summary across several evaluations."""
    total_bids = sum(len(response.eligible_bids) for response in responses)
    winning_amounts = [response.winning_bid.bid_amount for response in responses if response.winning_bid]
    average_bid = sum(winning_amounts) / len(winning_amounts) if winning_amounts else 0.0

    return (
        f"Bidding Summary: {total_bids} total bids, {len(winning_amounts)} winners, "
        f"Average winning bid: {get_settings().currency} {average_bid:.2f}"
    )


def format_welcome_balance_offer(bid: WelcomeBid) -> str:
    return f"Offer Welcome Balance – {get_settings().currency} {bid.bid_amount:,.0f}"


def format_bank_tooltip(bid: WelcomeBid) -> str:
    return (
        f"This is a one-time cash incentive of {get_settings().currency} {bid.bid_amount:,.0f}, "
        f"funded by {bid.bank_name}, deposited directly into the cardholder's account upon activation."
    )
