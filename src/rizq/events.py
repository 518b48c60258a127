"""
CloudEvents emitter for Rizq offer decisions.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel

from .controls import BidResponse, CreditOfferHistory, Customer, TieBreakingResult

logger = logging.getLogger(__name__)

EVENT_SOURCE = "https://rizq.ocn.ai/offers"


class OfferCloudEvent(BaseModel):
    """CloudEvent envelope for offer decisions."""

    specversion: str = "1.0"
    id: str
    source: str
    type: str
    subject: Optional[str] = None
    time: str
    datacontenttype: str = "application/json"
    dataschema: Optional[str] = None
    data: Dict[str, Any]


class BidDecisionData(BaseModel):
    """Data payload for bid decision events."""

    customer_id: str
    winning_bank: Optional[str]
    winning_amount: Optional[float]
    eligible_bids: int
    decision_reason: str
    degraded: bool
    timestamp: str


class TieBreakData(BaseModel):
    """Data payload for tie-break events."""

    customer_id: str
    winner: Optional[str]
    resolved_by: Optional[str]
    offers: list
    audit_trail: list
    timestamp: str


class OfferStatusData(BaseModel):
    """Data payload for offer status events."""

    offer_id: str
    status: str
    amount: float
    competing_bank: Optional[str]
    cancel_reason: Optional[str]
    timestamp: str


def _build_event(event_type: str, subject: str, data: BaseModel, source: str) -> OfferCloudEvent:
    event = OfferCloudEvent(
        id=str(uuid4()),
        source=source,
        type=event_type,
        subject=subject,
        time=datetime.now(timezone.utc).isoformat(),
        dataschema=f"https://schemas.ocn.ai/events/v1/{event_type.removeprefix('ocn.')}.schema.json",
        data=data.model_dump(),
    )

    # In production this would go to an event bus
    logger.info(
        f"Emitted {event_type} CloudEvent",
        extra={"event_id": event.id, "subject": subject, "event_type": event_type},
    )
    return event


async def emit_bid_decision_event(
    customer: Customer, response: BidResponse, source: str = EVENT_SOURCE
) -> OfferCloudEvent:
    """
    Emit a CloudEvent for a bid evaluation decision.

    Args:
        customer: Evaluated customer
        response: Evaluation result
        source: Event source URI

    Returns:
        OfferCloudEvent
    """
    winning_bid = response.winning_bid
    data = BidDecisionData(
        customer_id=customer.id,
        winning_bank=winning_bid.bank_name if winning_bid else None,
        winning_amount=winning_bid.bid_amount if winning_bid else None,
        eligible_bids=len(response.eligible_bids),
        decision_reason=response.decision_reason,
        degraded=response.degraded,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return _build_event("ocn.rizq.bid_decision.v1", f"customer_{customer.id}", data, source)


async def emit_tie_break_event(
    customer_id: str, result: TieBreakingResult, source: str = EVENT_SOURCE
) -> OfferCloudEvent:
    """Emit a CloudEvent for a tie-break resolution."""
    # Offers only carry public fields, internal bank data stays out of the payload
    data = TieBreakData(
        customer_id=customer_id,
        winner=result.winner,
        resolved_by=result.resolved_by,
        offers=[offer.model_dump(mode="json") for offer in result.updated_offers],
        audit_trail=result.audit_trail,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return _build_event("ocn.rizq.tie_break.v1", f"customer_{customer_id}", data, source)


async def emit_offer_status_event(
    record: CreditOfferHistory, source: str = EVENT_SOURCE
) -> OfferCloudEvent:
    """Emit a CloudEvent for an offer status change."""
    data = OfferStatusData(
        offer_id=record.id,
        status=record.status,
        amount=record.amount,
        competing_bank=record.competing_bank,
        cancel_reason=record.cancel_reason,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
    return _build_event("ocn.rizq.offer_status.v1", f"offer_{record.id}", data, source)
