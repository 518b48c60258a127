"""
In-memory offer history for the current session.
"""

import logging
from typing import Dict, List, Optional

from .config import CARD_APR_RATES
from .controls import BankOffer, CreditOfferHistory, OfferStatus

logger = logging.getLogger(__name__)


class OfferNotFoundError(KeyError):
    """Raised when an offer record does not exist."""


class InvalidStatusTransitionError(ValueError):
    """Raised when an offer cannot move to the requested status."""


class OfferHistoryStore:
    """Append-only ledger of customer offers with status transitions."""

    ALLOWED_TRANSITIONS: Dict[str, tuple] = {
        "pending": ("pending", "won", "lost", "cancelled"),
        "won": ("issued", "cancelled"),
        "lost": ("pending",),
        "issued": ("cancelled",),
        "cancelled": (),
    }

    def __init__(self, records: Optional[List[CreditOfferHistory]] = None):
        self._records: List[CreditOfferHistory] = list(records or [])

    def add_offer(self, record: CreditOfferHistory) -> CreditOfferHistory:
        """Add a record to the front of the history, applying the card product's APR."""
        if record.card_product in CARD_APR_RATES:
            record = record.model_copy(update={"apr": CARD_APR_RATES[record.card_product]})

        self._records.insert(0, record)
        logger.info(
            f"Added offer {record.id} for {record.customer_name}",
            extra={"offer_id": record.id, "status": record.status, "amount": record.amount},
        )
        return record

    def get_offer(self, offer_id: str) -> CreditOfferHistory:
        for record in self._records:
            if record.id == offer_id:
                return record
        raise OfferNotFoundError(offer_id)

    def list_offers(self, status: Optional[OfferStatus] = None) -> List[CreditOfferHistory]:
        if status is None:
            return list(self._records)
        return [record for record in self._records if record.status == status]

    def withdraw_offer(self, offer_id: str) -> CreditOfferHistory:
        """Remove a record entirely."""
        record = self.get_offer(offer_id)
        self._records = [r for r in self._records if r.id != offer_id]
        logger.info(f"Withdrew offer {offer_id}", extra={"offer_id": offer_id})
        return record

    def update_offer_status(
        self,
        offer_id: str,
        status: OfferStatus,
        cancel_reason: Optional[str] = None,
        amount: Optional[float] = None,
        competing_offers: Optional[List[BankOffer]] = None,
    ) -> CreditOfferHistory:
        """
        Move an offer to a new status.

        Args:
            offer_id: Offer record identifier
            status: Target status
            cancel_reason: Reason, recorded when given
            amount: Updated offer amount
            competing_offers: Updated snapshot of competing offers

        Returns:
            The updated record
        """
        record = self.get_offer(offer_id)
        if status not in self.ALLOWED_TRANSITIONS[record.status]:
            raise InvalidStatusTransitionError(
                f"Offer {offer_id} cannot move from {record.status} to {status}"
            )

        update = {"status": status}
        if cancel_reason:
            update["cancel_reason"] = cancel_reason
        if amount is not None:
            update["amount"] = amount
        if competing_offers is not None:
            update["competing_offers"] = list(competing_offers)

        updated = record.model_copy(update=update)
        self._records = [updated if r.id == offer_id else r for r in self._records]

        logger.info(
            f"Offer {offer_id} moved from {record.status} to {status}",
            extra={"offer_id": offer_id, "previous_status": record.status, "status": status},
        )
        return updated

    def lock_offer(self, offer_id: str) -> CreditOfferHistory:
        return self.update_offer_status(offer_id, "won")

    def issue_offer(self, offer_id: str) -> CreditOfferHistory:
        return self.update_offer_status(offer_id, "issued")

    def cancel_offer(self, offer_id: str, reason: str) -> CreditOfferHistory:
        return self.update_offer_status(offer_id, "cancelled", cancel_reason=reason)

    def __len__(self) -> int:
        return len(self._records)
