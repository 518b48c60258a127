"""
Deterministic tie-breaking for competing offers.

When several offers share the highest amount, a cascade of rules picks exactly
one winner: earliest commit, retailer (cobrand) preference, internal trust
score, portfolio balance and finally a stable hash of customer and bank. The
internal data used here is never exposed to the banks.
"""

import logging
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import (
    BANK_NAME_ALIASES,
    COBRAND_PREFERRED_BANKS,
    DEFAULT_INTERNAL_BANK_DATA,
    INTERNAL_BANK_DATA,
    InternalBankData,
)
from .controls import BankOffer, TieBreakingResult

logger = logging.getLogger(__name__)


class InternalBankDataStore:
    """
    Read-only view of internal trust scores and today's wins.

    Updates go through record_win, which returns a new store and leaves this
    one untouched.
    """

    def __init__(
        self,
        data: Mapping[str, InternalBankData] = INTERNAL_BANK_DATA,
        aliases: Mapping[str, str] = BANK_NAME_ALIASES,
    ):
        self._data = MappingProxyType(dict(data))
        self._aliases = aliases

    def canonical_name(self, bank_name: str) -> str:
        """Internal key for a bank, resolving display names through the alias map."""
        if bank_name in self._data:
            return bank_name
        return self._aliases.get(bank_name, bank_name)

    def get(self, bank_name: str) -> InternalBankData:
        """Internal data for a bank; unknown banks get zero trust and no wins."""
        return self._data.get(self.canonical_name(bank_name), DEFAULT_INTERNAL_BANK_DATA)

    def record_win(self, bank_name: str) -> "InternalBankDataStore":
        """New store with one more win recorded today for the bank."""
        key = self.canonical_name(bank_name)
        current = self.get(bank_name)
        updated = dict(self._data)
        updated[key] = current.model_copy(update={"today_wins": current.today_wins + 1})
        logger.info(
            f"Recorded win for {bank_name}",
            extra={"bank_name": bank_name, "today_wins": current.today_wins + 1},
        )
        return InternalBankDataStore(updated, self._aliases)

    def snapshot(self) -> Dict[str, InternalBankData]:
        return dict(self._data)


# Global store instance
_internal_data_store = InternalBankDataStore()


def get_internal_data_store() -> InternalBankDataStore:
    """Get the process-wide internal data store."""
    return _internal_data_store


def set_internal_data_store(store: InternalBankDataStore) -> None:
    """Replace the process-wide internal data store."""
    global _internal_data_store
    _internal_data_store = store


def deterministic_hash(customer_id: str, bank_name: str) -> int:
    """Stable 32-bit string hash of customer and bank, as a non-negative integer."""
    value = 0
    for char in f"{customer_id}-{bank_name}":
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


Candidate = Tuple[int, BankOffer]


def _finalize(
    offers: Sequence[BankOffer],
    winner_index: int,
    audit_trail: List[str],
    resolved_by: str,
) -> TieBreakingResult:
    updated_offers = [
        offer.model_copy(update={"is_winner": index == winner_index, "is_tied": False})
        for index, offer in enumerate(offers)
    ]
    logger.info(
        f"Tie-break resolved: {offers[winner_index].bank_name} wins by {resolved_by}",
        extra={
            "winner": offers[winner_index].bank_name,
            "resolved_by": resolved_by,
            "offers": len(offers),
        },
    )
    return TieBreakingResult(
        updated_offers=updated_offers,
        audit_trail=audit_trail,
        winner=offers[winner_index].bank_name,
        resolved_by=resolved_by,
    )


def _narrow(
    candidates: List[Candidate], key: Callable[[BankOffer], float], highest: bool
) -> Tuple[float, List[Candidate]]:
    """Keep the candidates sharing the best key value."""
    values = [key(offer) for _, offer in candidates]
    best = max(values) if highest else min(values)
    return best, [candidate for candidate, value in zip(candidates, values) if value == best]


def _commit_time(offer: BankOffer) -> float:
    # Offers without a commit time rank after every stamped offer
    return offer.timestamp.timestamp() if offer.timestamp else float("inf")


def resolve_tie_breaking(
    offers: Sequence[BankOffer],
    customer_id: str,
    cobrand_partner: Optional[str] = None,
    internal_data: Optional[InternalBankDataStore] = None,
) -> TieBreakingResult:
    """
    Choose exactly one winner among offers, breaking ties on the top amount.

    Args:
        offers: Offers in the competitive set, including the user's own
        customer_id: Customer identifier, used by the final hash stage
        cobrand_partner: Cobrand partner of the customer's application
        internal_data: Internal trust and win data, defaults to the global store

    Returns:
        TieBreakingResult with updated offers and audit trail
    """
    internal_data = internal_data or get_internal_data_store()
    audit_trail: List[str] = []

    if not offers:
        audit_trail.append("No offers to resolve")
        return TieBreakingResult(updated_offers=[], audit_trail=audit_trail)

    highest_amount = max(offer.amount for offer in offers)
    candidates = [(index, offer) for index, offer in enumerate(offers) if offer.amount == highest_amount]

    audit_trail.append(f"Highest offer: {highest_amount:,.0f}")
    audit_trail.append(f"Offers tied at highest amount: {', '.join(o.bank_name for _, o in candidates)}")

    if len(candidates) == 1:
        winner_index, winner = candidates[0]
        audit_trail.append(f"Clear winner: {winner.bank_name} (unique highest offer)")
        return _finalize(offers, winner_index, audit_trail, "unique_highest")

    audit_trail.append("Applying tie-breaking cascade...")

    # Stage A: earliest commit
    audit_trail.append("Stage A: comparing commit times")
    earliest, candidates = _narrow(candidates, _commit_time, highest=False)
    if len(candidates) == 1:
        winner_index, winner = candidates[0]
        commit_time = datetime.fromtimestamp(earliest, tz=timezone.utc).strftime("%H:%M:%S")
        audit_trail.append(f"Winner: {winner.bank_name} (earliest commit time: {commit_time})")
        return _finalize(offers, winner_index, audit_trail, "earliest_commit")
    audit_trail.append(f"Stage A: {len(candidates)} offers share the earliest commit time")

    # Stage B: retailer preference
    preferred_bank = COBRAND_PREFERRED_BANKS.get(cobrand_partner) if cobrand_partner else None
    if preferred_bank:
        audit_trail.append(f"Stage B: {cobrand_partner} cobrand prefers {preferred_bank}")
        preferred_key = internal_data.canonical_name(preferred_bank)
        preferred = [
            candidate for candidate in candidates
            if internal_data.canonical_name(candidate[1].bank_name) == preferred_key
        ]
        if len(preferred) == 1:
            winner_index, winner = preferred[0]
            audit_trail.append(f"Winner: {winner.bank_name} (retailer preference for {cobrand_partner} cobrand)")
            return _finalize(offers, winner_index, audit_trail, "retailer_preference")
        audit_trail.append("Stage B: no single preferred bank among tied offers")
    else:
        audit_trail.append("Stage B: no retailer preference applies")

    # Stage C: trust score
    audit_trail.append("Stage C: comparing internal trust scores")
    top_trust, candidates = _narrow(
        candidates, lambda offer: internal_data.get(offer.bank_name).trust_score, highest=True
    )
    if len(candidates) == 1:
        winner_index, winner = candidates[0]
        audit_trail.append(f"Winner: {winner.bank_name} (highest trust score: {top_trust:.0f})")
        return _finalize(offers, winner_index, audit_trail, "trust_score")
    audit_trail.append(f"Stage C: {len(candidates)} offers share trust score {top_trust:.0f}")

    # Stage D: portfolio balance
    audit_trail.append("Stage D: comparing wins recorded today")
    fewest_wins, candidates = _narrow(
        candidates, lambda offer: internal_data.get(offer.bank_name).today_wins, highest=False
    )
    if len(candidates) == 1:
        winner_index, winner = candidates[0]
        audit_trail.append(f"Winner: {winner.bank_name} (portfolio balance: {fewest_wins:.0f} wins today)")
        return _finalize(offers, winner_index, audit_trail, "portfolio_balance")
    audit_trail.append(f"Stage D: {len(candidates)} offers share {fewest_wins:.0f} wins today")

    # Stage E: deterministic hash, first in order wins on a collision
    hashes = [(candidate, deterministic_hash(customer_id, candidate[1].bank_name)) for candidate in candidates]
    highest_hash = max(value for _, value in hashes)
    colliding = [candidate for candidate, value in hashes if value == highest_hash]
    if len(colliding) > 1:
        logger.warning(
            f"Hash collision among {len(colliding)} offers for customer {customer_id}",
            extra={"customer_id": customer_id, "banks": [offer.bank_name for _, offer in colliding]},
        )
        audit_trail.append("Stage E: hash collision, first offer in order wins")
    winner_index, winner = colliding[0]
    audit_trail.append(f"Winner: {winner.bank_name} (deterministic hash: {highest_hash})")
    return _finalize(offers, winner_index, audit_trail, "deterministic_hash")
