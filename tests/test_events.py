"""
Tests for CloudEvent emission.
"""

import asyncio
from datetime import datetime, timezone

from rizq.controls import BankOffer, BidResponse, CreditOfferHistory
from rizq.events import emit_bid_decision_event, emit_offer_status_event, emit_tie_break_event
from rizq.evaluation import fallback_evaluate_bids
from rizq.tie_breaking import resolve_tie_breaking


class TestCloudEvents:
    """Test CloudEvent envelopes and payloads."""

    def test_bid_decision_event(self, make_customer):
        """Test bid decision event."""
        customer = make_customer()
        response = fallback_evaluate_bids(customer)

        event = asyncio.run(emit_bid_decision_event(customer, response))

        assert event.specversion == "1.0"
        assert event.type == "ocn.rizq.bid_decision.v1"
        assert event.subject == "customer_cust_001"
        assert event.source == "https://rizq.ocn.ai/offers"
        assert event.dataschema == "https://schemas.ocn.ai/events/v1/rizq.bid_decision.v1.schema.json"
        assert event.data["winning_bank"] == "Samba Financial Group"
        assert event.data["winning_amount"] == 40
        assert event.data["degraded"] is True

    def test_bid_decision_event_without_winner(self, make_customer):
        """Test bid decision event when nobody won."""
        response = BidResponse(decision_reason="No eligible bids")

        event = asyncio.run(emit_bid_decision_event(make_customer(), response))

        assert event.data["winning_bank"] is None
        assert event.data["eligible_bids"] == 0

    def test_tie_break_event_hides_internal_data(self):
        """Test tie-break payload carries offers but no internal reputation data."""
        offers = [BankOffer(bank_name="SNB", amount=20000), BankOffer(bank_name="ANB", amount=20000)]
        result = resolve_tie_breaking(offers, "cust_001")

        event = asyncio.run(emit_tie_break_event("cust_001", result))

        assert event.type == "ocn.rizq.tie_break.v1"
        assert event.data["winner"] == "SNB"
        assert event.data["resolved_by"] == "trust_score"
        assert len(event.data["offers"]) == 2
        assert "trust_score" not in event.data["offers"][0]
        assert "today_wins" not in event.data["offers"][0]

    def test_offer_status_event(self):
        """Test offer status event."""
        record = CreditOfferHistory(
            id="offer_1",
            customer_name="Ahmed Al-Rashid",
            customer_location="Riyadh",
            timestamp=datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc),
            amount=30000,
            status="cancelled",
            cancel_reason="Customer declined",
        )

        event = asyncio.run(emit_offer_status_event(record))

        assert event.type == "ocn.rizq.offer_status.v1"
        assert event.subject == "offer_offer_1"
        assert event.data["status"] == "cancelled"
        assert event.data["cancel_reason"] == "Customer declined"

    def test_event_ids_unique(self, make_customer):
        """Test each emission gets its own ID."""
        customer = make_customer()
        response = fallback_evaluate_bids(customer)

        first = asyncio.run(emit_bid_decision_event(customer, response))
        second = asyncio.run(emit_bid_decision_event(customer, response))

        assert first.id != second.id
