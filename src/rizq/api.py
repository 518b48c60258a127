"""
FastAPI service for Rizq competitive offers.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, status
from pydantic import BaseModel, Field

from .bidding import generate_bids, get_bank_by_id
from .config import BANK_PARTNERS, USER_BANK_NAME, get_settings
from .controls import (
    BankOffer,
    CreditLimitControls,
    CreditOfferHistory,
    Customer,
    OfferStatus,
    TieBreakingResult,
    ValidationResult,
    WelcomeBid,
)
from .counter_offers import simulate_improved_offers
from .evaluation import determine_customer_segment, evaluate_bids_safely
from .events import emit_bid_decision_event, emit_offer_status_event
from .history import InvalidStatusTransitionError, OfferHistoryStore, OfferNotFoundError
from .mcp.server import router as mcp_router
from .negotiation import OfferRoundResult, generate_bank_offers, submit_manual_offer
from .tie_breaking import get_internal_data_store, resolve_tie_breaking, set_internal_data_store

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Rizq Competitive Offers",
    description="Welcome-balance bidding and credit-limit offers against rival banks",
    version="0.1.0"
)
app.include_router(mcp_router)


# Session offer history
_history_store = OfferHistoryStore()


def get_history_store() -> OfferHistoryStore:
    """Offer history for the current session."""
    return _history_store


# Pydantic models for API
class BidsMetadata(BaseModel):
    """Summary of generated bids."""

    total_banks: int = Field(..., description="Banks that bid")
    eligible_banks: int = Field(..., description="Banks with quota remaining")
    average_bid: float = Field(..., description="Average bid amount")
    max_bid: float = Field(..., description="Highest bid amount")
    min_bid: float = Field(..., description="Lowest bid amount")


class WelcomeBidsResponse(BaseModel):
    """Response for bid generation."""

    success: bool = Field(..., description="Whether generation succeeded")
    data: List[WelcomeBid] = Field(..., description="Generated bids")
    metadata: BidsMetadata = Field(..., description="Bid summary")


class EvaluationMetadata(BaseModel):
    """Evaluation metadata."""

    evaluation_time_ms: float = Field(..., description="Evaluation time in milliseconds")
    total_eligible: int = Field(..., description="Number of eligible bids")
    customer_segment: str = Field(..., description="Customer segment")


class BidEvaluationResponse(BaseModel):
    """Response for bid evaluation."""

    success: bool = Field(..., description="Whether the primary evaluator produced the result")
    winning_bid: Optional[WelcomeBid] = Field(None, description="Winning bid")
    all_bids: List[WelcomeBid] = Field(..., description="Ranked eligible bids")
    decision_reason: str = Field(..., description="Decision reason")
    audit_trail: List[str] = Field(..., description="Audit trail")
    metadata: EvaluationMetadata = Field(..., description="Evaluation metadata")


class ValidateAmountRequest(BaseModel):
    """Request to validate an offer amount."""

    amount: float = Field(..., gt=0, description="Offer amount")
    monthly_income: float = Field(..., gt=0, description="Customer monthly income")
    card_product: str = Field(..., description="Card product")


class TieBreakRequest(BaseModel):
    """Request to resolve ties among offers."""

    offers: List[BankOffer] = Field(..., description="Offers to resolve")
    customer_id: str = Field(..., description="Customer identifier")
    cobrand_partner: Optional[str] = Field(None, description="Cobrand partner")


class CounterOffersRequest(BaseModel):
    """Request to simulate rival responses to the user's offer."""

    offers: List[BankOffer] = Field(..., description="Current offers")
    user_offer: BankOffer = Field(..., description="The user's offer")
    customer: Optional[Customer] = Field(None, description="Customer, enables ceilings and outlier detection")


class SubmitOfferRequest(BaseModel):
    """Request to submit the user's manual offer."""

    customer: Customer = Field(..., description="Customer the offer is for")
    amount: float = Field(..., gt=0, description="Offer amount")
    competing_offers: Optional[List[BankOffer]] = Field(None, description="Competing offers, sampled when omitted")
    prioritize_lowest_dti: bool = Field(False, description="Rank sampled offers on DTI-adjusted value")


class CancelOfferRequest(BaseModel):
    """Request to cancel an offer."""

    reason: str = Field(..., min_length=1, description="Cancellation reason")


@app.get("/", response_model=Dict[str, Any])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Rizq Competitive Offers",
        "version": "0.1.0",
        "status": "operational",
        "endpoints": {
            "welcome_bids": "/welcome-bids",
            "evaluate_bids": "/evaluate-bids",
            "banks": "/banks",
            "card_tiers": "/card-tiers",
            "validate": "/credit-limit/validate",
            "tie_break": "/offers/tie-break",
            "counter_offers": "/offers/counter-offers",
            "submit": "/offers/submit",
            "history": "/offers/history",
            "health": "/health"
        }
    }


@app.get("/health", response_model=Dict[str, str])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "rizq-offers"}


@app.post("/welcome-bids", response_model=WelcomeBidsResponse)
async def fetch_welcome_bids(customer: Customer):
    """Generate the current welcome-balance bids for a customer."""
    try:
        bids = generate_bids(customer)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error generating welcome bids: {str(e)}"
        )

    amounts = [bid.bid_amount for bid in bids]
    return WelcomeBidsResponse(
        success=True,
        data=bids,
        metadata=BidsMetadata(
            total_banks=len(bids),
            eligible_banks=sum(1 for bid in bids if bid.quota_remaining > 0),
            average_bid=sum(amounts) / len(amounts) if amounts else 0.0,
            max_bid=max(amounts, default=0.0),
            min_bid=min(amounts, default=0.0),
        ),
    )


@app.post("/evaluate-bids", response_model=BidEvaluationResponse)
async def evaluate_bids_for_customer(customer: Customer):
    """
    Evaluate welcome-balance bids for a customer.

    Falls back to flat baseline offers when dynamic bidding fails, so this
    endpoint always returns a decision.
    """
    start_time = time.perf_counter()
    response = evaluate_bids_safely(customer)
    evaluation_time = (time.perf_counter() - start_time) * 1000

    try:
        await emit_bid_decision_event(customer, response)
    except Exception as e:
        # Don't fail the request if event emission fails
        logger.warning(f"Failed to emit bid decision event: {e}")

    return BidEvaluationResponse(
        success=not response.degraded,
        winning_bid=response.winning_bid,
        all_bids=response.eligible_bids,
        decision_reason=response.decision_reason,
        audit_trail=response.audit_trail,
        metadata=EvaluationMetadata(
            evaluation_time_ms=evaluation_time,
            total_eligible=len(response.eligible_bids),
            customer_segment=determine_customer_segment(customer),
        ),
    )


@app.get("/banks", response_model=List[Dict[str, Any]])
async def list_banks():
    """List bank partners."""
    return [bank.model_dump() for bank in BANK_PARTNERS]


@app.get("/banks/{bank_id}", response_model=Dict[str, Any])
async def get_bank_details(bank_id: str):
    """
    Get details of a bank partner.

    Args:
        bank_id: Bank identifier

    Returns:
        Bank details with contact and compliance information
    """
    bank = get_bank_by_id(bank_id)
    if not bank:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Bank {bank_id} not found"
        )

    return {
        **bank.model_dump(),
        "contact_info": {
            "phone": "+966-11-xxx-xxxx",
            "website": f"www.{bank.id}.com.sa",
            "support_email": f"support@{bank.id}.com.sa",
        },
        "compliance_info": {
            "license_number": f"CL-{bank.id.upper()}-2024",
            "regulatory_body": "Saudi Central Bank (SAMA)",
            "last_audit": "2024-Q1",
        },
    }


@app.get("/card-tiers", response_model=Dict[str, Any])
async def get_card_tiers():
    """Get card tier configuration."""
    return CreditLimitControls.get_card_tiers()


@app.post("/credit-limit/validate", response_model=ValidationResult)
async def validate_credit_limit(request: ValidateAmountRequest):
    """Classify an offer amount against the card tier's band."""
    return CreditLimitControls.validate_amount(request.amount, request.monthly_income, request.card_product)


@app.post("/offers/tie-break", response_model=TieBreakingResult)
async def tie_break(request: TieBreakRequest):
    """Resolve the winner among offers."""
    if not request.offers:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one offer is required"
        )
    return resolve_tie_breaking(request.offers, request.customer_id, request.cobrand_partner)


@app.post("/offers/counter-offers", response_model=List[BankOffer])
async def counter_offers(request: CounterOffersRequest):
    """Simulate rival banks responding to the user's offer."""
    return simulate_improved_offers(request.offers, request.user_offer, customer=request.customer)


@app.post("/offers/submit", response_model=OfferRoundResult)
async def submit_offer(request: SubmitOfferRequest, history: OfferHistoryStore = Depends(get_history_store)):
    """
    Submit the user's manual offer.

    This endpoint:
    1. Merges the offer into the competing set (sampled when not supplied)
    2. Lets rival banks respond when the offer ties or beats the best one
    3. Resolves the winner with the tie-breaking cascade
    4. Records the outcome in the offer history
    """
    competing_offers = request.competing_offers
    if competing_offers is None:
        competing_offers = generate_bank_offers(request.customer, request.prioritize_lowest_dti)

    try:
        return await submit_manual_offer(
            request.customer,
            competing_offers,
            request.amount,
            history=history,
            response_delay=get_settings().counter_offer_delay_seconds,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@app.get("/offers/history", response_model=List[CreditOfferHistory])
async def list_offer_history(
    offer_status: Optional[OfferStatus] = Query(None, alias="status"),
    history: OfferHistoryStore = Depends(get_history_store),
):
    """List offer history, optionally filtered by status."""
    return history.list_offers(offer_status)


@app.get("/offers/history/{offer_id}", response_model=CreditOfferHistory)
async def get_offer(offer_id: str, history: OfferHistoryStore = Depends(get_history_store)):
    """Get one offer history record."""
    try:
        return history.get_offer(offer_id)
    except OfferNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Offer {offer_id} not found"
        )


async def _transition(history: OfferHistoryStore, offer_id: str, action, *args) -> CreditOfferHistory:
    try:
        record = action(offer_id, *args)
    except OfferNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Offer {offer_id} not found"
        )
    except InvalidStatusTransitionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    try:
        await emit_offer_status_event(record)
    except Exception as e:
        logger.warning(f"Failed to emit offer status event: {e}")
    return record


@app.post("/offers/history/{offer_id}/lock", response_model=CreditOfferHistory)
async def lock_offer(offer_id: str, history: OfferHistoryStore = Depends(get_history_store)):
    """Lock a pending offer as won and count the win for portfolio balance."""
    record = await _transition(history, offer_id, history.lock_offer)
    set_internal_data_store(get_internal_data_store().record_win(USER_BANK_NAME))
    return record


@app.post("/offers/history/{offer_id}/issue", response_model=CreditOfferHistory)
async def issue_offer(offer_id: str, history: OfferHistoryStore = Depends(get_history_store)):
    """Issue a won offer."""
    return await _transition(history, offer_id, history.issue_offer)


@app.post("/offers/history/{offer_id}/cancel", response_model=CreditOfferHistory)
async def cancel_offer(
    offer_id: str, request: CancelOfferRequest, history: OfferHistoryStore = Depends(get_history_store)
):
    """Cancel an offer with a reason."""
    return await _transition(history, offer_id, history.cancel_offer, request.reason)


@app.delete("/offers/history/{offer_id}", response_model=CreditOfferHistory)
async def withdraw_offer(offer_id: str, history: OfferHistoryStore = Depends(get_history_store)):
    """Withdraw an offer, removing it from the history."""
    try:
        return history.withdraw_offer(offer_id)
    except OfferNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Offer {offer_id} not found"
        )


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=get_settings().log_level)
    uvicorn.run(
        "rizq.api:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
