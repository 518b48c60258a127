"""
Data model and deterministic credit-limit controls for Rizq competitive offers.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


Location = Literal["Riyadh", "Jeddah", "Dammam", "Mecca", "Medina", "Tabuk"]

BiddingStrategy = Literal["conservative", "balanced", "aggressive"]

RiskLevel = Literal["conservative", "standard", "aggressive", "outlier"]

OfferStatus = Literal["won", "lost", "pending", "issued", "cancelled"]


class Customer(BaseModel):
    """Card applicant with the financial profile used for eligibility and bid sizing."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique customer identifier")
    name: Optional[str] = Field(None, description="Display name")
    age: int = Field(..., ge=18, le=100, description="Age in years")
    income: float = Field(..., gt=0, description="Monthly income")
    credit_score: int = Field(..., ge=300, le=900, description="Credit bureau score")
    debt_burden_ratio: float = Field(..., ge=0.0, le=1.0, description="Debt burden ratio (0-1)")
    location: Location = Field(..., description="City of residence")
    nationality: str = Field(..., description="Nationality")
    applied_card: str = Field(..., description="Applied card product")
    cobrand_partner: Optional[str] = Field(None, description="Cobrand partner identifier")
    application_time: Optional[datetime] = Field(None, description="When the application was submitted")


class CardTierConfig(BaseModel):
    """Static configuration for one card product."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Card product name")
    network: Literal["Visa", "Mastercard"] = Field(..., description="Card network")
    min_monthly_income: float = Field(..., gt=0, description="Minimum qualifying monthly income")
    multiplier_range: Tuple[float, float] = Field(..., description="[min, max] multiple of monthly salary")
    description: str = Field(..., description="Human-readable description")


class BankPartner(BaseModel):
    """Simulated bank partner taking part in welcome-balance bidding."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Bank identifier")
    name: str = Field(..., description="Display name")
    logo: str = Field(..., description="Short logo text")
    daily_quota: int = Field(..., gt=0, description="Daily bid quota")
    min_bid: float = Field(..., ge=0, description="Minimum bid amount")
    max_bid: float = Field(..., ge=0, description="Maximum bid amount")
    preferred_segments: Tuple[str, ...] = Field(default_factory=tuple, description="Preferred customer segments")
    bidding_strategy: BiddingStrategy = Field(..., description="Bidding strategy")


class EligibilityProfile(BaseModel):
    """Declarative constraints a customer must satisfy for a bid."""

    income_min: Optional[float] = Field(None, description="Minimum monthly income")
    income_max: Optional[float] = Field(None, description="Maximum monthly income")
    age_min: Optional[int] = Field(None, description="Minimum age")
    age_max: Optional[int] = Field(None, description="Maximum age")
    credit_score_min: Optional[int] = Field(None, description="Minimum credit score")
    credit_score_max: Optional[int] = Field(None, description="Maximum credit score")
    regions: Optional[List[str]] = Field(None, description="Allowed regions")
    nationalities: Optional[List[str]] = Field(None, description="Allowed nationalities")
    cobrand_partners: Optional[List[str]] = Field(None, description="Allowed cobrand partners")
    debt_burden_ratio_max: Optional[float] = Field(None, description="Maximum debt burden ratio")


class WelcomeBid(BaseModel):
    """A bank's welcome-balance bid for one customer."""

    bank_id: str = Field(..., description="Bank identifier")
    bank_name: str = Field(..., description="Bank display name")
    bank_logo: Optional[str] = Field(None, description="Bank logo text")
    bid_amount: float = Field(..., ge=0, description="Bid amount")
    quota_remaining: int = Field(..., description="Quota remaining when the bid was created")
    eligibility: EligibilityProfile = Field(default_factory=EligibilityProfile, description="Eligibility profile for audit")
    campaign_id: Optional[str] = Field(None, description="Campaign identifier")
    expires_at: Optional[datetime] = Field(None, description="Bid expiry")
    created_at: datetime = Field(..., description="Bid creation time")
    is_winner: bool = Field(False, description="Whether this bid currently wins")
    is_tied: bool = Field(False, description="Whether this bid shares the top amount")


class BankOffer(BaseModel):
    """Credit-limit or welcome-balance offer from one actor in a round."""

    bank_name: str = Field(..., description="Offering bank (or the user's own bank)")
    amount: float = Field(..., ge=0, description="Offer amount")
    is_winner: bool = Field(False, description="Whether this offer currently wins")
    is_tied: bool = Field(False, description="Whether this offer shares the top amount")
    timestamp: Optional[datetime] = Field(None, description="When the offer was committed")
    is_user_offer: bool = Field(False, description="Whether this is the user's manual offer")


class BidResponse(BaseModel):
    """Outcome of a bid evaluation."""

    winning_bid: Optional[WelcomeBid] = Field(None, description="Winning bid, if any")
    eligible_bids: List[WelcomeBid] = Field(default_factory=list, description="Ranked eligible bids")
    decision_reason: str = Field(..., description="One-line decision reason")
    audit_trail: List[str] = Field(default_factory=list, description="Timestamped evaluation steps")
    degraded: bool = Field(False, description="Produced by the fallback evaluator")


class TieBreakingResult(BaseModel):
    """Outcome of tie-break resolution."""

    updated_offers: List[BankOffer] = Field(default_factory=list, description="Offers with resolved flags")
    audit_trail: List[str] = Field(default_factory=list, description="Resolution steps")
    winner: Optional[str] = Field(None, description="Winning bank name")
    resolved_by: Optional[str] = Field(None, description="Stage that produced the winner")


class ValidationResult(BaseModel):
    """Credit-limit validation result."""

    is_valid: bool = Field(..., description="Whether the amount is within the tier maximum")
    risk_level: RiskLevel = Field(..., description="Risk classification")
    message: str = Field(..., description="Human-readable message")
    suggested_amount: float = Field(..., description="Suggested amount for the tier")
    multiplier: float = Field(..., description="Amount as a multiple of monthly income")


class CustomerSnapshot(BaseModel):
    """Customer financial attributes captured at decision time."""

    customer_id: str
    age: int
    income: float
    credit_score: int
    debt_burden_ratio: float
    nationality: str
    location: Location
    applied_card: str

    @classmethod
    def from_customer(cls, customer: Customer) -> "CustomerSnapshot":
        return cls(
            customer_id=customer.id,
            age=customer.age,
            income=customer.income,
            credit_score=customer.credit_score,
            debt_burden_ratio=customer.debt_burden_ratio,
            nationality=customer.nationality,
            location=customer.location,
            applied_card=customer.applied_card,
        )


class CreditOfferHistory(BaseModel):
    """A finalized or ongoing offer extended to a customer."""

    id: str = Field(..., description="Offer record identifier")
    customer_name: str = Field(..., description="Customer display name")
    customer_location: Location = Field(..., description="Customer location")
    timestamp: datetime = Field(..., description="Offer time")
    amount: float = Field(..., ge=0, description="Offered amount")
    status: OfferStatus = Field(..., description="Offer status")
    competing_bank: Optional[str] = Field(None, description="Bank holding the best competing offer")
    card_product: Optional[str] = Field(None, description="Card product")
    apr: Optional[float] = Field(None, description="APR for the card product")
    cobrand_partner: Optional[str] = Field(None, description="Cobrand partner identifier")
    competing_offers: Optional[List[BankOffer]] = Field(None, description="Competing offers at decision time")
    customer_snapshot: Optional[CustomerSnapshot] = Field(None, description="Customer attributes at decision time")
    cancel_reason: Optional[str] = Field(None, description="Reason for cancellation")


class CreditLimitControls:
    """Deterministic credit-limit controls keyed by card tier."""

    # Fallback multiple of salary for unknown card products
    UNKNOWN_CARD_MULTIPLIER = 3

    @classmethod
    def _tiers(cls):
        # Imported lazily, config depends on the models above
        from .config import CARD_TIERS

        return CARD_TIERS

    @classmethod
    def validate_amount(
        cls, amount: float, monthly_income: float, card_product: str
    ) -> ValidationResult:
        """
        Classify an offer amount against the card tier's multiplier band.

        Args:
            amount: Proposed credit limit or welcome balance
            monthly_income: Customer monthly income
            card_product: Card product name

        Returns:
            Validation result with risk level and suggested amount
        """
        if monthly_income <= 0:
            raise ValueError("Monthly income must be positive")

        tier = cls._tiers().get(card_product)
        if tier is None:
            return ValidationResult(
                is_valid=False,
                risk_level="outlier",
                message="Unknown card type",
                suggested_amount=monthly_income * cls.UNKNOWN_CARD_MULTIPLIER,
                multiplier=0,
            )

        multiplier = amount / monthly_income
        min_multiplier, max_multiplier = tier.multiplier_range
        mid_multiplier = (min_multiplier + max_multiplier) / 2
        is_valid = True

        if multiplier > max_multiplier:
            risk_level = "outlier"
            message = f"Exceeds {card_product} maximum ({max_multiplier}× salary). Requires approval."
            is_valid = False
        elif multiplier > mid_multiplier + 0.5:
            risk_level = "aggressive"
            message = f"Above typical range for {card_product}. Consider risk factors."
        elif multiplier >= min_multiplier:
            risk_level = "standard"
            message = f"Within normal range for {card_product}."
        else:
            risk_level = "conservative"
            message = f"Conservative limit for {card_product}."

        return ValidationResult(
            is_valid=is_valid,
            risk_level=risk_level,
            message=message,
            suggested_amount=round(monthly_income * mid_multiplier),
            multiplier=multiplier,
        )

    @classmethod
    def get_auto_suggested_limit(cls, monthly_income: float, card_product: str) -> float:
        """Suggested limit at the middle of the tier band."""
        tier = cls._tiers().get(card_product)
        if tier is None:
            return monthly_income * cls.UNKNOWN_CARD_MULTIPLIER

        min_multiplier, max_multiplier = tier.multiplier_range
        return round(monthly_income * (min_multiplier + max_multiplier) / 2)

    @classmethod
    def get_tier_ceiling(cls, monthly_income: float, card_product: str) -> Optional[float]:
        """Regulatory ceiling (income × tier max multiplier), None for unknown products."""
        tier = cls._tiers().get(card_product)
        if tier is None:
            return None
        return monthly_income * tier.multiplier_range[1]

    @classmethod
    def get_card_tiers(cls) -> Dict[str, Any]:
        """Get card tier configuration."""
        return {
            name: {
                "network": tier.network,
                "min_monthly_income": tier.min_monthly_income,
                "multiplier_range": list(tier.multiplier_range),
                "description": tier.description,
            }
            for name, tier in cls._tiers().items()
        }
