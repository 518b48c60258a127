"""
Static lookup tables and runtime settings for Rizq.

Tables are built once at import time and exposed as read-only mappings and
tuples. Runtime knobs come from the environment.
"""

import logging
import os
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .controls import BankPartner, CardTierConfig

logger = logging.getLogger(__name__)


LOCATIONS: Tuple[str, ...] = ("Riyadh", "Jeddah", "Dammam", "Mecca", "Medina", "Tabuk")

PREMIUM_LOCATIONS: Tuple[str, ...] = ("Riyadh", "Jeddah")

CARD_TIERS: Mapping[str, CardTierConfig] = MappingProxyType({
    tier.name: tier
    for tier in (
        CardTierConfig(
            name="Visa Platinum",
            network="Visa",
            min_monthly_income=7000,
            multiplier_range=(2, 4),
            description="Entry-level premium card",
        ),
        CardTierConfig(
            name="Visa Signature",
            network="Visa",
            min_monthly_income=15000,
            multiplier_range=(3, 5),
            description="Mid-tier premium card",
        ),
        CardTierConfig(
            name="Visa Infinite",
            network="Visa",
            min_monthly_income=30000,
            multiplier_range=(5, 6.5),
            description="High-tier card for HNW individuals",
        ),
        CardTierConfig(
            name="Mastercard Standard",
            network="Mastercard",
            min_monthly_income=5000,
            multiplier_range=(1, 3),
            description="Entry-level card",
        ),
        CardTierConfig(
            name="Mastercard World",
            network="Mastercard",
            min_monthly_income=12000,
            multiplier_range=(3, 4.5),
            description="Mid-tier card",
        ),
        CardTierConfig(
            name="Mastercard World Elite",
            network="Mastercard",
            min_monthly_income=25000,
            multiplier_range=(4, 6),
            description="High-tier card for executives",
        ),
    )
})

# APR by card product, applied to offer history records
CARD_APR_RATES: Mapping[str, float] = MappingProxyType({
    "Visa Platinum": 30,
    "Visa Signature": 28,
    "Visa Infinite": 26,
    "Mastercard Standard": 32,
    "Mastercard World": 32,
    "Mastercard World Elite": 24,
})

BANK_PARTNERS: Tuple[BankPartner, ...] = (
    BankPartner(
        id="snb",
        name="Saudi National Bank",
        logo="SNB",
        daily_quota=100,
        min_bid=25,
        max_bid=400,
        preferred_segments=("high_income", "riyadh", "jeddah"),
        bidding_strategy="aggressive",
    ),
    BankPartner(
        id="anb",
        name="Arab National Bank",
        logo="ANB",
        daily_quota=80,
        min_bid=30,
        max_bid=350,
        preferred_segments=("mid_income", "dammam", "mecca"),
        bidding_strategy="balanced",
    ),
    BankPartner(
        id="rajhi",
        name="Al Rajhi Bank",
        logo="RAJHI",
        daily_quota=120,
        min_bid=25,
        max_bid=500,
        preferred_segments=("conservative", "islamic", "family"),
        bidding_strategy="conservative",
    ),
    BankPartner(
        id="alinma",
        name="Alinma Bank",
        logo="ALINMA",
        daily_quota=90,
        min_bid=35,
        max_bid=450,
        preferred_segments=("young_professionals", "tech", "modern"),
        bidding_strategy="aggressive",
    ),
    BankPartner(
        id="samba",
        name="Samba Financial Group",
        logo="SAMBA",
        daily_quota=75,
        min_bid=40,
        max_bid=600,
        preferred_segments=("premium", "high_net_worth", "business"),
        bidding_strategy="aggressive",
    ),
    BankPartner(
        id="riyadbank",
        name="Riyad Bank",
        logo="RIYAD",
        daily_quota=95,
        min_bid=25,
        max_bid=375,
        preferred_segments=("traditional", "medina", "tabuk"),
        bidding_strategy="balanced",
    ),
)

STRATEGY_MULTIPLIERS: Mapping[str, float] = MappingProxyType({
    "aggressive": 1.3,
    "balanced": 1.0,
    "conservative": 0.8,
})

COBRAND_PARTNERS: Mapping[str, str] = MappingProxyType({
    "jarir": "Jarir Bookstore",
    "amazon": "Amazon Saudi Arabia",
    "extra": "eXtra Electronics",
    "carrefour": "Carrefour",
    "panda": "Panda Retail",
    "danube-hypermarket": "Danube Hypermarket",
    "ikea": "IKEA Saudi Arabia",
    "danube-supermarket": "Danube Supermarket",
})

# Partners whose cardholders earn a bid bonus
PREMIUM_COBRAND_PARTNERS: Tuple[str, ...] = ("jarir", "amazon", "extra")

# Retailer preference used when breaking ties
COBRAND_PREFERRED_BANKS: Mapping[str, str] = MappingProxyType({
    "amazon": "ANB",
    "jarir": "SNB",
})

USER_BANK_NAME = "Your Offer (Riyad Bank)"
PREVIOUS_USER_BANK_NAME = "Your Previous Offer (Riyad Bank)"


class InternalBankData(BaseModel):
    """Internal reputation data. Never serialized back to banks."""

    model_config = ConfigDict(frozen=True)

    trust_score: int = Field(..., ge=0, le=100, description="Trust score from past performance")
    today_wins: int = Field(..., ge=0, description="Wins recorded today")


INTERNAL_BANK_DATA: Mapping[str, InternalBankData] = MappingProxyType({
    "SNB": InternalBankData(trust_score=85, today_wins=2),
    "ANB": InternalBankData(trust_score=78, today_wins=1),
    "Rajhi Bank": InternalBankData(trust_score=92, today_wins=0),
    "Al Ahli Bank": InternalBankData(trust_score=80, today_wins=3),
    USER_BANK_NAME: InternalBankData(trust_score=88, today_wins=1),
    PREVIOUS_USER_BANK_NAME: InternalBankData(trust_score=88, today_wins=1),
})

# Partner display names mapped to their internal data key
BANK_NAME_ALIASES: Mapping[str, str] = MappingProxyType({
    "Saudi National Bank": "SNB",
    "Arab National Bank": "ANB",
    "Al Rajhi Bank": "Rajhi Bank",
    "Riyad Bank": USER_BANK_NAME,
})

DEFAULT_INTERNAL_BANK_DATA = InternalBankData(trust_score=0, today_wins=0)


class RizqSettings(BaseModel):
    """Runtime settings read from the environment."""

    counter_offer_delay_seconds: float = Field(1.0, ge=0.0, description="Cooperative delay before banks respond")
    counter_offer_probability: float = Field(0.70, ge=0.0, le=1.0, description="Bank response probability")
    outlier_response_probability: float = Field(0.05, ge=0.0, le=1.0, description="Response probability for outlier offers")
    random_seed: Optional[int] = Field(None, description="Seed for the process-wide random source")
    currency: str = Field("SAR", description="Display currency")
    log_level: str = Field("INFO", description="Logging level")

    @classmethod
    def from_env(cls) -> "RizqSettings":
        seed = os.getenv("RIZQ_RANDOM_SEED")
        return cls(
            counter_offer_delay_seconds=float(os.getenv("RIZQ_COUNTER_OFFER_DELAY_SECONDS", "1.0")),
            counter_offer_probability=float(os.getenv("RIZQ_COUNTER_OFFER_PROBABILITY", "0.70")),
            outlier_response_probability=float(os.getenv("RIZQ_OUTLIER_RESPONSE_PROBABILITY", "0.05")),
            random_seed=int(seed) if seed else None,
            currency=os.getenv("RIZQ_CURRENCY", "SAR"),
            log_level=os.getenv("RIZQ_LOG_LEVEL", "INFO").upper(),
        )


# Global settings and random source
_settings: Optional[RizqSettings] = None
_rng: Optional[np.random.Generator] = None


def get_settings() -> RizqSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = RizqSettings.from_env()
    return _settings


def get_rng() -> np.random.Generator:
    """Get the process-wide random generator."""
    global _rng
    if _rng is None:
        seed = get_settings().random_seed
        _rng = np.random.default_rng(seed)
        logger.debug(f"Initialized process random source (seed={seed})")
    return _rng


def reset_runtime_state() -> None:
    """Drop cached settings and random source so they are rebuilt on next use."""
    global _settings, _rng
    _settings = None
    _rng = None
