"""Pydantic schemas for API request/response validation"""

from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional


class TierSchema(BaseModel):
    """Single pricing tier"""

    tier_id: str
    quantity: Decimal
    unit_price: Decimal
    discount_percent: Decimal
    savings: Decimal
    final_price: Decimal
    is_featured: bool = False
    base_rate: Decimal = Decimal("1")


class TierCatalogResponse(BaseModel):
    """Response for GET /v1/pricing/tiers"""

    tiers: List[TierSchema]


class QuoteRequest(BaseModel):
    """Request body for POST /v1/pricing/quote"""

    quantity: Optional[Decimal] = Field(None, ge=0, description="BLKD quantity to price")
    tier_id: Optional[str] = Field(None, description="Preset tier to price instead of a quantity")


class SettlementRequest(BaseModel):
    """Request body for POST /v1/settlement/plan"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    total_due: Decimal = Field(..., ge=0, description="Charge in the target currency")
    currency: str = Field("USD", min_length=1)
    use_rewards: bool = False
    instrument_id: Optional[str] = None


class InstrumentSchema(BaseModel):
    """Payment instrument with its eligibility for the residual"""

    id: str
    kind: str
    name: str
    currency: str
    spendable_balance: Decimal
    is_default: bool
    eligible: bool
    ineligibility_reason: Optional[str] = None


class SettlementResponse(BaseModel):
    """Response for POST /v1/settlement/plan"""

    total_due: Decimal
    credit_applied: Decimal
    remaining_due: Decimal
    selected_instrument_id: Optional[str] = None
    is_satisfied: bool
    currency: str
    rewards_balance: Decimal
    instruments: List[InstrumentSchema]
