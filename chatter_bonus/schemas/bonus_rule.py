from datetime import datetime
from typing import Any, Dict, Optional

from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from chatter_bonus.config import DEFAULT_METRIC


# The manager UI has sent several spellings over time; they are folded into
# one canonical shape here and nowhere else.

class TierIn(BaseModel):
    min_amount_cents: int = Field(validation_alias=AliasChoices("min_amount_cents", "minAmountCents"))
    bonus_cents: int = Field(validation_alias=AliasChoices("bonus_cents", "bonusCents", "bonusAmountCents"))


class RuleConfigIn(BaseModel):
    metric: str = DEFAULT_METRIC
    tiers: list[TierIn] = Field(default_factory=list)

    include_refunds: bool = Field(
        default=False, validation_alias=AliasChoices("include_refunds", "includeRefunds")
    )
    shift_based: Optional[bool] = Field(
        default=False, validation_alias=AliasChoices("shift_based", "shiftBased")
    )
    award_once_per_window: bool = Field(
        default=True, validation_alias=AliasChoices("award_once_per_window", "awardOncePerWindow")
    )


class BonusRuleCreate(BaseModel):
    company_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("company_id", "companyId"))

    name: str

    scope: str = "worker"
    window_type: str = Field(default="calendar_day", validation_alias=AliasChoices("window_type", "windowType"))
    rule_type: str = Field(default="threshold_payout", validation_alias=AliasChoices("rule_type", "ruleType"))

    priority: int = 0
    active: bool = Field(default=True, validation_alias=AliasChoices("active", "isActive", "enabled"))

    currency: Optional[str] = None
    timezone: Optional[str] = None

    config: RuleConfigIn = Field(validation_alias=AliasChoices("config", "ruleConfig"))


class BonusRuleUpdate(BaseModel):
    company_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("company_id", "companyId"))

    name: Optional[str] = None

    window_type: Optional[str] = Field(default=None, validation_alias=AliasChoices("window_type", "windowType"))

    priority: Optional[int] = None
    active: Optional[bool] = Field(default=None, validation_alias=AliasChoices("active", "isActive", "enabled"))

    currency: Optional[str] = None
    timezone: Optional[str] = None

    config: Optional[RuleConfigIn] = Field(default=None, validation_alias=AliasChoices("config", "ruleConfig"))


class BonusRuleActiveUpdate(BaseModel):
    active: bool = Field(validation_alias=AliasChoices("active", "isActive", "enabled"))


class BonusRuleOut(BaseModel):
    id: UUID
    company_id: str

    name: str
    scope: str
    window_type: str
    rule_type: str

    priority: int
    active: bool

    currency: str
    timezone: str

    config: Dict[str, Any]

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
