from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from models import GoalType
from money import parse_amount


class BudgetIn(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)


class AllocationIn(BaseModel):
    budget_id: int
    category_id: int
    amount: Decimal

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value):
        if isinstance(value, (str, float)):
            return parse_amount(str(value))
        return value


class CopyBudgetIn(BaseModel):
    to_budget_id: int


class Goal(BaseModel):
    id: int
    goal_type: GoalType
    target_amount: Optional[Decimal] = None
    target_date: Optional[date] = None
    monthly_amount: Optional[Decimal] = None


class CategoryRow(BaseModel):
    id: int
    name: str
    group_name: str
    is_system: bool
    budgeted_amount: Decimal
    activity_amount: Decimal
    available_amount: Decimal
    goal: Optional[Goal] = None


class BudgetSummary(BaseModel):
    id: int
    month: int
    year: int
    to_be_budgeted: Decimal
    categories: list[CategoryRow] = Field(default_factory=list)


class CategoryBalance(BaseModel):
    category_id: int
    year: int
    month: int
    activity_amount: Decimal
    available_amount: Decimal
