from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from loader import BudgetNotFound
from models import Budget, Category, CategoryAllocation
from money import quantize_amount
from periods import MonthRef


class CategoryNotFound(ValueError):
    pass


def get_current_user_id() -> int:
    return 1


class BudgetService:
    """Writes the budget and allocation rows the budgeting engine later reads."""

    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise BudgetNotFound("Budget not found")
        return budget

    def find(self, year: int, month: int) -> Optional[Budget]:
        return self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.year == year,
                Budget.month == month,
            )
        )

    def create_budget(self, year: int, month: int) -> tuple[Budget, bool]:
        """
        Return the budget for (year, month), creating it when missing.

        A new budget is seeded with a zero allocation for every visible category
        so the month shows up complete in the summary.
        """
        if not 1 <= month <= 12:
            raise ValueError("Month must be between 1 and 12")
        existing = self.find(year, month)
        if existing:
            return existing, False

        budget = Budget(user_id=self.user_id, year=year, month=month)
        self.session.add(budget)
        self.session.flush()

        category_ids = self.session.scalars(
            select(Category.id).where(
                Category.user_id == self.user_id,
                Category.is_hidden.is_(False),
            )
        ).all()
        self.session.add_all(
            CategoryAllocation(
                budget_id=budget.id,
                category_id=category_id,
                budgeted_amount=Decimal("0"),
            )
            for category_id in category_ids
        )
        self.session.commit()
        self.session.refresh(budget)
        return budget, True

    def upsert_allocation(
        self, budget_id: int, category_id: int, amount: Decimal
    ) -> CategoryAllocation:
        self.get(budget_id)
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise CategoryNotFound("Category not found")

        amount = quantize_amount(amount)
        existing = self.session.scalar(
            select(CategoryAllocation).where(
                CategoryAllocation.budget_id == budget_id,
                CategoryAllocation.category_id == category_id,
            )
        )
        if existing:
            existing.budgeted_amount = amount
            self.session.commit()
            self.session.refresh(existing)
            return existing

        alloc = CategoryAllocation(
            budget_id=budget_id, category_id=category_id, budgeted_amount=amount
        )
        self.session.add(alloc)
        self.session.commit()
        self.session.refresh(alloc)
        return alloc

    def copy_previous_month(self, to_budget_id: int) -> tuple[Budget, int]:
        """Copy the preceding month's allocations into ``to_budget_id``."""
        target = self.get(to_budget_id)
        prev = MonthRef(target.year, target.month).previous()
        source = self.find(prev.year, prev.month)
        if not source:
            raise BudgetNotFound("No budget found for the previous month")

        allocations = self.session.scalars(
            select(CategoryAllocation).where(CategoryAllocation.budget_id == source.id)
        ).all()
        if not allocations:
            return target, 0

        existing = {
            alloc.category_id: alloc
            for alloc in self.session.scalars(
                select(CategoryAllocation).where(
                    CategoryAllocation.budget_id == target.id
                )
            )
        }
        for alloc in allocations:
            current = existing.get(alloc.category_id)
            if current:
                current.budgeted_amount = alloc.budgeted_amount
                continue
            self.session.add(
                CategoryAllocation(
                    budget_id=target.id,
                    category_id=alloc.category_id,
                    budgeted_amount=alloc.budgeted_amount,
                )
            )
        self.session.commit()
        return target, len(allocations)
