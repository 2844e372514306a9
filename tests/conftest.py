from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.orm import Session

from database import Base, make_engine
from models import (
    Account,
    AccountType,
    Budget,
    Category,
    CategoryAllocation,
    CategoryGoal,
    CategoryGroup,
    GoalType,
    Transaction,
    TransactionType,
)


class LedgerBuilder:
    def __init__(self, session: Session, user_id: int = 1) -> None:
        self.session = session
        self.user_id = user_id
        self._types: dict[str, AccountType] = {}

    def _add(self, obj):
        self.session.add(obj)
        self.session.flush()
        return obj

    def commit(self) -> None:
        self.session.commit()

    def account_type(
        self, name: str, *, is_liability: bool = False, is_budget_account: bool = True
    ) -> AccountType:
        if name not in self._types:
            self._types[name] = self._add(
                AccountType(
                    name=name,
                    is_liability=is_liability,
                    is_budget_account=is_budget_account,
                )
            )
        return self._types[name]

    def checking(self, name: str = "Checking", **kwargs) -> Account:
        return self.account(name, self.account_type("Checking"), **kwargs)

    def credit_card(self, name: str, payment_category: Category) -> Account:
        card_type = self.account_type("Credit Card", is_liability=True)
        return self.account(name, card_type, payment_category=payment_category)

    def account(
        self,
        name: str,
        account_type: AccountType,
        *,
        on_budget: Optional[bool] = None,
        payment_category: Optional[Category] = None,
    ) -> Account:
        return self._add(
            Account(
                user_id=self.user_id,
                name=name,
                type_id=account_type.id,
                on_budget=on_budget,
                payment_category_id=payment_category.id if payment_category else None,
            )
        )

    def group(self, name: str, sort_order: int = 0) -> CategoryGroup:
        return self._add(
            CategoryGroup(user_id=self.user_id, name=name, sort_order=sort_order)
        )

    def category(
        self,
        group: CategoryGroup,
        name: str,
        *,
        is_hidden: bool = False,
        is_system: bool = False,
        sort_order: int = 0,
    ) -> Category:
        return self._add(
            Category(
                user_id=self.user_id,
                group_id=group.id,
                name=name,
                is_hidden=is_hidden,
                is_system=is_system,
                sort_order=sort_order,
            )
        )

    def goal(self, category: Category, goal_type: GoalType, **kwargs) -> CategoryGoal:
        return self._add(
            CategoryGoal(category_id=category.id, goal_type=goal_type, **kwargs)
        )

    def budget(self, year: int, month: int) -> Budget:
        return self._add(Budget(user_id=self.user_id, year=year, month=month))

    def allocate(self, budget: Budget, category: Category, amount: str) -> CategoryAllocation:
        return self._add(
            CategoryAllocation(
                budget_id=budget.id,
                category_id=category.id,
                budgeted_amount=Decimal(amount),
            )
        )

    def txn(
        self,
        account: Account,
        amount: str,
        on: date,
        *,
        type: TransactionType = TransactionType.expense,
        category: Optional[Category] = None,
        parent: Optional[Transaction] = None,
        is_split: bool = False,
    ) -> Transaction:
        return self._add(
            Transaction(
                account_id=account.id,
                category_id=category.id if category else None,
                parent_transaction_id=parent.id if parent else None,
                amount=Decimal(amount),
                date=on,
                type=type,
                is_split=is_split,
            )
        )


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    with Session(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
def ledger(session) -> LedgerBuilder:
    return LedgerBuilder(session)
