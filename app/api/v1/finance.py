import logging
from datetime import datetime
from typing import Any, Dict
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.models.finance import Expense, MonthlyBudget, Package
from app.schemas.auth import CurrentUser
from app.schemas.finance import (
    BudgetResponse,
    BudgetUpsert,
    ExpenseCreate,
    ExpenseResponse,
    FeesUpdate,
)
from app.services import credits

logger = logging.getLogger(__name__)

router = APIRouter()

# Package name -> fee key; the class count comes from the credit table
FEE_PACKAGES = {"Monthly": "monthly", "Quarterly": "quarterly"}


def _budget_out(budget: MonthlyBudget) -> BudgetResponse:
    return BudgetResponse(
        month=budget.month,
        revenueTarget=float(budget.revenue_target or 0),
        expenseLimits=budget.expense_limits or {},
    )


# --- Expenses ---


@router.get("/expenses")
def list_expenses(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    expenses = db.query(Expense).order_by(Expense.date.desc()).all()
    return {"expenses": [ExpenseResponse.model_validate(e) for e in expenses]}


@router.post("/expenses", status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_in: ExpenseCreate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    expense = Expense(**expense_in.model_dump())
    db.add(expense)
    db.commit()
    db.refresh(expense)
    return {"expense": ExpenseResponse.model_validate(expense)}


@router.delete("/expenses/{expense_id}")
def delete_expense(
    expense_id: UUID,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    expense = db.query(Expense).filter(Expense.id == expense_id).first()
    if not expense:
        raise NotFoundError("Expense")
    db.delete(expense)
    db.commit()
    return {"message": "Expense deleted"}


# --- Budgets ---


@router.get("/budgets")
def list_budgets(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    budgets = db.query(MonthlyBudget).order_by(MonthlyBudget.month.desc()).all()
    return {"budgets": [_budget_out(b) for b in budgets]}


@router.post("/budgets")
def save_budget(
    budget_in: BudgetUpsert,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    budget = db.query(MonthlyBudget).filter(MonthlyBudget.month == budget_in.month).first()
    if not budget:
        budget = MonthlyBudget(month=budget_in.month)
        db.add(budget)
    else:
        budget.updated_at = datetime.utcnow()
    budget.revenue_target = budget_in.revenueTarget or 0
    budget.expense_limits = dict(budget_in.expenseLimits or {})
    db.commit()
    db.refresh(budget)
    return {"budget": _budget_out(budget)}


# --- Fee structure ---


@router.get("/fees")
def get_fees(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    fees: Dict[str, Dict[str, float]] = {}
    for package in db.query(Package).filter(Package.instrument_id.isnot(None)).all():
        entry = fees.setdefault(str(package.instrument_id), {"monthly": 0, "quarterly": 0})
        name = package.name.lower()
        if "monthly" in name:
            entry["monthly"] = float(package.price)
        elif "quarterly" in name:
            entry["quarterly"] = float(package.price)
    return {"fees": fees}


@router.post("/fees")
def save_fees(
    fees_in: FeesUpdate,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(deps.allow_admin),
) -> Any:
    for instrument_id, rates in fees_in.fees.items():
        for name, key in FEE_PACKAGES.items():
            price = getattr(rates, key) or 0
            package = (
                db.query(Package)
                .filter(Package.instrument_id == instrument_id, Package.name == name)
                .first()
            )
            if package:
                package.price = price
            else:
                db.add(
                    Package(
                        instrument_id=instrument_id,
                        name=name,
                        classes_count=credits.credits_for_frequency(key),
                        price=price,
                    )
                )
    db.commit()
    logger.info(f"Fee structure updated for {len(fees_in.fees)} instrument(s)")
    return {"message": "Fees updated successfully"}
