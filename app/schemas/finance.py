from pydantic import BaseModel, Field, AliasChoices
from typing import Optional, Dict, Any
from datetime import datetime, date
from uuid import UUID


class PaymentCreate(BaseModel):
    student_id: UUID
    amount: float
    batch_id: Optional[UUID] = None
    payment_method: Optional[str] = None
    payment_for: Optional[str] = None
    notes: Optional[str] = None
    class_credits: Optional[int] = None
    payment_frequency: Optional[str] = None
    payment_date: Optional[datetime] = None


class PaymentUpdate(BaseModel):
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    payment_for: Optional[str] = None


class PaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    package_id: Optional[UUID] = None
    amount: float
    method: Optional[str] = None
    transaction_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("meta", "metadata")
    )
    timestamp: Optional[datetime] = None

    class Config:
        from_attributes = True


class ExpenseCreate(BaseModel):
    category: str = Field(min_length=1)
    amount: float = Field(gt=0)
    date: date
    notes: Optional[str] = None


class ExpenseResponse(ExpenseCreate):
    id: UUID
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BudgetUpsert(BaseModel):
    month: str = Field(pattern=r"^\d{4}-\d{2}$")
    revenueTarget: Optional[float] = 0
    expenseLimits: Optional[Dict[str, Any]] = None


class BudgetResponse(BaseModel):
    month: str
    revenueTarget: float
    expenseLimits: Dict[str, Any] = {}


class FeeRates(BaseModel):
    monthly: Optional[float] = 0
    quarterly: Optional[float] = 0


class FeesUpdate(BaseModel):
    fees: Dict[UUID, FeeRates]
