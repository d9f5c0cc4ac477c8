from beanie import Document
from pydantic import Field
from datetime import date, datetime
from typing import Dict, List, Optional

from cobrafacil.schemas.loan_schema import (
    InterestTypeEnum,
    InterestModeEnum,
    PaymentTypeEnum,
    PaymentStatusEnum,
    OverdueConfig,
)


class Loan(Document):
    user_id: str = Field(..., description="Owner account id")
    client_id: str = Field(..., description="Id of the borrowing client")
    principal_amount: float = Field(..., gt=0, description="Amount lent")
    interest_rate: float = Field(..., ge=0, description="Monthly rate in percent, or daily profit for daily loans")
    interest_type: InterestTypeEnum = InterestTypeEnum.simple
    interest_mode: InterestModeEnum = InterestModeEnum.on_total
    payment_type: PaymentTypeEnum = PaymentTypeEnum.single
    installments: int = Field(default=1, ge=1)
    installment_dates: List[date] = Field(default_factory=list)
    contract_date: date = Field(default_factory=date.today)
    start_date: date
    due_date: date
    total_interest: float = 0
    total_paid: float = 0
    interest_only_paid: float = Field(default=0, description="Received through interest-only payments, kept out of total_paid")
    remaining_balance: float = 0
    status: PaymentStatusEnum = PaymentStatusEnum.pending
    notes: Optional[str] = None

    is_historical: bool = Field(default=False, description="Imported contract, ignored by the overdue job")
    is_third_party: bool = Field(default=False, description="Money lent on behalf of someone else")
    third_party_name: Optional[str] = None
    overdue_config: Optional[OverdueConfig] = None
    skip_saturdays: bool = False
    skip_sundays: bool = False
    skip_holidays: bool = False
    partial_payments: Dict[str, float] = Field(default_factory=dict, description="Installment index -> amount paid")
    daily_penalties: Dict[str, float] = Field(default_factory=dict, description="Installment index -> accrued penalty")
    penalty_last_applied: Optional[date] = None
    renegotiated_at: Optional[datetime] = None
    paid_before_renegotiation: float = Field(default=0, description="total_paid when the current schedule started")

    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Settings:
        name = "loans"

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}


class LoanPayment(Document):
    loan_id: str
    user_id: str = Field(..., description="Owner account id")
    amount: float = Field(..., gt=0)
    principal_paid: float = 0
    interest_paid: float = 0
    payment_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None
    is_interest_only: bool = False
    created_by: Optional[str] = Field(None, description="User id that registered the payment")
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "loan_payments"

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}
