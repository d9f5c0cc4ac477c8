from pydantic import BaseModel, Field, model_validator
from enum import Enum
from datetime import date
from typing import List, Optional


class InterestTypeEnum(str, Enum):
    simple = "simple"
    compound = "compound"


class InterestModeEnum(str, Enum):
    per_installment = "per_installment"
    on_total = "on_total"
    compound = "compound"


class PaymentTypeEnum(str, Enum):
    single = "single"
    installment = "installment"
    daily = "daily"
    weekly = "weekly"
    biweekly = "biweekly"


class PaymentStatusEnum(str, Enum):
    paid = "paid"
    pending = "pending"
    overdue = "overdue"


class OverdueConfigTypeEnum(str, Enum):
    percentage = "percentage"
    fixed = "fixed"
    percentage_total = "percentage_total"


class OverdueConfig(BaseModel):
    """Daily late fee applied by the overdue job once an installment is past due."""
    type: OverdueConfigTypeEnum = Field(..., description="How the daily penalty is computed")
    value: float = Field(..., ge=0, description="Percentage or fixed amount per day")


class LoanCreateRequest(BaseModel):
    client_id: str
    principal_amount: float = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0, description="Monthly rate in percent; daily profit amount for daily loans")
    interest_type: InterestTypeEnum = InterestTypeEnum.simple
    interest_mode: InterestModeEnum = InterestModeEnum.on_total
    payment_type: PaymentTypeEnum = PaymentTypeEnum.single
    installments: int = Field(1, ge=1, le=365)
    contract_date: Optional[date] = None
    start_date: date
    due_date: Optional[date] = None
    installment_dates: Optional[List[date]] = None
    total_interest: Optional[float] = Field(None, ge=0)
    remaining_balance: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    is_historical: bool = False
    is_third_party: bool = False
    third_party_name: Optional[str] = None
    overdue_config: Optional[OverdueConfig] = None
    skip_saturdays: bool = False
    skip_sundays: bool = False
    skip_holidays: bool = False
    send_creation_notification: bool = False

    @model_validator(mode="after")
    def _check_dates(self):
        if self.installment_dates and len(self.installment_dates) != self.installments:
            raise ValueError("installment_dates must have one date per installment")
        if self.payment_type == PaymentTypeEnum.single and self.installments != 1:
            raise ValueError("single payment loans have exactly one installment")
        return self


class LoanUpdateRequest(BaseModel):
    client_id: Optional[str] = None
    principal_amount: Optional[float] = Field(None, gt=0)
    interest_rate: Optional[float] = Field(None, ge=0)
    interest_type: Optional[InterestTypeEnum] = None
    interest_mode: Optional[InterestModeEnum] = None
    payment_type: Optional[PaymentTypeEnum] = None
    installments: Optional[int] = Field(None, ge=1, le=365)
    contract_date: Optional[date] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    installment_dates: Optional[List[date]] = None
    total_interest: Optional[float] = Field(None, ge=0)
    remaining_balance: Optional[float] = Field(None, ge=0)
    total_paid: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    overdue_config: Optional[OverdueConfig] = None
    third_party_name: Optional[str] = None
    send_notification: bool = False


class LoanRenegotiateRequest(BaseModel):
    interest_rate: float = Field(..., ge=0)
    installments: int = Field(..., ge=1, le=365)
    installment_dates: Optional[List[date]] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    remaining_balance: Optional[float] = Field(None, ge=0)
    total_interest: Optional[float] = Field(None, ge=0)
    send_notification: bool = False


class ExtraInstallmentsRequest(BaseModel):
    extra_count: int = Field(..., ge=1, le=365)
    new_dates: Optional[List[date]] = None


class PaymentCreateRequest(BaseModel):
    amount: float = Field(..., gt=0)
    principal_paid: float = Field(0, ge=0)
    interest_paid: float = Field(0, ge=0)
    payment_date: date = Field(default_factory=date.today)
    notes: Optional[str] = None
    is_interest_only: bool = False
    send_notification: bool = False


class PaymentDateUpdateRequest(BaseModel):
    payment_date: date


class LoanSimulationRequest(BaseModel):
    principal_amount: float = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0)
    installments: int = Field(1, ge=1, le=365)
    payment_type: PaymentTypeEnum = PaymentTypeEnum.installment
    interest_mode: InterestModeEnum = InterestModeEnum.per_installment
    start_date: date = Field(default_factory=date.today)


class ScheduleEntry(BaseModel):
    number: int
    due_date: date
    principal: float
    interest: float
    total: float
    remaining_balance: float


class ModeComparison(BaseModel):
    interest: float
    total: float


class LoanSimulationResponse(BaseModel):
    principal_amount: float
    interest_rate: float
    installments: int
    payment_type: PaymentTypeEnum
    interest_mode: InterestModeEnum
    total_interest: float
    total_amount: float
    installment_value: float
    effective_rate: float
    schedule: List[ScheduleEntry] = []
    comparison: Optional[dict] = None
