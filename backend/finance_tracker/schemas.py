from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Keeps every stored amount representable as a finite float in dashboard output.
MONEY_DIGITS = 20


class AccountType(str, Enum):
    checking = "checking"
    savings = "savings"
    credit_card = "credit_card"
    investment = "investment"
    retirement = "retirement"
    other = "other"


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class GoalStatus(str, Enum):
    just_started = "just_started"
    on_track = "on_track"
    falling_behind = "falling_behind"
    completed = "completed"


class EventPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive instants are taken to be UTC; aware ones are converted to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_instant(value: Optional[datetime]) -> Optional[datetime]:
    try:
        return as_utc(value)
    except OverflowError as exc:
        raise ValueError("date out of range") from exc


def _reject_null(value: Any) -> Any:
    if value is None:
        raise ValueError("must not be null")
    return value


class ApiErrorDetail(BaseModel):
    field: str
    message: str


class ApiErrorPayload(BaseModel):
    code: str
    message: str
    details: list[ApiErrorDetail] = Field(default_factory=list)


class ApiErrorResponse(BaseModel):
    error: ApiErrorPayload


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")
    status: str


class RegisterRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1, max_length=128)
    fullName: str = Field(min_length=1, max_length=200)
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        v = value.strip().lower()
        if "@" not in v or "." not in v.split("@")[-1]:
            raise ValueError("invalid email format")
        return v


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class UserResponse(BaseModel):
    id: int
    username: str
    fullName: str
    email: str


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    icon: str = Field(min_length=1, max_length=50)
    color: str = Field(min_length=1, max_length=20)
    userId: int = Field(ge=0)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, min_length=1, max_length=20)
    userId: Optional[int] = Field(default=None, ge=0)

    @field_validator("name", "icon", "color", "userId")
    @classmethod
    def validate_not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class CategoryResponse(CategoryCreate):
    id: int


class TransactionCreate(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    amount: Decimal = Field(ge=Decimal("0"), max_digits=MONEY_DIGITS)
    date: datetime
    type: TransactionType
    categoryId: Optional[int] = Field(default=None, ge=0)
    accountId: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    userId: int = Field(ge=0)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: datetime) -> datetime:
        return utc_instant(value)


class TransactionUpdate(BaseModel):
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(default=None, ge=Decimal("0"), max_digits=MONEY_DIGITS)
    date: Optional[datetime] = None
    type: Optional[TransactionType] = None
    categoryId: Optional[int] = Field(default=None, ge=0)
    accountId: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    userId: Optional[int] = Field(default=None, ge=0)

    @field_validator("description", "amount", "date", "type", "userId")
    @classmethod
    def validate_not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: datetime) -> datetime:
        return utc_instant(value)


class TransactionResponse(TransactionCreate):
    id: int


class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    targetAmount: Decimal = Field(ge=Decimal("0"), max_digits=MONEY_DIGITS)
    currentAmount: Decimal = Field(ge=Decimal("0"), max_digits=MONEY_DIGITS)
    targetDate: datetime
    status: GoalStatus
    userId: int = Field(ge=0)

    @field_validator("targetDate")
    @classmethod
    def validate_target_date(cls, value: datetime) -> datetime:
        return utc_instant(value)


class GoalUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    targetAmount: Optional[Decimal] = Field(default=None, ge=Decimal("0"), max_digits=MONEY_DIGITS)
    currentAmount: Optional[Decimal] = Field(default=None, ge=Decimal("0"), max_digits=MONEY_DIGITS)
    targetDate: Optional[datetime] = None
    status: Optional[GoalStatus] = None
    userId: Optional[int] = Field(default=None, ge=0)

    @field_validator("title", "targetAmount", "currentAmount", "targetDate", "status", "userId")
    @classmethod
    def validate_not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    @field_validator("targetDate")
    @classmethod
    def validate_target_date(cls, value: datetime) -> datetime:
        return utc_instant(value)


class GoalResponse(GoalCreate):
    id: int


class GoalProgressResponse(BaseModel):
    goalId: int
    percentage: int
    status: GoalStatus
    recommendedStatus: GoalStatus


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    amount: Decimal = Field(ge=Decimal("0"), max_digits=MONEY_DIGITS)
    date: datetime
    priority: EventPriority
    category: str = Field(min_length=1, max_length=100)
    userId: int = Field(ge=0)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: datetime) -> datetime:
        return utc_instant(value)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, ge=Decimal("0"), max_digits=MONEY_DIGITS)
    date: Optional[datetime] = None
    priority: Optional[EventPriority] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    userId: Optional[int] = Field(default=None, ge=0)

    @field_validator("title", "amount", "date", "priority", "category", "userId")
    @classmethod
    def validate_not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: datetime) -> datetime:
        return utc_instant(value)


class EventResponse(EventCreate):
    id: int


class AccountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    accountNumber: str = Field(min_length=1, max_length=50)
    bankName: str = Field(min_length=1, max_length=120)
    accountType: AccountType
    balance: Decimal = Field(max_digits=MONEY_DIGITS)
    notes: Optional[str] = None
    credentials: Optional[dict[str, Any]] = None
    userId: int = Field(ge=0)


class AccountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    accountNumber: Optional[str] = Field(default=None, min_length=1, max_length=50)
    bankName: Optional[str] = Field(default=None, min_length=1, max_length=120)
    accountType: Optional[AccountType] = None
    balance: Optional[Decimal] = Field(default=None, max_digits=MONEY_DIGITS)
    notes: Optional[str] = None
    credentials: Optional[dict[str, Any]] = None
    userId: Optional[int] = Field(default=None, ge=0)

    @field_validator("name", "accountNumber", "bankName", "accountType", "balance", "userId")
    @classmethod
    def validate_not_null(cls, value: Any) -> Any:
        return _reject_null(value)


class AccountResponse(AccountCreate):
    id: int


class DashboardResponse(BaseModel):
    totalBalance: float
    monthlyExpenses: float
    savingsRate: int
    upcomingBills: float
    recentTransactions: list[TransactionResponse]
    upcomingEvents: list[EventResponse]
    goals: list[GoalResponse]
    accounts: list[AccountResponse]


class ExpenseBreakdownItem(BaseModel):
    categoryId: Optional[int] = None
    name: str
    color: str
    amount: float
    percentage: int


class IncomeExpensePoint(BaseModel):
    name: str
    year: int
    month: int
    income: float
    expenses: float
