from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Literal
from datetime import date, datetime
from enum import Enum

# ============ ENUMS ============
class RoleEnum(str, Enum):
    user = "USER"
    admin = "ADMIN"

DEFAULT_CATEGORIES = [
    "Food",
    "Transportation",
    "Housing",
    "Utilities",
    "Entertainment",
    "Healthcare",
    "Shopping",
    "Other",
]

# ============ AUTH SCHEMAS ============
class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserSignup(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=72)

class UserResponse(BaseModel):
    user_id: int
    name: str
    email: str
    role: RoleEnum
    created: Optional[datetime] = None

    class Config:
        from_attributes = True

class Token(BaseModel):
    access_token: str
    token_type: str
    user: UserResponse

# ============ CATEGORY SCHEMAS ============
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)

    @field_validator('name')
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Category name is required')
        return v

class CategoryResponse(BaseModel):
    category_id: int
    name: str

    class Config:
        from_attributes = True

# ============ EXPENSE SCHEMAS ============
class ExpenseBase(BaseModel):
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    description: str = Field(..., min_length=1, max_length=255)
    date_spent: date
    category_id: int
    receipt_url: Optional[str] = None

class ExpenseCreate(ExpenseBase):
    pass

class ExpenseUpdate(BaseModel):
    amount: Optional[float] = Field(None, gt=0, allow_inf_nan=False)
    description: Optional[str] = Field(None, min_length=1, max_length=255)
    date_spent: Optional[date] = None
    category_id: Optional[int] = None
    receipt_url: Optional[str] = None

class ExpenseResponse(ExpenseBase):
    expense_id: int
    user_id: int
    category: CategoryResponse
    created: Optional[datetime] = None

    class Config:
        from_attributes = True

# ============ SPENDING ANALYTICS SCHEMAS ============
TIME_RANGES = ["week", "month", "year"]

class CategoryTotal(BaseModel):
    name: str
    value: float

class TrendPoint(BaseModel):
    date: date
    amount: float

class SpendingAnalyticsResponse(BaseModel):
    currentPeriodTotal: float
    averagePerMonth: float
    projectedExpense: float
    expensesTrend: List[TrendPoint]
    expensesByCategory: List[CategoryTotal]

# ============ AI INSIGHT SCHEMAS ============
# These double as the shape contract for model output: a response that does
# not validate is treated as a failed attempt.

class SuggestedBudget(BaseModel):
    needs: float = Field(..., allow_inf_nan=False)
    wants: float = Field(..., allow_inf_nan=False)
    savings: float = Field(..., allow_inf_nan=False)

class AIInsights(BaseModel):
    analysis: str = Field(..., min_length=1)
    recommendations: List[str]
    concerns: List[str]
    suggestedBudget: SuggestedBudget

class SavingsPlan(BaseModel):
    savingsPlan: str = Field(..., min_length=1)
    recommendations: List[str]
    tips: List[str]

# ============ FINANCIALS SCHEMAS ============
class FinancialsResponse(BaseModel):
    currentIncome: float
    totalExpenses: float
    expensesByCategory: List[CategoryTotal]
    aiInsights: Optional[AIInsights] = None
    hasIncome: bool
    degraded: Optional[bool] = None
    warning: Optional[str] = Field(None, alias="_warning")

    class Config:
        populate_by_name = True

class IncomeUpdate(BaseModel):
    monthlyIncome: float = Field(..., gt=0, allow_inf_nan=False)

class IncomeUpdateResponse(BaseModel):
    success: Literal[True] = True
    analytics: Optional[FinancialsResponse] = None
    warning: Optional[str] = Field(None, alias="_warning")

    class Config:
        populate_by_name = True

# ============ GOAL PLANNING SCHEMAS ============
class GoalPlanRequest(BaseModel):
    goalAmount: float = Field(..., gt=0, allow_inf_nan=False)
    timeframe: int = Field(..., gt=0, description="Months to reach the goal")

class GoalPlanResponse(SavingsPlan):
    degraded: Optional[bool] = None
    warning: Optional[str] = Field(None, alias="_warning")

    class Config:
        populate_by_name = True
