"""
Customer and invoice snapshots consumed by the decisioning pipeline.

Both are read-only inputs: the pipeline never writes them back. Every scoring
signal on ``CustomerHistory`` is optional; when a signal is absent the scorer
derives it from the invoice's days past due (see
``collection_decisioning.utils.relationship_scoring``).
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    """Naive UTC timestamp used throughout the service."""
    return datetime.utcnow()


def as_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class InvoiceStatus(str, Enum):
    """Invoice payment status."""

    PENDING = "pending"
    OVERDUE = "overdue"
    PAID = "paid"
    PARTIAL = "partial"


class CustomerHistory(BaseModel):
    """Explicit scoring signals known for a customer."""

    # Payment history
    on_time_payments: Optional[int] = Field(
        default=None, ge=0, description="On-time payments (default: max(1, 10 - dpd // 30))"
    )
    late_payments: Optional[int] = Field(
        default=None, ge=0, description="Late payments (default: dpd // 30)"
    )
    default_count: Optional[int] = Field(
        default=None, ge=0, description="Defaults on record (default: 1 if dpd > 90 else 0)"
    )
    average_days_late: Optional[float] = Field(
        default=None, ge=0, description="Average days late (default: derived from dpd)"
    )
    payment_frequency: Optional[float] = Field(
        default=None, ge=0, description="Payment cadence 0-1 (default: max(0.1, 1 - dpd/365))"
    )

    # Financial health
    credit_utilization: Optional[float] = Field(
        default=None, ge=0, description="Credit utilization 0-1 (default: amount / 100000)"
    )
    debt_to_income_ratio: Optional[float] = Field(
        default=None, ge=0, description="Debt-to-income ratio (default: amount / 50000)"
    )
    cash_flow_stability: Optional[float] = Field(
        default=None, ge=0, description="Cash-flow stability 0-1 (default: max(0.3, 1 - dpd/180))"
    )
    account_balance: Optional[float] = Field(
        default=None, ge=0, description="Outstanding balance (default: invoice amount)"
    )
    revenue_growth: Optional[float] = Field(
        default=None, description="Revenue growth rate (no default; scored as 0.0)"
    )

    # Relationship
    communication_responsiveness: Optional[float] = Field(
        default=None, ge=0, description="Responsiveness 0-1 (default: max(0.2, 1 - dpd/90))"
    )
    previous_resolutions: Optional[int] = Field(
        default=None, ge=0, description="Prior resolved issues (default: max(0, 3 - dpd // 60))"
    )
    contract_compliance: Optional[float] = Field(
        default=None, ge=0, description="Contract compliance 0-1 (default: max(0.1, 1 - dpd/120))"
    )
    business_partnership: Optional[float] = Field(
        default=None, ge=0, description="Partnership depth 0-1 (default: max(0.3, 1 - dpd/150))"
    )

    # Behavioral
    contact_attempts: Optional[int] = Field(
        default=None, ge=0, description="Collection contact attempts (default: dpd // 15)"
    )
    response_time: Optional[float] = Field(
        default=None, ge=0, description="Average response time in days (default: min(5, dpd/10))"
    )
    dispute_count: Optional[int] = Field(
        default=None, ge=0, description="Disputes raised (default: 1 if dpd > 60 else 0)"
    )
    engagement_level: Optional[float] = Field(
        default=None, ge=0, description="Engagement 0-1 (default: max(0.1, 1 - dpd/100))"
    )

    # External
    industry_risk: Optional[float] = Field(
        default=None, ge=0, le=1, description="Industry risk 0-1 (default: 0.3)"
    )
    economic_indicators: Optional[float] = Field(
        default=None, ge=0, le=1, description="Economic outlook 0-1 (default: 0.7)"
    )
    seasonal_factors: Optional[float] = Field(
        default=None, ge=0, le=1, description="Seasonal payment factor 0-1 (default: 0.8)"
    )


class Customer(BaseModel):
    """Customer snapshot."""

    id: str = Field(..., description="Customer identifier")
    name: str = Field(..., description="Company name")
    external_id: Optional[str] = Field(
        default=None, description="CRM/ERP account id used for activity logging"
    )
    account_value: float = Field(
        default=0.0, ge=0, description="Annualized revenue (ARR)"
    )
    health_score: Optional[float] = Field(
        default=None, ge=0, le=100, description="Customer health score"
    )
    relationship_score: Optional[float] = Field(
        default=None,
        ge=0,
        le=100,
        description="Last stored relationship score; informational only",
    )
    payment_terms: str = Field(default="NET15", description="Payment terms")
    created_at: Optional[datetime] = Field(
        default=None, description="Account creation time; account age derives from it"
    )
    support_ticket_count: int = Field(
        default=0, ge=0, description="Open support tickets"
    )
    contact_email: Optional[str] = Field(
        default=None, description="Billing contact email for delivery"
    )
    history: Optional[CustomerHistory] = Field(
        default=None, description="Explicit scoring signals, when known"
    )

    def account_age_months(self, as_of: Optional[datetime] = None) -> Optional[int]:
        """Whole months since the account was created, or None when unknown."""
        if self.created_at is None:
            return None
        now = as_naive_utc(as_of or utcnow())
        created = as_naive_utc(self.created_at)
        months = (now.year - created.year) * 12 + (now.month - created.month)
        if now.day < created.day:
            months -= 1
        return max(0, months)


class Invoice(BaseModel):
    """Invoice snapshot. Days past due is always derived, never stored."""

    id: str = Field(..., description="Invoice identifier")
    invoice_number: str = Field(..., description="Human-facing invoice number")
    amount: float = Field(..., ge=0, description="Invoice amount")
    issue_date: datetime = Field(..., description="Issue date")
    due_date: datetime = Field(..., description="Due date")
    status: InvoiceStatus = Field(
        default=InvoiceStatus.PENDING, description="Payment status"
    )

    def days_past_due(self, as_of: Optional[datetime] = None) -> int:
        """Whole days past the due date, never negative."""
        now = as_naive_utc(as_of or utcnow())
        delta = now - as_naive_utc(self.due_date)
        return max(0, delta.days)

    def is_overdue(self, as_of: Optional[datetime] = None) -> bool:
        """True only for unpaid invoices past their due date."""
        if self.status == InvoiceStatus.PAID:
            return False
        return self.days_past_due(as_of) > 0
