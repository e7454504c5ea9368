"""
Core Data Models for Split Tracker

These models define the strict schemas for all data flowing through the
settlement core. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the document store and for logging
4. Support the audit trail

DESIGN DECISION: Money is Decimal quantized to cents and percentages are
Decimal quantized to four places. Floats and numeric strings coming from
callers are converted once, here, at the model boundary.

DESIGN DECISION: Every identifier is an opaque string. Numeric ids handed
in by callers are converted to strings on the way in, so comparisons
elsewhere never need to care.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


MONEY_QUANTUM = Decimal("0.01")
PERCENT_QUANTUM = Decimal("0.0001")
HUNDRED = Decimal("100")


# =============================================================================
# HELPERS
# =============================================================================

def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def generate_document_id() -> str:
    return uuid4().hex


def generate_participant_id() -> str:
    return f"p_{uuid4().hex[:12]}"


def ensure_string_id(value: Any) -> Optional[str]:
    """Normalize an id to a string. None and blank values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Lower-cased, trimmed email; None for missing or blank input."""
    if not email or not isinstance(email, str):
        return None
    normalized = email.strip().lower()
    return normalized or None


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a caller-supplied number to Decimal.

    None and blank strings mean "not supplied" and return None.
    Floats go through str() so 33.33 stays 33.33.

    Raises:
        ValueError: If the value is not a finite number
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    else:
        raise ValueError(f"Not a number: {value!r}")

    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_percentage(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ParticipantStatus(str, Enum):
    """
    Payment status of one participant.

    NOTE: DECLINED counts as "not paid" for the aggregate split status.
    A split with a declined participant cannot become SETTLED.
    """
    UNPAID = "unpaid"
    PAID = "paid"
    DECLINED = "declined"


class SplitStatus(str, Enum):
    """
    Aggregate settlement status of a split.

    CRITICAL: Always derived from participant statuses, never set on its own.
    """
    PENDING = "pending"    # nobody has paid
    PARTIAL = "partial"    # some, not all, have paid
    SETTLED = "settled"    # everybody has paid


class SplitMethod(str, Enum):
    """How a total is divided among participants."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    AMOUNT = "amount"


class NotificationKind(str, Enum):
    """Notification templates the dispatcher knows about."""
    NEW_SPLIT = "new_split"
    PAYMENT_REMINDER = "payment_reminder"


# =============================================================================
# IDENTITY
# =============================================================================

class UserContext(BaseModel):
    """
    The authenticated user, as supplied by the identity provider.

    The core performs no authentication; it only consumes these values.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    user_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def coerce_user_id(cls, v: Any) -> Any:
        return ensure_string_id(v) or v


# =============================================================================
# CORE SPLIT MODELS
# =============================================================================

class Participant(BaseModel):
    """
    A person assigned a share of a split expense.

    share_percentage and share_amount stay None until computed;
    None means "not supplied", an explicit zero is a real share of zero.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=generate_participant_id,
        min_length=1,
        description="Stable participant id within the split"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name"
    )
    email: Optional[str] = Field(
        default=None,
        max_length=254,
        description="Notification address and contact dedupe key"
    )
    share_percentage: Optional[Decimal] = Field(
        default=None,
        ge=0,
        le=100,
        description="Share of the total in percent"
    )
    share_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Share of the total in currency units"
    )
    status: ParticipantStatus = Field(
        default=ParticipantStatus.UNPAID,
        description="Payment status"
    )
    payment_method: Optional[str] = Field(
        default=None,
        max_length=100,
        description="How the participant paid (free text)"
    )
    paid_date: Optional[datetime] = Field(
        default=None,
        description="When the participant was marked paid"
    )

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return ensure_string_id(v) or generate_participant_id()

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("share_amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Optional[Decimal]:
        value = to_decimal(v)
        return quantize_money(value) if value is not None else None

    @field_validator("share_percentage", mode="before")
    @classmethod
    def coerce_percentage(cls, v: Any) -> Optional[Decimal]:
        value = to_decimal(v)
        return quantize_percentage(value) if value is not None else None

    @property
    def is_paid(self) -> bool:
        return self.status == ParticipantStatus.PAID


class SplitExpense(BaseModel):
    """
    A shared expense and its participants.

    Created once (allocation happens at construction) and afterwards only
    mutated through participant payment-status changes or deleted.
    total_amount and the participant list never change after creation.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    # Identity
    id: str = Field(
        default_factory=generate_document_id,
        description="Split id (replaced by the store-assigned id on save)"
    )
    expense_id: str = Field(
        ...,
        min_length=1,
        description="Id of the ledger entry created alongside this split"
    )

    # Money
    total_amount: Decimal = Field(
        ...,
        gt=0,
        description="Total amount being split"
    )

    # Descriptive metadata copied from the expense
    category: str = Field(default="Other", max_length=100)
    description: str = Field(default="", max_length=500)
    expense_date: Optional[date] = None
    notes: str = Field(default="", max_length=1000)
    receipt_image_url: Optional[str] = None

    participants: list[Participant] = Field(
        ...,
        min_length=1,
        description="Participants in insertion order"
    )
    status: SplitStatus = Field(
        default=SplitStatus.PENDING,
        description="Derived settlement status"
    )

    # Ownership and timestamps
    user_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @field_validator("id", "expense_id", "user_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return ensure_string_id(v) or v

    @field_validator("total_amount", mode="before")
    @classmethod
    def coerce_total(cls, v: Any) -> Any:
        value = to_decimal(v)
        return quantize_money(value) if value is not None else v

    @field_validator("notes", mode="before")
    @classmethod
    def none_notes_is_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    def find_participant(self, participant_id: Any) -> Optional[Participant]:
        wanted = ensure_string_id(participant_id)
        for participant in self.participants:
            if participant.id == wanted:
                return participant
        return None

    def to_document(self) -> dict:
        """Serialize for the document store (the store owns the id)."""
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, document: dict) -> "SplitExpense":
        return cls.model_validate(document)


class Contact(BaseModel):
    """
    A remembered participant identity, reusable across splits.

    At most one contact per normalized email per user.
    Contacts without an email are never deduplicated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=generate_document_id)
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = Field(default=None, max_length=254)
    user_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return ensure_string_id(v) or v

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def normalized_email(self) -> Optional[str]:
        return normalize_email(self.email)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, document: dict) -> "Contact":
        return cls.model_validate(document)


# =============================================================================
# EXPENSE LEDGER MODELS
# =============================================================================

class ExpenseInput(BaseModel):
    """
    The base expense a split is created from.

    This is what the caller hands to create_new_split_expense.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Total amount of the expense"
    )
    category: str = Field(default="Other", min_length=1, max_length=100)
    description: str = Field(default="", max_length=500)
    expense_date: date = Field(default_factory=date.today)
    notes: Optional[str] = Field(default=None, max_length=1000)
    receipt_image_url: Optional[str] = None
    user_id: Optional[str] = None

    @field_validator("id", "user_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Optional[str]:
        return ensure_string_id(v)

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> Any:
        value = to_decimal(v)
        return quantize_money(value) if value is not None else v


class ExpenseEntry(BaseModel):
    """
    Ledger record materialized alongside a split.

    user_share is the creator's own portion; budget tracking reads it
    instead of the full amount.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = None
    user_id: str = Field(..., min_length=1)
    category: str = Field(default="Other")
    amount: Decimal = Field(..., gt=0)
    expense_date: date
    description: str = ""
    notes: str = ""
    receipt_image_url: Optional[str] = None
    is_split: bool = False
    user_share: Decimal = Field(default=Decimal("0"), ge=0)
    participant_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", exclude={"id"})


# =============================================================================
# DERIVED / VIEW MODELS
# =============================================================================

class SplitSummary(BaseModel):
    """Paid/pending totals of a split, as shown in lists and detail views."""

    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")
    participant_count: int = Field(default=0, ge=0)
    paid_count: int = Field(default=0, ge=0)
    status: SplitStatus = SplitStatus.PENDING


class EmailStatus(BaseModel):
    """
    Display state of one participant's notification.

    This is a display-layer value. It is cleared on a timer and must not be
    read as proof of delivery.
    """

    sending: bool = False
    sent: Optional[bool] = None
    error: Optional[str] = None


class NotificationResult(BaseModel):
    """Outcome reported by the notification dispatcher."""

    success: bool
    message: Optional[str] = None


class ReminderLog(BaseModel):
    """Record of a payment reminder that was dispatched successfully."""

    split_expense_id: str
    participant_id: str
    user_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    success: bool = True

    def to_document(self) -> dict:
        return self.model_dump(mode="json")


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'share_mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage split validation.

    Stage 1: Structure (amount, participants, names)
    Stage 2: Semantics (share sums, percentages, duplicates)
    """

    validated_at: datetime = Field(
        default_factory=utcnow
    )

    structure_valid: bool = Field(
        ...,
        description="Did structural validation pass?"
    )
    semantic_valid: bool = Field(
        ...,
        description="Did semantic validation pass?"
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )

    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
