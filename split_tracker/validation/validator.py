"""
Two-Stage Split Validation

DESIGN DECISION: Validation happens in two distinct stages, before any
persistence call is made:

STAGE 1 - STRUCTURAL VALIDATION:
- Total amount present and positive
- Enough participants
- Every participant has a name

STAGE 2 - SEMANTIC VALIDATION:
- Shares add up to the total (within tolerance)
- Each participant's percentage agrees with their amount
- Duplicate participant emails
- Absurd totals

WHY TWO STAGES:
1. Separation of concerns (structural vs logical)
2. Better error messages (know exactly what kind of issue)
3. Share arithmetic is meaningless when the total itself is missing

IMPORTANT: Validation NEVER silently fixes issues.
It reports them, and the caller refuses to persist on errors.
"""

from decimal import Decimal
from typing import Any, Optional

from split_tracker.allocation import ShareAllocator
from split_tracker.config import SplitSettings, get_settings
from split_tracker.models.split import (
    HUNDRED,
    MONEY_QUANTUM,
    PERCENT_QUANTUM,
    Participant,
    ValidationIssue,
    ValidationResult,
    normalize_email,
    to_decimal,
)


class SplitValidator:
    """
    Validates a split (total plus participants) through a two-stage pipeline.
    """

    def __init__(
        self,
        settings: Optional[SplitSettings] = None,
        allocator: Optional[ShareAllocator] = None,
    ):
        self._settings = settings or get_settings().split
        self._allocator = allocator or ShareAllocator(self._settings.share_tolerance)

    def _validate_structure(
        self,
        total: Optional[Decimal],
        participants: list[Participant],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Structural validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if total is None:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="missing",
                message="Total amount is required",
                severity="error",
                suggested_fix="Enter the amount that is being split",
            ))
        elif total <= 0:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="invalid_value",
                message="Total amount must be greater than zero",
                severity="error",
            ))

        count = len(participants)
        if count < self._settings.min_participants:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="missing",
                message=(
                    f"At least {self._settings.min_participants} participant(s) "
                    f"required, got {count}"
                ),
                severity="error",
                suggested_fix="Add the people sharing this expense",
            ))
        elif count < self._settings.recommended_min_participants:
            issues.append(ValidationIssue(
                field="participants",
                issue_type="too_few",
                message="A split usually has at least two participants",
                severity="warning",
                suggested_fix="Add at least one more participant to split the expense",
            ))

        for index, participant in enumerate(participants):
            if not participant.name or not participant.name.strip():
                issues.append(ValidationIssue(
                    field=f"participants[{index}].name",
                    issue_type="missing",
                    message=f"Participant {index + 1} has no name",
                    severity="error",
                ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        total: Decimal,
        participants: list[Participant],
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        tolerance = self._allocator.tolerance

        if not self._allocator.is_balanced(total, participants):
            share_total = total + self._allocator.discrepancy(total, participants)
            issues.append(ValidationIssue(
                field="participants",
                issue_type="share_mismatch",
                message=(
                    f"The total of all shares ({share_total:.2f}) does not match "
                    f"the expense amount ({total:.2f})"
                ),
                severity="error",
                suggested_fix="Adjust the shares so they add up to the total",
            ))

        # Amounts are rounded to cents and may carry one reconciliation cent;
        # percentages carry four decimals, so large totals get a little slack
        agreement_slack = (
            tolerance + MONEY_QUANTUM / 2 + total * PERCENT_QUANTUM / HUNDRED
        )
        for index, participant in enumerate(participants):
            if participant.share_percentage is None or participant.share_amount is None:
                continue
            expected = total * participant.share_percentage / HUNDRED
            if abs(participant.share_amount - expected) > agreement_slack:
                issues.append(ValidationIssue(
                    field=f"participants[{index}].share_amount",
                    issue_type="inconsistent",
                    message=(
                        f"{participant.name}: amount {participant.share_amount:.2f} "
                        f"does not match {participant.share_percentage}% of the total"
                    ),
                    severity="error",
                    suggested_fix="Recalculate the shares",
                ))

        seen_emails: set[str] = set()
        for participant in participants:
            email = normalize_email(participant.email)
            if email is None:
                continue
            if email in seen_emails:
                issues.append(ValidationIssue(
                    field="participants",
                    issue_type="duplicate",
                    message=f"{participant.email} appears more than once",
                    severity="warning",
                    suggested_fix="Remove the duplicate participant",
                ))
            seen_emails.add(email)

        max_total = Decimal(str(self._settings.max_total_amount))
        if total > max_total:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="suspicious_value",
                message=f"Amount ({total:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def validate(
        self,
        total_amount: Any,
        participants: list[Participant],
    ) -> ValidationResult:
        """
        Run the full two-stage validation pipeline.

        Args:
            total_amount: The split total
            participants: Participants with their computed shares

        Returns:
            ValidationResult with all issues found
        """
        try:
            total = to_decimal(total_amount)
        except ValueError:
            total = None

        all_issues = []

        structure_valid, structure_issues = self._validate_structure(total, participants)
        all_issues.extend(structure_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if structure_valid:
            semantic_valid, semantic_issues = self._validate_semantic(total, participants)
            all_issues.extend(semantic_issues)

        warnings = [
            issue.message for issue in all_issues if issue.severity == "warning"
        ]

        return ValidationResult(
            structure_valid=structure_valid,
            semantic_valid=semantic_valid,
            is_valid=structure_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a plain-text summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []

        if result.has_errors:
            lines.append("The split cannot be saved:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   - {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     ({issue.suggested_fix})")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   - {warning}")

        return "\n".join(lines)
