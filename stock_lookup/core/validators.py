"""
Per-field validation rules.

Each rule combines a syntactic check (regex), an optional semantic check and a
normalizing transform. Rules report every failure they find for a field
instead of stopping at the first one.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, List, Optional, Pattern, Tuple

from stock_lookup.core.sanitizer import sanitize
from stock_lookup.models import ValidationErrorDetail

PRODUCT_CODE_MAX_LENGTH = 50
MIN_YEAR = 1900
MAX_YEAR = 2100
PRICE_RANGE = (0, 999999999)
PERCENTAGE_RANGE = (-100, 1000)

# A semantic check returns the list of failure messages for an already
# syntactically valid value.
SemanticCheck = Callable[[Any], List[str]]


@dataclass(frozen=True)
class FieldResult:
    """Outcome of applying one rule: the normalized value or the failures."""
    value: Any = None
    errors: List[ValidationErrorDetail] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ValidationRule:
    """
    One field's contract.

    Attributes:
        field: Request field name
        required: Whether an absent value is an error
        message: Message used when the syntactic check fails
        pattern: Full-match regex for string values (None to skip)
        semantic_check: Extra checks run once the syntax is valid
        normalize: Transform applied to a valid value
        is_absent: Decides whether a raw value counts as "not provided"
        required_message: Message used when a required value is absent
    """
    field: str
    required: bool
    message: str
    pattern: Optional[Pattern] = None
    semantic_check: Optional[SemanticCheck] = None
    normalize: Callable[[Any], Any] = lambda value: value
    is_absent: Callable[[Any], bool] = lambda value: value is None or value == ""
    required_message: str = "Field is required"

    def _error(self, message: str, raw: Any) -> ValidationErrorDetail:
        return ValidationErrorDetail(field=self.field, message=message, rejected_value=raw)

    def apply(self, raw: Any) -> FieldResult:
        """
        Validate and normalize a raw value.

        Returns:
            FieldResult with the normalized value, or every failure found
        """
        if self.is_absent(raw):
            if self.required:
                return FieldResult(errors=[self._error(self.required_message, raw)])
            return FieldResult(value=None)

        errors: List[ValidationErrorDetail] = []

        if self.pattern is not None:
            if not isinstance(raw, str) or not self.pattern.fullmatch(raw):
                errors.append(self._error(self.message, raw))

        if self.semantic_check is not None:
            errors.extend(self._error(message, raw) for message in self.semantic_check(raw))

        if errors:
            return FieldResult(errors=errors)

        return FieldResult(value=self.normalize(raw))


def _parse_number(raw: Any) -> Optional[float]:
    """Parse a JSON number or numeric string. Booleans, NaN and inf are rejected."""
    if isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float, str)):
        return None
    try:
        number = float(raw.strip() if isinstance(raw, str) else raw)
    except (ValueError, OverflowError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _round_cents(raw: Any) -> float:
    number = _parse_number(raw)
    return float(Decimal(str(number)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _product_code_checks(raw: Any) -> List[str]:
    if not isinstance(raw, str):
        return ["Product code must be a string"]

    messages = []
    if len(raw) > PRODUCT_CODE_MAX_LENGTH:
        messages.append(f"Product code must be between 1 and {PRODUCT_CODE_MAX_LENGTH} characters")
    return messages


def _calendar_date_checks(raw: str) -> List[str]:
    match = _DATE_PATTERN.fullmatch(raw) if isinstance(raw, str) else None
    if match is None:
        # Syntax failure is already reported by the pattern check
        return []

    day, month, year = (int(part) for part in match.groups())
    messages = []
    if not 1 <= day <= 31:
        messages.append("Day must be between 1 and 31")
    if not 1 <= month <= 12:
        messages.append("Month must be between 1 and 12")
    if not MIN_YEAR <= year <= MAX_YEAR:
        messages.append(f"Year must be between {MIN_YEAR} and {MAX_YEAR}")
    if messages:
        return messages

    try:
        date(year, month, day)
    except ValueError:
        return ["Invalid date"]
    return []


def _range_check(bounds: Tuple[float, float], message: str) -> SemanticCheck:
    low, high = bounds

    def check(raw: Any) -> List[str]:
        number = _parse_number(raw)
        if number is None or not low <= number <= high:
            return [message]
        return []

    return check


_PRODUCT_CODE_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
_DATE_PATTERN = re.compile(r"([0-9]{2})/([0-9]{2})/([0-9]{4})")


PRODUCT_CODE_RULE = ValidationRule(
    field="productCode",
    required=True,
    required_message="Product code is required",
    message="Product code may only contain letters, numbers, hyphens and underscores",
    pattern=_PRODUCT_CODE_PATTERN,
    semantic_check=_product_code_checks,
    normalize=lambda raw: sanitize(raw).upper(),
)

DATE_RULE = ValidationRule(
    field="date",
    required=False,
    message="Date must be in DD/MM/YYYY format",
    pattern=_DATE_PATTERN,
    semantic_check=_calendar_date_checks,
    normalize=sanitize,
)

PRICE_RULE = ValidationRule(
    field="price",
    required=True,
    required_message="Price is required",
    message="Price must be a valid number between 0 and 999,999,999",
    semantic_check=_range_check(PRICE_RANGE, "Price must be a valid number between 0 and 999,999,999"),
    normalize=_round_cents,
)

PERCENTAGE_RULE = ValidationRule(
    field="percentage",
    required=False,
    message="Percentage must be between -100% and 1000%",
    semantic_check=_range_check(PERCENTAGE_RANGE, "Percentage must be between -100% and 1000%"),
    normalize=_round_cents,
    is_absent=lambda value: value is None,
)


def validate_product_code(raw: Any) -> FieldResult:
    return PRODUCT_CODE_RULE.apply(raw)


def validate_date(raw: Any) -> FieldResult:
    return DATE_RULE.apply(raw)


def validate_price(raw: Any) -> FieldResult:
    return PRICE_RULE.apply(raw)


def validate_percentage(raw: Any) -> FieldResult:
    return PERCENTAGE_RULE.apply(raw)
