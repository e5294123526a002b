"""
Validation pipeline.

Runs every configured field rule against a request payload and turns the
collected failures into a single VALIDATION_ERROR.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from stock_lookup.core.validators import DATE_RULE, PRODUCT_CODE_RULE, ValidationRule
from stock_lookup.errors import ErrorCode, ServiceError
from stock_lookup.models import ValidationErrorDetail

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    values: Dict[str, Any] = field(default_factory=dict)
    errors: List[ValidationErrorDetail] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


class ValidationPipeline:
    """
    Applies a fixed set of ValidationRules to a payload.

    Every rule runs even when an earlier one failed, so clients see all input
    problems in one round trip.
    """

    def __init__(self, rules: Sequence[ValidationRule]):
        self.rules = tuple(rules)

    def run(self, payload: Any) -> PipelineResult:
        """
        Validate without raising.

        Args:
            payload: Parsed request body

        Returns:
            PipelineResult with normalized values and every failure found
        """
        if not isinstance(payload, Mapping):
            return PipelineResult(errors=[
                ValidationErrorDetail(
                    field="body",
                    message="Request body must be a JSON object",
                    rejected_value=None
                )
            ])

        result = PipelineResult()
        for rule in self.rules:
            outcome = rule.apply(payload.get(rule.field))
            if outcome.errors:
                result.errors.extend(outcome.errors)
            else:
                result.values[rule.field] = outcome.value
        return result

    def validate(self, payload: Any) -> Dict[str, Any]:
        """
        Validate a payload.

        Returns:
            Normalized field values keyed by field name

        Raises:
            ServiceError: VALIDATION_ERROR (400) with every failure as details
        """
        result = self.run(payload)
        if not result.is_valid:
            logger.warning(
                "Validation errors: "
                + "; ".join(f"{error.field}: {error.message}" for error in result.errors)
            )
            raise ServiceError(
                "Invalid input data",
                http_status=400,
                code=ErrorCode.VALIDATION_ERROR,
                details=result.errors
            )
        return result.values


PRODUCT_SEARCH_PIPELINE = ValidationPipeline([PRODUCT_CODE_RULE, DATE_RULE])
