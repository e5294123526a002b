import pytest

from stock_lookup.core.pipeline import PRODUCT_SEARCH_PIPELINE, ValidationPipeline
from stock_lookup.core.validators import PERCENTAGE_RULE, PRICE_RULE
from stock_lookup.errors import ErrorCode, ServiceError


def test_valid_search_payload_is_normalized():
    values = PRODUCT_SEARCH_PIPELINE.validate({"productCode": "prd00003", "date": "15/01/2025"})
    assert values == {"productCode": "PRD00003", "date": "15/01/2025"}


def test_missing_date_normalizes_to_none():
    values = PRODUCT_SEARCH_PIPELINE.validate({"productCode": "abc"})
    assert values == {"productCode": "ABC", "date": None}


def test_all_field_errors_are_collected():
    with pytest.raises(ServiceError) as exc:
        PRODUCT_SEARCH_PIPELINE.validate({"productCode": "bad code!", "date": "31/02/2025"})

    error = exc.value
    assert error.http_status == 400
    assert error.code == ErrorCode.VALIDATION_ERROR
    assert {d.field for d in error.details} == {"productCode", "date"}


def test_run_never_returns_partial_success():
    result = PRODUCT_SEARCH_PIPELINE.run({"productCode": "OK1", "date": "99/99/9999"})
    assert not result.is_valid
    assert "productCode" in result.values
    with pytest.raises(ServiceError):
        PRODUCT_SEARCH_PIPELINE.validate({"productCode": "OK1", "date": "99/99/9999"})


@pytest.mark.parametrize("payload", [None, [], "productCode=abc", 42])
def test_non_object_payload_is_rejected(payload):
    with pytest.raises(ServiceError) as exc:
        PRODUCT_SEARCH_PIPELINE.validate(payload)
    assert exc.value.details[0].field == "body"


def test_custom_pipeline_with_pricing_rules():
    pipeline = ValidationPipeline([PRICE_RULE, PERCENTAGE_RULE])

    assert pipeline.validate({"price": "10.005", "percentage": 15}) == {"price": 10.01, "percentage": 15.0}

    result = pipeline.run({"price": -1, "percentage": 5000})
    assert [e.field for e in result.errors] == ["price", "percentage"]
