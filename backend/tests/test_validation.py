from datetime import datetime

import pytest

from possync.time_utils import EPOCH
from possync.validation import ValidationError, parse_since, validate_push_payload


def validate(payload):
    return validate_push_payload(payload, max_batch_size=10)


def test_only_present_groups_are_returned(app):
    groups = validate({"items": [{"id": "a", "name": "Tea"}]})
    assert list(groups) == ["items"]


def test_payload_must_be_object(app):
    with pytest.raises(ValidationError):
        validate(["items"])


def test_group_must_be_list(app):
    with pytest.raises(ValidationError, match="items must be a list"):
        validate({"items": {"id": "a"}})


def test_record_requires_id(app):
    with pytest.raises(ValidationError, match=r"customers\[1\]: id is required"):
        validate({"customers": [{"id": "c1", "name": "A"}, {"name": "B"}]})


def test_batch_size_limit(app):
    with pytest.raises(ValidationError, match="max batch size"):
        validate({"items": [{"id": str(i), "name": "x"} for i in range(11)]})


def test_uncoercible_number_rejected(app):
    with pytest.raises(ValidationError, match="price must be a number"):
        validate({"items": [{"id": "a", "name": "Tea", "price": "cheap"}]})


def test_fields_are_coerced_and_unknown_fields_dropped(app):
    record = validate({"items": [{
        "id": 42,
        "name": " Tea ",
        "price": "3.25",
        "recommended": 1,
        "barcode": "",
        "updated_at": "2024-03-01T10:00:00.123456+02:00",
        "synced": False,
        "image_url": "img/tea.png",
    }]})["items"][0]

    assert record["id"] == "42"
    assert record["name"] == "Tea"
    assert record["price"] == 3.25
    assert record["recommended"] is True
    assert record["barcode"] is None
    assert record["updated_at"] == datetime(2024, 3, 1, 8, 0, 0, 123000)
    assert record["image_path"] == "img/tea.png"
    assert "synced" not in record


def test_transaction_aliases(app):
    record = validate({"transactions": [{
        "id": "t1",
        "receipt_file_path": "receipts/t1.pdf",
        "line_items": [{"item_id": "i1", "quantity": 2, "price": 1.5, "total": 3}],
    }]})["transactions"][0]

    assert record["receipt_path"] == "receipts/t1.pdf"
    assert record["lines"] == [{"item_id": "i1", "quantity": 2.0, "unit_price": 1.5, "line_total": 3.0}]


def test_bad_line_rejected(app):
    with pytest.raises(ValidationError, match=r"transactions\[0\]: lines\[0\]"):
        validate({"transactions": [{"id": "t1", "lines": [{"quantity": "lots"}]}]})


def test_integer_column_rejects_fraction(app):
    with pytest.raises(ValidationError, match="item_count must be an integer"):
        validate({"transactions": [{"id": "t1", "item_count": 1.5}]})


@pytest.mark.parametrize("value", [None, "", 0])
def test_since_defaults_to_epoch(value):
    assert parse_since(value) == EPOCH


def test_since_accepts_iso_and_epoch_millis():
    assert parse_since("2024-03-01T10:00:00Z") == datetime(2024, 3, 1, 10, 0, 0)
    assert parse_since(1709287200000) == datetime(2024, 3, 1, 10, 0, 0)


def test_since_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_since("yesterday")


@pytest.mark.parametrize("value", [False, True])
def test_since_rejects_booleans(value):
    with pytest.raises(ValidationError, match="since must be an ISO-8601 timestamp"):
        parse_since(value)
