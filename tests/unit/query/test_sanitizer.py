"""Unit tests for literal rendering, identifier quoting and type coercion."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from dbanalyst.query.sanitizer import coerce_value, quote_identifier, sanitize_value


class TestSanitizeValue:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "NULL"),
            (True, "TRUE"),
            (False, "FALSE"),
            (42, "42"),
            (3.5, "3.5"),
            (Decimal("10.25"), "10.25"),
            ("active", "'active'"),
            ("O'Brien", "'O''Brien'"),
            ("'; DROP TABLE projects; --", "'''; DROP TABLE projects; --'"),
            (date(2024, 1, 31), "'2024-01-31'"),
        ],
    )
    def test_literals(self, value, expected):
        assert sanitize_value(value) == expected


class TestQuoteIdentifier:
    def test_wraps_in_double_quotes(self):
        assert quote_identifier("technician_id") == '"technician_id"'

    def test_doubles_embedded_quotes(self):
        assert quote_identifier('odd"name') == '"odd""name"'


class TestCoerceValue:
    def test_passthrough_without_type(self):
        assert coerce_value("42", None) == "42"
        assert coerce_value(None, "integer") is None

    def test_integer(self):
        assert coerce_value("42", "integer") == 42
        assert coerce_value(7.0, "bigint") == 7
        assert coerce_value(5, "smallint") == 5

    def test_numeric_becomes_decimal(self):
        assert coerce_value("10.50", "numeric") == Decimal("10.50")
        assert coerce_value(3, "numeric") == Decimal("3")

    def test_double_precision(self):
        assert coerce_value("2.5", "double precision") == 2.5
        assert coerce_value(2, "real") == 2.0

    def test_boolean_strings(self):
        assert coerce_value("yes", "boolean") is True
        assert coerce_value("F", "boolean") is False

    def test_dates_and_timestamps(self):
        assert coerce_value("2024-03-01", "date") == date(2024, 3, 1)
        assert coerce_value("2024-03-01T10:30:00", "date") == date(2024, 3, 1)
        assert coerce_value("2024-03-01 10:30:00", "timestamp without time zone") == datetime(
            2024, 3, 1, 10, 30
        )

    def test_text_columns_get_strings(self):
        assert coerce_value("abc", "character varying") == "abc"
        assert coerce_value(5, "text") == "5"
        assert coerce_value(7, "character varying") == "7"
        assert coerce_value(Decimal("2.50"), "varchar") == "2.50"
        assert coerce_value(True, "character") == "true"
        assert coerce_value(None, "text") is None

    @pytest.mark.parametrize(
        ("value", "data_type"),
        [
            ("abc", "integer"),
            ("ten", "numeric"),
            ("maybe", "boolean"),
            ("yesterday", "date"),
            ("not a time", "timestamp with time zone"),
        ],
    )
    def test_invalid_values_raise(self, value, data_type):
        with pytest.raises(ValueError):
            coerce_value(value, data_type)
