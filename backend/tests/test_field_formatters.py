"""Tests for application field formatters."""
import pytest

from services.field_formatters import (
    FieldKind,
    NOT_AVAILABLE,
    PLACEHOLDER,
    format_currency,
    format_date,
    format_field,
    format_percent,
    format_phone,
    format_tax_id,
    format_text,
    mask_digits,
    mask_ssn,
    parse_date,
)


class TestDates:
    def test_iso_date_renders_us_format(self):
        assert format_date("2020-01-15") == "01/15/2020"

    def test_iso_datetime_ignores_time(self):
        assert format_date("2020-01-15T10:30:00Z") == "01/15/2020"

    def test_us_dates_accepted(self):
        assert format_date("1/5/2021") == "01/05/2021"
        assert format_date("12-31-1999") == "12/31/1999"

    def test_empty_and_invalid_render_not_available(self):
        assert format_date("") == NOT_AVAILABLE
        assert format_date(None) == NOT_AVAILABLE
        assert format_date("yesterday") == NOT_AVAILABLE
        assert format_date("2021-02-30") == NOT_AVAILABLE

    def test_parse_date_returns_none_for_garbage(self):
        assert parse_date("13/45/2020") is None


class TestTaxId:
    def test_nine_digits_formatted(self):
        assert format_tax_id("123456789") == "12-3456789"

    def test_already_formatted_is_normalized(self):
        assert format_tax_id("12-3456789") == "12-3456789"

    def test_short_value_passes_through(self):
        assert format_tax_id("12345") == "12345"

    def test_empty_is_not_available(self):
        assert format_tax_id("") == NOT_AVAILABLE
        assert format_tax_id("   ") == NOT_AVAILABLE


class TestNumbers:
    def test_currency_groups_thousands(self):
        assert format_currency("1234567") == "$1,234,567"
        assert format_currency("$1,250,000") == "$1,250,000"

    def test_currency_empty(self):
        assert format_currency("") == NOT_AVAILABLE
        assert format_currency("n/a") == NOT_AVAILABLE

    def test_percent_appends_once(self):
        assert format_percent("50") == "50%"
        assert format_percent("50%") == "50%"
        assert format_percent("") == PLACEHOLDER


class TestPhone:
    @pytest.mark.parametrize("raw", ["5551234567", "(555) 123-4567", "1-555-123-4567"])
    def test_us_numbers_formatted(self, raw):
        assert format_phone(raw) == "(555) 123-4567"

    def test_other_numbers_pass_through(self):
        assert format_phone("+44 20 7946 0958") == "+44 20 7946 0958"

    def test_empty_is_placeholder(self):
        assert format_phone("") == PLACEHOLDER


class TestMasking:
    def test_ssn_shows_last_four_only(self):
        masked = mask_ssn("321-54-9876")
        assert masked == "•••-••-9876"
        assert "321" not in masked
        assert "54" not in masked

    def test_short_ssn_fully_masked(self):
        assert mask_ssn("12") == "•••-••-••••"

    def test_account_shows_last_four_only(self):
        masked = mask_digits("000123450042")
        assert masked == "••••0042"
        assert "12345" not in masked

    def test_short_account_fully_masked(self):
        assert mask_digits("123") == "••••••"

    def test_empty_values_are_placeholder(self):
        assert mask_ssn("") == PLACEHOLDER
        assert mask_digits(None) == PLACEHOLDER


def test_text_trims_and_defaults():
    assert format_text("  Acme  ") == "Acme"
    assert format_text("") == PLACEHOLDER
    assert format_text(None) == PLACEHOLDER


def test_format_field_dispatches_by_kind():
    assert format_field(FieldKind.TAX_ID, "123456789") == "12-3456789"
    assert format_field(FieldKind.MASKED_SSN, "123456789") == "•••-••-6789"
    assert format_field(FieldKind.DATE, "") == NOT_AVAILABLE
