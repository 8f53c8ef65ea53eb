"""Tests for M-Pesa phone number normalisation."""

import pytest
from shared.exceptions import InvalidPhoneNumber

from payments.mpesa.phone import KENYA, PhoneNumber, PhoneNumberPlan, display_phone, is_valid_phone, normalize_phone


class TestNormalize:
    @pytest.mark.parametrize(
        "raw",
        ["0712345678", "+254712345678", "254712345678", "712345678", "0712 345 678", "+254 (712) 345-678"],
    )
    def test_local_spellings_normalise_to_international(self, raw):
        assert normalize_phone(raw) == "254712345678"

    def test_airtel_style_number(self):
        assert normalize_phone("0112345678") == "254112345678"

    def test_excess_digits_are_cut(self):
        assert normalize_phone("2547123456789999") == "254712345678"
        assert normalize_phone("07123456789") == "254712345678"

    def test_unknown_prefix_is_kept_as_typed(self):
        assert normalize_phone("0812345678") == "254812345678"
        assert normalize_phone("44207946000012") == "442079460000"

    def test_empty_input(self):
        assert normalize_phone("") == ""
        assert normalize_phone("abc") == ""


class TestValidation:
    def test_valid(self):
        assert is_valid_phone("254712345678")
        assert is_valid_phone("254112345678")

    @pytest.mark.parametrize("number", ["254812345678", "25471234567", "2547123456789", "", "0712345678"])
    def test_invalid(self, number):
        assert not is_valid_phone(number)

    def test_parse_rejects_invalid_lead_digit(self):
        with pytest.raises(InvalidPhoneNumber) as exc:
            PhoneNumber.parse("0812345678")
        assert exc.value.message == "Please enter a valid Kenyan phone number"
        assert exc.value.messages == {"phone_number": ["Please enter a valid Kenyan phone number"]}

    def test_parse(self):
        phone = PhoneNumber.parse("0712 345 678")
        assert str(phone) == "254712345678"
        assert phone.display == "+254 712 345 678"


class TestDisplay:
    def test_display(self):
        assert display_phone("254712345678") == "+254 712 345 678"

    def test_foreign_number_shown_as_is(self):
        assert display_phone("0712345678") == "0712345678"


class TestOtherPlans:
    def test_plan_parameters(self):
        uganda = PhoneNumberPlan(country_code="256", lead_digits="7", national_length=9, country_name="Ugandan")
        assert normalize_phone("0772 123 456", uganda) == "256772123456"
        assert is_valid_phone("256772123456", uganda)
        assert not is_valid_phone("256772123456", KENYA)
        with pytest.raises(InvalidPhoneNumber, match="Ugandan"):
            PhoneNumber.parse("0312 123 456", uganda)
