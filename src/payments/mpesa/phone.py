"""Mobile-money phone number normalisation.

Payers type numbers in every local spelling: ``0712 345 678``,
``+254 712 345 678``, ``712345678``. The STK push API wants the bare
international form ``254712345678``. ``normalize_phone`` rewrites any of the
spellings into that form; validation is a separate, strict check against the
numbering plan.
"""

import re
from dataclasses import dataclass
from functools import cached_property

from shared.exceptions import InvalidPhoneNumber

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class PhoneNumberPlan:
    """A country's mobile numbering rules. Defaults describe Kenya."""

    country_code: str = "254"
    trunk_prefix: str = "0"
    lead_digits: str = "17"
    national_length: int = 9
    country_name: str = "Kenyan"

    @property
    def full_length(self) -> int:
        return len(self.country_code) + self.national_length

    @cached_property
    def pattern(self) -> re.Pattern[str]:
        return re.compile(rf"^{self.country_code}[{self.lead_digits}]\d{{{self.national_length - 1}}}$")

    @property
    def invalid_message(self) -> str:
        return f"Please enter a valid {self.country_name} phone number"


KENYA = PhoneNumberPlan()


def normalize_phone(raw: str, plan: PhoneNumberPlan = KENYA) -> str:
    """Rewrite a typed phone number into international digits (no ``+``).

    The result is not guaranteed valid; check it with ``is_valid_phone``.
    """
    digits = _NON_DIGITS.sub("", raw or "")

    if digits.startswith(plan.country_code):
        return digits[: plan.full_length]
    if plan.trunk_prefix and digits.startswith(plan.trunk_prefix):
        start = len(plan.trunk_prefix)
        return plan.country_code + digits[start : start + plan.national_length]
    if digits and digits[0] in plan.lead_digits:
        return plan.country_code + digits[: plan.national_length]

    return digits[: plan.full_length]


def is_valid_phone(number: str, plan: PhoneNumberPlan = KENYA) -> bool:
    return plan.pattern.match(number) is not None


def display_phone(number: str, plan: PhoneNumberPlan = KENYA) -> str:
    """``254712345678`` → ``+254 712 345 678``; anything else is returned as-is."""
    if not number.startswith(plan.country_code):
        return number
    national = number[len(plan.country_code) :]
    groups = [national[i : i + 3] for i in range(0, len(national), 3)]
    return " ".join([f"+{plan.country_code}", *groups])


@dataclass(frozen=True)
class PhoneNumber:
    digits: str
    plan: PhoneNumberPlan = KENYA

    @classmethod
    def parse(cls, raw: str, plan: PhoneNumberPlan = KENYA) -> "PhoneNumber":
        digits = normalize_phone(raw, plan)
        if not is_valid_phone(digits, plan):
            raise InvalidPhoneNumber(plan.invalid_message)
        return cls(digits=digits, plan=plan)

    @property
    def display(self) -> str:
        return display_phone(self.digits, self.plan)

    def __str__(self) -> str:
        return self.digits
