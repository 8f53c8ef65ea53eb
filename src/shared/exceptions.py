"""Error taxonomy shared by the cart and payment engines.

Two families:

- ``ValidationError`` and its subclasses are synchronous rejections. They are
  never retried automatically and the engine that raised them leaves its state
  untouched.
- ``ServiceUnavailable`` is a transient transport failure (connection error,
  timeout, 5xx). Cart mutations surface it to the caller; the payment poller
  counts it as "not yet confirmed" and keeps polling.
"""

GENERIC_RETRY_MESSAGE = "Something went wrong. Please try again."


class StorefrontError(Exception):
    """Base class for every error raised by the storefront core."""

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__


class ValidationError(StorefrontError):
    """Request rejected before any state changed.

    ``messages`` maps a field to its error messages, e.g.
    ``{"quantity": ["Insufficient stock"]}``. A plain string is filed under
    the class's default ``field``.
    """

    field = "_entity"

    def __init__(self, messages: dict[str, list[str]] | str) -> None:
        if isinstance(messages, str):
            messages = {self.field: [messages]}
        self.messages = messages
        super().__init__(messages)

    @property
    def message(self) -> str:
        return "; ".join(msg for msgs in self.messages.values() for msg in msgs)


class StockExceeded(ValidationError):
    field = "quantity"


class CouponInvalid(ValidationError):
    field = "coupon_code"


class CouponExpired(CouponInvalid):
    pass


class CouponMinimumNotMet(CouponInvalid):
    pass


class InvalidPhoneNumber(ValidationError):
    field = "phone_number"


class InvalidTransition(ValidationError):
    field = "state"


class ApiError(ValidationError):
    """The collaborator API answered with a 4xx and a business message."""

    def __init__(self, message: str, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(message)


class ServiceUnavailable(StorefrontError):
    """Transient transport failure; the caller may safely try again."""

    def __init__(self, message: str = GENERIC_RETRY_MESSAGE, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
