"""Duka storefront command-line tools.

Usage:
    python src/manage.py normalize-phone 0712345678 "+254 112 345 678"
    python src/manage.py cart                  # Show the locally cached cart
    python src/manage.py pay ORDER_ID AMOUNT PHONE [--fake]
"""

import argparse
import asyncio
import sys
from decimal import Decimal, InvalidOperation

from shared.config import get_settings
from shared.exceptions import InvalidPhoneNumber, StorefrontError
from shared.logging import add_context, clear_context, configure_logging
from shared.money import format_money

from payments.gateway.port import PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING
from payments.mpesa.events import PaymentStateChanged
from payments.mpesa.phone import PhoneNumber, normalize_phone
from payments.mpesa.session import PaymentState
from storefront import build_storefront


def normalize_phones(numbers: list[str]) -> int:
    """Print the normalised form of each number; non-zero exit if any is invalid."""
    exit_code = 0
    for raw in numbers:
        try:
            phone = PhoneNumber.parse(raw)
        except InvalidPhoneNumber as e:
            print(f"{raw!r}: {normalize_phone(raw) or '-'}  INVALID ({e.message})")
            exit_code = 1
        else:
            print(f"{raw!r}: {phone.digits}  {phone.display}")
    return exit_code


def show_cart(settings) -> int:
    """Print the cart cached in the storage directory."""
    if settings.STORAGE_DIR is None:
        print("DUKA_STORAGE_DIR is not set; there is no cached cart to show.")
        return 1

    storefront = build_storefront(settings, fake=True)
    cart = storefront.cart.cart
    currency = settings.CURRENCY

    if cart.is_empty:
        print("Cart is empty.")
        return 0

    print(f"Cart ({storefront.cart.mode.value}):")
    for item in cart.items:
        options = ", ".join(f"{o.name}={o.value}" for o in item.selected_options)
        label = f"{item.product.name or item.product_id}" + (f" [{options}]" if options else "")
        print(f"  {item.quantity} x {label} @ {format_money(item.unit_price, currency)}")

    summary = storefront.cart.summary()
    print(f"  Subtotal: {format_money(summary.subtotal, currency)}")
    if summary.coupon_code:
        print(f"  Discount ({summary.coupon_code}): -{format_money(summary.discount, currency)}")
    print(f"  Shipping: {format_money(summary.shipping, currency)}")
    print(f"  Tax:      {format_money(summary.tax, currency)}")
    print(f"  Total:    {format_money(summary.total, currency)}")
    return 0


async def pay(
    settings,
    order_id: str,
    amount: Decimal,
    phone: str,
    *,
    fake: bool = False,
    fake_status: str = PAYMENT_COMPLETED,
) -> int:
    """Push an STK payment prompt and follow it to a final outcome."""
    storefront = build_storefront(settings, fake=fake)
    if fake:
        storefront.payment_gateway.configure(statuses=[PAYMENT_PENDING, fake_status])

    engine = storefront.payment(order_id, amount)
    add_context(order_id=order_id)

    def report(event: PaymentStateChanged) -> None:
        session = event.session
        line = f"[{session.state.value}]"
        if session.state is PaymentState.AWAITING_CONFIRMATION:
            line += f" Check your phone {PhoneNumber.parse(session.phone).display} and enter your M-Pesa PIN"
        elif session.failure_reason:
            line += f" {session.failure_reason}"
        print(line)

    engine.subscribe(report)
    try:
        await engine.submit(phone)
        session = await engine.wait()
    except StorefrontError as e:
        print(f"Payment not started: {e.message}")
        return 1
    except asyncio.CancelledError:
        # Ctrl-C under asyncio.run arrives here as a cancellation of the main task
        engine.cancel()
        print("Payment confirmation cancelled.")
        return 130
    finally:
        clear_context()
        await storefront.aclose()

    if session.state is PaymentState.SUCCEEDED:
        print(f"Paid {format_money(session.amount, settings.CURRENCY)} (transaction {session.transaction_id})")
        return 0
    return 1


def _amount(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"invalid amount: {value!r}") from None
    if amount <= 0:
        raise argparse.ArgumentTypeError("amount must be positive")
    return amount


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Duka storefront tools")
    subparsers = parser.add_subparsers(dest="command", required=True)

    phone_parser = subparsers.add_parser("normalize-phone", help="Normalise M-Pesa phone numbers")
    phone_parser.add_argument("numbers", nargs="+", help="Phone numbers as a customer would type them")

    subparsers.add_parser("cart", help="Show the locally cached cart")

    pay_parser = subparsers.add_parser("pay", help="Pay an order with an M-Pesa STK push")
    pay_parser.add_argument("order_id")
    pay_parser.add_argument("amount", type=_amount)
    pay_parser.add_argument("phone")
    pay_parser.add_argument("--fake", action="store_true", help="Use the in-memory gateway instead of the API")
    pay_parser.add_argument(
        "--fake-status",
        choices=[PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_PENDING],
        default=PAYMENT_COMPLETED,
        help="Final status the fake gateway reports (default: completed)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.ENVIRONMENT, settings.LOG_LEVEL, settings.LOG_DIR)

    if args.command == "normalize-phone":
        return normalize_phones(args.numbers)
    if args.command == "cart":
        return show_cart(settings)
    if args.command == "pay":
        try:
            return asyncio.run(
                pay(settings, args.order_id, args.amount, args.phone, fake=args.fake, fake_status=args.fake_status)
            )
        except KeyboardInterrupt:
            return 130

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
