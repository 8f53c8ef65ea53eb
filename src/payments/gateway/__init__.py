"""Mobile-money gateway registry.

Provides get_gateway() / set_gateway() for engines built without an explicit
gateway. Nothing is registered by default:
- HttpMpesaGateway against the storefront payments API
- FakeMpesaGateway for development and testing
"""

from payments.gateway.port import MobileMoneyGateway

_current_gateway: MobileMoneyGateway | None = None


def get_gateway() -> MobileMoneyGateway:
    """Return the registered mobile-money gateway; LookupError if none is set."""
    if _current_gateway is None:
        raise LookupError("No mobile-money gateway configured; pass one to the engine or call set_gateway()")
    return _current_gateway


def set_gateway(gateway: MobileMoneyGateway) -> None:
    """Register the mobile-money gateway used by engines built without one."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Forget the registered gateway."""
    global _current_gateway
    _current_gateway = None
