"""Cart gateway registry.

Provides get_gateway() / set_gateway() for engines built without an explicit
gateway. Nothing is registered by default:
- HttpCartGateway against the storefront REST API (see ``storefront.build_storefront``)
- FakeCartGateway for development and testing
"""

from ordering.gateway.port import CartGateway

_current_gateway: CartGateway | None = None


def get_gateway() -> CartGateway:
    """Return the registered cart gateway; LookupError if none is set."""
    if _current_gateway is None:
        raise LookupError("No cart gateway configured; pass one to CartEngine or call set_gateway()")
    return _current_gateway


def set_gateway(gateway: CartGateway) -> None:
    """Register the cart gateway used by engines built without one."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Forget the registered gateway."""
    global _current_gateway
    _current_gateway = None
