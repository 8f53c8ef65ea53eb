"""Cart line items and the product facts they capture.

A LineItem's identity inside a cart is ``(product_id, selected_options)``:
adding the same product with the same options merges by summing quantity,
while a different option selection is a separate line. Options are kept in a
normalised (sorted) order so the order in which a UI lists them never splits
a line in two.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Product(BaseModel):
    """The catalogue facts the cart needs about a product.

    Captured on every LineItem so stock checks on later updates (and during
    reconciliation) do not need a catalogue round-trip.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: str = ""
    price: Decimal = Field(ge=0)
    track_quantity: bool = False
    available_quantity: int | None = Field(default=None, ge=0)

    def allows(self, quantity: int) -> bool:
        """Whether ``quantity`` units fit within tracked stock."""
        if not self.track_quantity or self.available_quantity is None:
            return True
        return quantity <= self.available_quantity


class VariantOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


OptionsInput = Iterable[VariantOption | tuple[str, str] | Mapping[str, str]] | Mapping[str, str]
Options = tuple[VariantOption, ...]


def normalize_options(options: OptionsInput | None) -> Options:
    """Turn any accepted option spelling into a sorted tuple of VariantOption.

    Accepts VariantOption instances, ``(name, value)`` pairs,
    ``{"name": ..., "value": ...}`` dicts, or a single ``{name: value}`` mapping.
    """
    if not options:
        return ()

    if isinstance(options, Mapping):
        pairs = [VariantOption(name=str(k), value=str(v)) for k, v in options.items()]
    else:
        pairs = []
        for option in options:
            if isinstance(option, VariantOption):
                pairs.append(option)
            elif isinstance(option, Mapping):
                pairs.append(VariantOption(name=str(option["name"]), value=str(option["value"])))
            else:
                name, value = option
                pairs.append(VariantOption(name=str(name), value=str(value)))

    return tuple(sorted(set(pairs), key=lambda o: (o.name, o.value)))


class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product: Product
    unit_price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    selected_options: Options = ()

    @field_validator("selected_options")
    @classmethod
    def _sort_options(cls, value: Options) -> Options:
        return normalize_options(value)

    @classmethod
    def create(cls, product: Product, quantity: int, options: OptionsInput | None = None) -> "LineItem":
        return cls(
            product=product,
            unit_price=product.price,
            quantity=quantity,
            selected_options=normalize_options(options),
        )

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def key(self) -> tuple[str, Options]:
        return (self.product.id, self.selected_options)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def matches(self, product_id: str, options: Options) -> bool:
        return self.product.id == str(product_id) and self.selected_options == options

    def with_quantity(self, quantity: int) -> "LineItem":
        return self.model_copy(update={"quantity": quantity})
