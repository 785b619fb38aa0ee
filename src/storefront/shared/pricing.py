"""Price summary value object and the policy that derives it from a subtotal."""

from collections.abc import Callable
from dataclasses import dataclass, field

from protean.fields import Float

from storefront.domain import storefront


@storefront.value_object
class Pricing:
    """Financial summary of a cart or an order: subtotal, tax, delivery fee, and grand total."""

    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    grand_total = Float(default=0.0)


@dataclass(frozen=True)
class FlatDeliveryFee:
    """Fee schedule charging a fixed fee on any non-empty order."""

    fee: float = 5.00

    def __call__(self, subtotal: float) -> float:
        return self.fee if subtotal > 0 else 0.0


@dataclass(frozen=True)
class PricingPolicy:
    tax_rate: float = 0.08
    fee_schedule: Callable[[float], float] = field(default_factory=FlatDeliveryFee)

    def summarize(self, subtotal: float) -> Pricing:
        subtotal = round(subtotal, 2)
        tax = round(subtotal * self.tax_rate, 2)
        delivery_fee = round(self.fee_schedule(subtotal), 2)
        return Pricing(
            subtotal=subtotal,
            tax=tax,
            delivery_fee=delivery_fee,
            grand_total=round(subtotal + tax + delivery_fee, 2),
        )
