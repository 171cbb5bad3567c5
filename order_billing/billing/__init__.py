from order_billing.billing.basis import CalculationBasis, ChargeType, OrderFacts
from order_billing.billing.charges import ChargeEngine, ChargeLine, ChargeRule
from order_billing.billing.shipping import ShippingRate, ShippingRateLookup

__all__ = [
    "CalculationBasis",
    "ChargeEngine",
    "ChargeLine",
    "ChargeRule",
    "ChargeType",
    "OrderFacts",
    "ShippingRate",
    "ShippingRateLookup",
]
