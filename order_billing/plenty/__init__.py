from order_billing.plenty.client import PlentyClient
from order_billing.plenty.errors import PlentyApiError, PlentyErrorKind

__all__ = [
    "PlentyApiError",
    "PlentyClient",
    "PlentyErrorKind",
]
