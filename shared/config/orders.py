import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

# Flat shipping fee charged as a fraction of the subtotal
SHIPPING_RATE = Decimal(os.getenv("SHIPPING_RATE", "0.10"))

# Statuses from which an order can no longer be cancelled
NON_CANCELLABLE_STATUSES = ("shipped", "delivered", "cancelled")

ORDER_NUMBER_ATTEMPTS = 5
