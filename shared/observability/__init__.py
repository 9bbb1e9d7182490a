from .setup import setup_observability
from .metrics import (
    ecomm_orders_created_total,
    ecomm_order_value,
    ecomm_order_cancellations_total,
    ecomm_stk_push_total,
    ecomm_reviews_total
)
