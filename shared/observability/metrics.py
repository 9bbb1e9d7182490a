from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_orders_created_total = Counter(
    "ecomm_orders_created_total",
    "Total orders placed",
    ["payment_method"] # Labels: 'mpesa', 'cash', ...
)

ecomm_order_value = Histogram(
    "ecomm_order_value",
    "Order total (subtotal + shipping) at placement",
    buckets=(100, 500, 1000, 5000, 10000, 50000, 100000)
)

ecomm_order_cancellations_total = Counter(
    "ecomm_order_cancellations_total",
    "Order cancellation attempts",
    ["outcome"] # Labels: 'cancelled', 'NotFound', 'InvalidState', 'Forbidden'
)

ecomm_stk_push_total = Counter(
    "ecomm_stk_push_total",
    "M-Pesa STK push initiations",
    ["status"] # Labels: 'accepted', 'failed'
)

ecomm_reviews_total = Counter(
    "ecomm_reviews_total",
    "Total product reviews submitted"
)
