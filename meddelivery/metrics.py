"""
Prometheus metrics: order creations, lifecycle transitions (accepted / rejected), delivery fees.
"""
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

orders_created_total = Counter(
    "orders_created_total",
    "Total medication orders created",
)

order_transitions_total = Counter(
    "order_transitions_total",
    "Total order status transitions committed",
    ["to_status"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total order status transitions rejected, by error code",
    ["reason"],
)

# Rupiah buckets: base fee up to long cross-city runs
delivery_fee_rupiah = Histogram(
    "delivery_fee_rupiah",
    "Delivery fee computed at courier assignment",
    buckets=(5000, 10000, 20000, 40000, 80000, 160000),
)


def get_metrics_content_type():
    return CONTENT_TYPE_LATEST


def get_metrics_bytes():
    return generate_latest()
