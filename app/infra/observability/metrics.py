from prometheus_client import Counter, Histogram, make_asgi_app

# route label uses the route template (/objects/{key}) to keep cardinality low
REQUESTS = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"],
)

LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "route"],
)

MULTIPART_UPLOADS = Counter(
    "multipart_uploads_total",
    "Multipart uploads by final outcome",
    ["outcome"],
)

MULTIPART_PARTS = Counter(
    "multipart_parts_total",
    "Parts uploaded to the object store",
)

MULTIPART_PART_BYTES = Histogram(
    "multipart_part_bytes",
    "Size of uploaded parts in bytes",
    buckets=(
        64 * 1024,
        1024 * 1024,
        5 * 1024 * 1024,
        10 * 1024 * 1024,
        50 * 1024 * 1024,
        100 * 1024 * 1024,
    ),
)

# ASGI app served at /metrics
metrics_app = make_asgi_app()
