from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

BILLING_CALL_DURATION = Histogram(
    "billing_call_duration_seconds",
    "Downstream billing system call duration",
    ["action", "status"],
)
AI_CALL_COUNT = Counter(
    "ai_helper_calls_total",
    "Generative model calls",
    ["helper", "status"],
)


def observe_billing_call(action: str, status: str, duration: float) -> None:
    BILLING_CALL_DURATION.labels(action=action, status=status).observe(duration)


def observe_ai_call(helper: str, status: str) -> None:
    AI_CALL_COUNT.labels(helper=helper, status=status).inc()
