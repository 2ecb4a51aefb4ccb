"""Prometheus metrics for Dwolla calls, payouts and webhook intake"""

from prometheus_client import Counter, Histogram

# Dwolla API metrics
dwolla_request_counter = Counter(
    "dwolla_api_requests_total",
    "Requests forwarded to the Dwolla API",
    ["method", "outcome"],  # outcome: ok | client_error | server_error | unreachable
)

dwolla_latency_histogram = Histogram(
    "dwolla_api_latency_seconds",
    "Dwolla API response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

token_refresh_counter = Counter(
    "dwolla_token_refresh_total",
    "OAuth client-credentials grants requested",
    ["outcome"],  # success | rejected | unreachable
)

# Payout metrics
transfer_created_counter = Counter(
    "dashboard_transfers_created_total",
    "Transfers submitted through the dashboard",
)

transfer_detail_failure_counter = Counter(
    "dashboard_transfer_detail_failures_total",
    "Funding source detail fetches that degraded to 'Unknown'",
)

# Webhook metrics
webhook_event_counter = Counter(
    "dashboard_webhook_events_total",
    "Inbound webhook events",
    ["outcome"],  # stored | rejected | failed
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def outcome_for_status(status_code: int) -> str:
    if status_code < 400:
        return "ok"
    if status_code < 500:
        return "client_error"
    return "server_error"
