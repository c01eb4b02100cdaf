"""Prometheus metrics for the voting API."""
from prometheus_client import Counter, Histogram

vote_counter = Counter(
    "votes_cast_total",
    "Total number of votes recorded"
)
vote_rejections = Counter(
    "vote_rejections_total",
    "Total number of rejected vote attempts",
    ["reason"]
)
admin_actions = Counter(
    "admin_actions_total",
    "Total number of admin actions",
    ["action", "outcome"]
)
teams_registered = Counter(
    "teams_registered_total",
    "Total number of registered teams"
)
request_duration = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status"]
)
