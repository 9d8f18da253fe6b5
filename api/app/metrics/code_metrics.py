"""Prometheus metrics for the code issuance and delivery pipeline.

Provides observability into:
- Trigger comment outcomes (issued, reused, ignored, aborted, failed)
- Notification delivery failures per effect (push, message)
- Retrieval/deletion API calls by result
"""

from prometheus_client import Counter

# ============================================
# Issuance metrics
# ============================================

TRIGGER_EVENTS = Counter(
    "code_trigger_events_total",
    "Comment events seen by the trigger handler, by outcome",
    ["outcome"],  # issued, reused, no_body, no_match, no_user, no_username, failed
)

# ============================================
# Delivery metrics
# ============================================

NOTIFICATION_FAILURES = Counter(
    "code_notification_failures_total",
    "Failed notification effects after issuance",
    ["effect"],  # push, message
)

MESSAGES_SKIPPED = Counter(
    "code_private_messages_skipped_total",
    "Private messages not sent because no host platform is configured",
)

# ============================================
# API metrics
# ============================================

CODE_API_REQUESTS = Counter(
    "code_api_requests_total",
    "Retrieval and deletion API calls by result",
    ["endpoint", "result"],  # endpoint: retrieve, delete; result: available, unavailable, deleted, unauthenticated, error
)
