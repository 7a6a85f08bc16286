"""Prometheus metrics for the thesis repository.

Defines operational counters for the document lifecycle.
"""

from prometheus_client import Counter, Histogram

# Storage metrics
documents_uploaded_total = Counter(
    "thesisrepo_documents_uploaded_total",
    "Total number of document uploads",
    ["backend", "status"]  # status: success|error
)

storage_fallbacks_total = Counter(
    "thesisrepo_storage_fallbacks_total",
    "Uploads that fell back to local storage",
    ["primary_backend", "reason"]  # reason: unconfigured|remote_failure
)

staging_cleanup_failures_total = Counter(
    "thesisrepo_staging_cleanup_failures_total",
    "Staging files that could not be deleted after a remote upload",
    ["backend"]
)

upload_duration_seconds = Histogram(
    "thesisrepo_upload_duration_seconds",
    "Time spent uploading a document to the active backend",
    ["backend"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Retrieval metrics
documents_resolved_total = Counter(
    "thesisrepo_documents_resolved_total",
    "Document retrievals by intent and outcome",
    ["intent", "outcome"]  # outcome: served|redirected|recovered|not_found|integrity_failure
)

# Workflow metrics
thesis_transitions_total = Counter(
    "thesisrepo_thesis_transitions_total",
    "Thesis status transitions",
    ["to_status", "outcome"]  # outcome: applied|rejected|conflict
)

# HTTP metrics
http_request_duration_seconds = Histogram(
    "thesisrepo_http_request_duration_seconds",
    "HTTP request latency by route template",
    ["method", "route", "status_code"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)
