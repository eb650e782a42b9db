"""
Prometheus metrics configuration
"""
from prometheus_client import (CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge,
                               Histogram, Info, generate_latest)

from jobtrail.core.config import get_settings

# ============================================================================
# HTTP Request Metrics
# ============================================================================

http_requests_total = Counter(
    'http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status_code']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint', 'status_code'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

http_errors_total = Counter(
    'http_errors_total',
    'Total number of HTTP errors',
    ['method', 'endpoint', 'status_code', 'error_type']
)

# ============================================================================
# Database Metrics
# ============================================================================

db_queries_total = Counter(
    'db_queries_total',
    'Total number of database queries',
    ['operation', 'table']  # operation: 'select', 'insert', 'update', 'delete'
)

db_query_duration_seconds = Histogram(
    'db_query_duration_seconds',
    'Database query duration in seconds',
    ['operation', 'table'],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)
)

db_connection_pool_checked_out = Gauge(
    'db_connection_pool_checked_out',
    'Database connections currently checked out of the pool',
    []
)

# ============================================================================
# Job Application Metrics
# ============================================================================

applications_created_total = Counter(
    'applications_created_total',
    'Total number of job applications created',
    ['status']
)

application_status_changes_total = Counter(
    'application_status_changes_total',
    'Total number of job application status transitions',
    ['from_status', 'to_status']
)

# ============================================================================
# Report Metrics
# ============================================================================

reports_generated_total = Counter(
    'reports_generated_total',
    'Total number of reports generated',
    ['source']  # source: 'saved', 'ad_hoc', 'share', 'export'
)

shared_report_views_total = Counter(
    'shared_report_views_total',
    'Total number of public shared report views',
    ['outcome']  # outcome: 'granted', 'expired', 'revoked', 'invalid_password', 'email_denied', 'not_found'
)

# ============================================================================
# Advisor Metrics
# ============================================================================

advisor_messages_total = Counter(
    'advisor_messages_total',
    'Total number of advisor relationship messages sent',
    []
)

advisor_relationship_transitions_total = Counter(
    'advisor_relationship_transitions_total',
    'Advisor relationship status transitions',
    ['status']
)

# ============================================================================
# External API Metrics
# ============================================================================

external_api_calls_total = Counter(
    'external_api_calls_total',
    'Total number of outbound calls to external services',
    ['service', 'outcome']  # outcome: 'success', 'failure', 'rate_limited'
)

external_api_call_duration_seconds = Histogram(
    'external_api_call_duration_seconds',
    'Outbound external API call duration in seconds',
    ['service'],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0)
)

# ============================================================================
# System Info
# ============================================================================

app_info = Info(
    'app_info',
    'Application information'
)

_settings = get_settings()
app_info.info({
    'app_name': _settings.app_name,
    'app_env': _settings.app_env,
    'version': _settings.app_version,
})


def get_metrics():
    """
    Get Prometheus metrics in text format

    Returns:
        bytes: Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type():
    return CONTENT_TYPE_LATEST
