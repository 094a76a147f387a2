"""
Prometheus metrics for oplog tailing.
"""

from prometheus_client import Counter, Gauge

oplog_entries_total = Counter(
    'mongo_oplog_entries_total',
    'Total oplog entries dispatched',
    ['operation']
)

oplog_errors_total = Counter(
    'mongo_oplog_errors_total',
    'Total oplog stream errors',
    ['kind']
)

oplog_retails_total = Counter(
    'mongo_oplog_retails_total',
    'Times tailing was resumed after a transient cursor error'
)

oplog_lag_seconds = Gauge(
    'mongo_oplog_lag_seconds',
    'Lag between the last dispatched oplog entry and now'
)
