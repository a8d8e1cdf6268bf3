# Security Audit - Alerting
#
# Threshold evaluation and best-effort fan-out of alert batches.

from .processor import AlertBatch, AlertProcessor, AlertSender, LoggingAlertSender

__all__ = [
    "AlertBatch",
    "AlertProcessor",
    "AlertSender",
    "LoggingAlertSender",
]
