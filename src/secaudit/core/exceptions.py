"""
Security Audit Exception Classes
"""


class AuditError(Exception):
    """Base exception for security audit operations"""
    pass


class ConfigurationError(AuditError):
    """Raised when an audit or alerting configuration is invalid"""
    pass
