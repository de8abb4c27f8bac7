from .audit import AuditSink, SessionAuditSink
from .context import Actor
from .policy import CenterScopeService, ScopeAccessChecker

__all__ = [
    "Actor",
    "AuditSink",
    "CenterScopeService",
    "ScopeAccessChecker",
    "SessionAuditSink",
]
