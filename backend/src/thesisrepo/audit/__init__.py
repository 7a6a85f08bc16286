"""Audit module for recording document and workflow actions."""

from .service import AuditEvent, AuditSink, LoggingAuditSink, record_audit_event, set_audit_sink

__all__ = ["AuditEvent", "AuditSink", "LoggingAuditSink", "record_audit_event", "set_audit_sink"]
