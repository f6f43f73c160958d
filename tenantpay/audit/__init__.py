"""Audit trail for payment record changes."""
from tenantpay.audit.models import AuditLog
from tenantpay.audit.services import AuditService

__all__ = ["AuditLog", "AuditService"]
