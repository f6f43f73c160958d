"""Read-only access to tenants, properties and push tokens."""

from .models import User, Property, PushToken
from .service import TenantDirectory, TenantBillingProfile, PropertyInfo

__all__ = [
    "User",
    "Property",
    "PushToken",
    "TenantDirectory",
    "TenantBillingProfile",
    "PropertyInfo",
]
