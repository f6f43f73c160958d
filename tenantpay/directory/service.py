"""
Tenant Directory - read-only view of tenant billing profiles and properties.

The payments core never writes users or properties. Everything it needs
(monthly rate, notice day, linked properties, contact details) is exposed
through plain dataclasses so the generator and scheduler can be exercised
without a database.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User, Property, PushToken


@dataclass
class TenantBillingProfile:
    """Billing-relevant slice of a tenant record."""
    tenant_id: str
    monthly_rate: Optional[Decimal]
    notice_day: Optional[int]
    property_ids: List[str] = field(default_factory=list)
    email: Optional[str] = None
    name: str = ""
    surname: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}".strip() if self.surname else self.name

    def is_linked_to(self, property_id: str) -> bool:
        return str(property_id) in self.property_ids

    @property
    def has_billable_rate(self) -> bool:
        return self.monthly_rate is not None and self.monthly_rate > 0


@dataclass
class PropertyInfo:
    id: str
    name: str
    address: Optional[str] = None
    location: Optional[str] = None


def _to_profile(user: User) -> TenantBillingProfile:
    return TenantBillingProfile(
        tenant_id=user.id,
        monthly_rate=Decimal(str(user.monthly_rate)) if user.monthly_rate is not None else None,
        notice_day=user.notice_day,
        # property_ids is a JSON array; older rows stored integers
        property_ids=[str(pid) for pid in (user.property_ids or [])],
        email=user.email,
        name=user.name,
        surname=user.surname,
    )


class TenantDirectory:
    """Lookup service over the users and properties tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_tenant(self, tenant_id: str) -> Optional[TenantBillingProfile]:
        """Return the billing profile for a tenant, or None if no such tenant."""
        result = await self.db.execute(
            select(User).where(User.id == tenant_id, User.role == "tenant")
        )
        user = result.scalar_one_or_none()
        return _to_profile(user) if user else None

    async def get_property(self, property_id: str) -> Optional[PropertyInfo]:
        result = await self.db.execute(select(Property).where(Property.id == property_id))
        prop = result.scalar_one_or_none()
        if not prop:
            return None
        return PropertyInfo(id=prop.id, name=prop.name, address=prop.address, location=prop.location)

    async def list_reminder_profiles(self) -> List[TenantBillingProfile]:
        """All tenants that have a notice day configured."""
        result = await self.db.execute(
            select(User)
            .where(User.role == "tenant")
            .where(User.notice_day.is_not(None))
            .order_by(User.id)
        )
        return [_to_profile(user) for user in result.scalars().all()]

    async def get_push_tokens(self, user_id: str) -> List[str]:
        """Active Expo push tokens for a user."""
        result = await self.db.execute(
            select(PushToken.push_token)
            .where(PushToken.user_id == user_id)
            .where(PushToken.is_active == True)  # noqa: E712
        )
        return [row[0] for row in result.fetchall()]
