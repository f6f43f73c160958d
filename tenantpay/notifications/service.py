"""
Notifier - tenant-facing payment notifications.

Email is the primary channel: a notification counts as delivered once the
email provider accepts it. Push is sent afterwards on a best-effort basis and
its failures are only logged.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.config import settings
from tenantpay.directory import TenantBillingProfile, TenantDirectory

from .models import NotificationType
from .templates import (
    build_payment_reminder_email,
    build_payment_confirmation_email,
    build_bulk_payment_confirmation_email,
    format_amount,
)
from .email_provider import EmailProvider, EmailMessage, get_email_provider
from .push_provider import PushProvider, PushMessage, get_push_provider

logger = logging.getLogger(__name__)


class NotificationDeliveryError(Exception):
    """The primary (email) channel could not deliver a notification."""


@dataclass
class DeliveryResult:
    recipient: str
    message_id: Optional[str] = None
    push_sent: int = 0


class Notifier:
    """
    Sends payment reminders and confirmations to tenants.

    Every send method raises ``NotificationDeliveryError`` when the email
    cannot be delivered; callers decide whether that is fatal.
    """

    def __init__(
        self,
        db: AsyncSession,
        directory: Optional[TenantDirectory] = None,
        email_provider: Optional[EmailProvider] = None,
        push_provider: Optional[PushProvider] = None,
    ):
        self.db = db
        self.directory = directory or TenantDirectory(db)
        self.email_provider = email_provider or get_email_provider(
            resend_api_key=settings.RESEND_API_KEY,
            from_email=settings.EMAIL_FROM,
            reply_to=settings.EMAIL_REPLY_TO,
            console_mode=settings.APP_ENV == "development",
        )
        self.push_provider = push_provider or get_push_provider(
            access_token=settings.EXPO_ACCESS_TOKEN,
            console_mode=settings.APP_ENV == "development",
        )
        self.redirect_to = settings.EMAIL_REDIRECT_TO

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _recipient(self, email: str) -> tuple[str, Optional[str]]:
        """Returns (address to send to, original address if redirected)."""
        if self.redirect_to and self.redirect_to != email:
            return self.redirect_to, email
        return email, None

    async def _get_tenant(self, tenant_id: str) -> TenantBillingProfile:
        tenant = await self.directory.get_tenant(tenant_id)
        if not tenant:
            raise NotificationDeliveryError(f"Tenant {tenant_id} not found")
        if not tenant.email:
            raise NotificationDeliveryError(f"Tenant {tenant_id} has no email address")
        return tenant

    async def _send_email(
        self,
        tenant: TenantBillingProfile,
        subject: str,
        html_body: str,
        plain_text_body: str,
        recipient: str,
        ref_id: str,
    ) -> DeliveryResult:
        result = await self.email_provider.send(
            EmailMessage(
                to=recipient,
                subject=subject,
                html_body=html_body,
                plain_text_body=plain_text_body,
                headers={"X-Entity-Ref-ID": ref_id},
            )
        )
        if not result.success:
            raise NotificationDeliveryError(result.error or "Email delivery failed")

        if recipient != tenant.email:
            logger.info(f"Email sent to {recipient} (intended for {tenant.email})")
        else:
            logger.info(f"Email sent to {tenant.email}")
        return DeliveryResult(recipient=recipient, message_id=result.message_id)

    async def _send_push(self, tenant_id: str, title: str, body: str, data: dict) -> int:
        """Best effort; never raises for delivery problems."""
        tokens = await self.directory.get_push_tokens(tenant_id)
        if not tokens:
            logger.debug(f"No active push tokens for tenant {tenant_id}")
            return 0

        result = await self.push_provider.send(
            PushMessage(tokens=tokens, title=title, body=body, data=data)
        )
        if not result.success:
            logger.warning(f"Failed to send push notification to {tenant_id}: {result.error}")
        return result.sent

    # ==========================================================================
    # Reminders
    # ==========================================================================

    async def send_payment_reminder(
        self,
        tenant_id: str,
        period_label: str,
        amount: Optional[Decimal],
        property_name: str,
        property_location: Optional[str] = None,
        notice_day: Optional[int] = None,
    ) -> DeliveryResult:
        tenant = await self._get_tenant(tenant_id)
        recipient, intended_for = self._recipient(tenant.email)

        subject, html_body, plain_text_body = build_payment_reminder_email(
            tenant_name=tenant.full_name,
            period_label=period_label,
            amount=amount,
            property_name=property_name,
            property_location=property_location,
            notice_day=notice_day or tenant.notice_day,
            dashboard_url=settings.FRONTEND_URL,
            intended_for=intended_for,
        )
        delivery = await self._send_email(
            tenant, subject, html_body, plain_text_body, recipient,
            ref_id=f"payment-reminder-{tenant_id}-{period_label}",
        )

        delivery.push_sent = await self._send_push(
            tenant_id,
            "Payment Reminder",
            f"Your payment for {period_label} ({format_amount(amount)}) at {property_name} "
            f"is coming up. Please make sure to pay on time.",
            {
                "type": NotificationType.PAYMENT_REMINDER.value,
                "month": period_label,
                "amount": str(amount) if amount is not None else None,
                "property": property_name,
            },
        )
        return delivery

    # ==========================================================================
    # Confirmations
    # ==========================================================================

    async def send_payment_confirmation(
        self,
        tenant_id: str,
        period_label: str,
        amount: Decimal,
        property_name: str,
        payment_date: date,
    ) -> DeliveryResult:
        tenant = await self._get_tenant(tenant_id)
        recipient, intended_for = self._recipient(tenant.email)

        subject, html_body, plain_text_body = build_payment_confirmation_email(
            tenant_name=tenant.full_name,
            period_label=period_label,
            amount=amount,
            property_name=property_name,
            payment_date=payment_date.isoformat(),
            dashboard_url=settings.FRONTEND_URL,
            intended_for=intended_for,
        )
        delivery = await self._send_email(
            tenant, subject, html_body, plain_text_body, recipient,
            ref_id=f"payment-confirmation-{tenant_id}-{period_label}",
        )

        delivery.push_sent = await self._send_push(
            tenant_id,
            "Payment Confirmed",
            f"Thank you! Your payment for {period_label} ({format_amount(amount)}) "
            f"has been received and confirmed.",
            {
                "type": NotificationType.PAYMENT_CONFIRMATION.value,
                "month": period_label,
                "amount": str(amount),
                "property": property_name,
                "paymentDate": payment_date.isoformat(),
            },
        )
        return delivery

    async def send_bulk_payment_confirmation(
        self,
        tenant_id: str,
        items: List[dict],
        payment_date: date,
    ) -> DeliveryResult:
        """
        One confirmation for several obligations of the same tenant.

        ``items`` are dicts with ``period_label``, ``property_name`` and ``amount``.
        """
        tenant = await self._get_tenant(tenant_id)
        recipient, intended_for = self._recipient(tenant.email)

        subject, html_body, plain_text_body = build_bulk_payment_confirmation_email(
            tenant_name=tenant.full_name,
            items=items,
            payment_date=payment_date.isoformat(),
            dashboard_url=settings.FRONTEND_URL,
            intended_for=intended_for,
        )
        delivery = await self._send_email(
            tenant, subject, html_body, plain_text_body, recipient,
            ref_id=f"payment-confirmation-bulk-{tenant_id}-{payment_date.isoformat()}",
        )

        months = ", ".join(item["period_label"] for item in items)
        delivery.push_sent = await self._send_push(
            tenant_id,
            "Payments Confirmed",
            f"Thank you! Your payments for {months} have been received and confirmed.",
            {
                "type": NotificationType.PAYMENT_CONFIRMATION.value,
                "months": [item["period_label"] for item in items],
                "paymentDate": payment_date.isoformat(),
            },
        )
        return delivery
