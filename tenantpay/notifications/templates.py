"""
Email Templates

HTML and plain text email templates for payment notifications.
Every builder returns ``(subject, html_body, plain_text_body)``.
"""

from decimal import Decimal
from typing import List, Optional


def format_amount(amount: Optional[Decimal]) -> str:
    if amount is None:
        return "N/A"
    return f"€{Decimal(str(amount)):,.2f}"


# =============================================================================
# BASE TEMPLATE
# =============================================================================

BASE_HTML_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{subject}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
            line-height: 1.6;
            color: #1F2937;
            margin: 0;
            padding: 0;
            background-color: #F3F4F6;
        }}
        .container {{
            max-width: 600px;
            margin: 0 auto;
            padding: 20px;
        }}
        .card {{
            background: white;
            border-radius: 12px;
            padding: 32px;
            box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1);
        }}
        .test-banner {{
            background: #FEF3C7;
            color: #92400E;
            font-weight: 600;
            text-align: center;
            padding: 12px;
            border-radius: 8px;
            margin-bottom: 16px;
        }}
        .title {{
            font-size: 24px;
            font-weight: 700;
            margin: 0 0 16px;
            color: {accent_color};
        }}
        .details {{
            background: #F9FAFB;
            border-radius: 8px;
            padding: 16px 24px;
            margin: 24px 0;
        }}
        .detail-row {{
            display: flex;
            justify-content: space-between;
            padding: 8px 0;
            border-bottom: 1px solid #E5E7EB;
        }}
        .detail-label {{
            color: #6B7280;
        }}
        .detail-value {{
            font-weight: 600;
        }}
        .total {{
            font-size: 18px;
            color: {accent_color};
        }}
        .button {{
            display: inline-block;
            padding: 14px 32px;
            background-color: {accent_color};
            color: white;
            text-decoration: none;
            border-radius: 8px;
            font-weight: 600;
        }}
        .footer {{
            text-align: center;
            color: #6B7280;
            font-size: 12px;
            padding: 20px 0;
        }}
    </style>
</head>
<body>
    <div class="container">
        {test_banner}
        <div class="card">
            {content}
        </div>
        <div class="footer">
            <p>TenantPay Apartments</p>
            <p><a href="{dashboard_url}">Open TenantPay</a></p>
        </div>
    </div>
</body>
</html>
"""

REMINDER_COLOR = "#7C3AED"
CONFIRMATION_COLOR = "#059669"


def _detail_row(label: str, value: str, extra_class: str = "") -> str:
    return f"""
    <div class="detail-row">
        <span class="detail-label">{label}</span>
        <span class="detail-value {extra_class}">{value}</span>
    </div>
    """


def _render(subject: str, content: str, accent_color: str, dashboard_url: str, intended_for: Optional[str]) -> str:
    test_banner = ""
    if intended_for:
        test_banner = f'<div class="test-banner">TEST MODE: email intended for {intended_for}</div>'
    return BASE_HTML_TEMPLATE.format(
        subject=subject,
        content=content,
        accent_color=accent_color,
        dashboard_url=dashboard_url,
        test_banner=test_banner,
    )


# =============================================================================
# PAYMENT REMINDER
# =============================================================================

def build_payment_reminder_email(
    tenant_name: str,
    period_label: str,
    amount: Optional[Decimal],
    property_name: str,
    property_location: Optional[str],
    notice_day: int,
    dashboard_url: str,
    intended_for: Optional[str] = None,
) -> tuple[str, str, str]:
    """
    Build the "rent due soon" email.

    Returns: (subject, html_body, plain_text_body)
    """
    subject = f"Payment Reminder - {period_label}"
    if intended_for:
        subject = f"[TEST] Payment Reminder for {intended_for} - {period_label}"

    amount_text = format_amount(amount)
    due_text = f"{notice_day} {period_label}"

    content = f"""
    <h1 class="title">Payment Reminder</h1>
    <p>Hello <strong>{tenant_name}</strong>,</p>
    <p>This is a reminder for your rent payment for <strong>{period_label}</strong>.</p>
    <div class="details">
        {_detail_row("Property", property_name)}
        {_detail_row("Location", property_location or "N/A")}
        {_detail_row("Month", period_label)}
        {_detail_row("Amount", amount_text, "total")}
    </div>
    <p>Please make sure the payment is made by <strong>{due_text}</strong> to avoid a late payment.</p>
    <p><a href="{dashboard_url}/tenant" class="button">View Payment Details</a></p>
    <p style="color: #6B7280; font-size: 14px;">
        If you have already paid or have any questions, please contact your property manager.
    </p>
    """

    html_body = _render(subject, content, REMINDER_COLOR, dashboard_url, intended_for)

    plain_text_body = "\n".join([
        f"Hello {tenant_name},",
        "",
        f"This is a reminder for your rent payment for {period_label}.",
        "",
        f"Property: {property_name}",
        f"Location: {property_location or 'N/A'}",
        f"Month: {period_label}",
        f"Amount: {amount_text}",
        "",
        f"Please make sure the payment is made by {due_text}.",
        "",
        f"View details: {dashboard_url}/tenant",
    ])

    return subject, html_body, plain_text_body


# =============================================================================
# PAYMENT CONFIRMATION
# =============================================================================

def build_payment_confirmation_email(
    tenant_name: str,
    period_label: str,
    amount: Decimal,
    property_name: str,
    payment_date: str,
    dashboard_url: str,
    intended_for: Optional[str] = None,
) -> tuple[str, str, str]:
    """Confirmation for a single paid obligation."""
    subject = f"Payment Confirmed - {period_label}"
    if intended_for:
        subject = f"[TEST] Payment Confirmed for {intended_for} - {period_label}"

    amount_text = format_amount(amount)

    content = f"""
    <h1 class="title">Payment Confirmed</h1>
    <p>Hello <strong>{tenant_name}</strong>,</p>
    <p>Thank you! Your payment for <strong>{period_label}</strong> has been received and confirmed.</p>
    <div class="details">
        {_detail_row("Property", property_name)}
        {_detail_row("Month", period_label)}
        {_detail_row("Payment date", payment_date)}
        {_detail_row("Amount", amount_text, "total")}
    </div>
    <p><a href="{dashboard_url}/tenant" class="button">View Payment History</a></p>
    """

    html_body = _render(subject, content, CONFIRMATION_COLOR, dashboard_url, intended_for)

    plain_text_body = "\n".join([
        f"Hello {tenant_name},",
        "",
        f"Thank you! Your payment for {period_label} has been received and confirmed.",
        "",
        f"Property: {property_name}",
        f"Month: {period_label}",
        f"Payment date: {payment_date}",
        f"Amount: {amount_text}",
    ])

    return subject, html_body, plain_text_body


def build_bulk_payment_confirmation_email(
    tenant_name: str,
    items: List[dict],
    payment_date: str,
    dashboard_url: str,
    intended_for: Optional[str] = None,
) -> tuple[str, str, str]:
    """
    Confirmation covering several obligations marked paid together.

    ``items`` are dicts with ``period_label``, ``property_name`` and ``amount``.
    """
    total = sum((Decimal(str(item["amount"])) for item in items), Decimal("0"))
    subject = f"Payments Confirmed - {len(items)} payments"
    if intended_for:
        subject = f"[TEST] Payments Confirmed for {intended_for} - {len(items)} payments"

    rows = "".join(
        _detail_row(f"{item['period_label']} - {item['property_name']}", format_amount(item["amount"]))
        for item in items
    )

    content = f"""
    <h1 class="title">Payments Confirmed</h1>
    <p>Hello <strong>{tenant_name}</strong>,</p>
    <p>Thank you! The following {len(items)} payments have been received and confirmed.</p>
    <div class="details">
        {rows}
        {_detail_row("Payment date", payment_date)}
        {_detail_row("Total", format_amount(total), "total")}
    </div>
    <p><a href="{dashboard_url}/tenant" class="button">View Payment History</a></p>
    """

    html_body = _render(subject, content, CONFIRMATION_COLOR, dashboard_url, intended_for)

    plain_text_lines = [
        f"Hello {tenant_name},",
        "",
        f"Thank you! The following {len(items)} payments have been received and confirmed:",
        "",
    ]
    for item in items:
        plain_text_lines.append(
            f"- {item['period_label']} ({item['property_name']}): {format_amount(item['amount'])}"
        )
    plain_text_lines.extend([
        "",
        f"Payment date: {payment_date}",
        f"Total: {format_amount(total)}",
    ])

    return subject, html_body, "\n".join(plain_text_lines)
