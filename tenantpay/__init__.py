"""TenantPay - rent payment obligations, reminders and reconciliation."""
