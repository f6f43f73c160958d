"""Daily payment reminders."""
