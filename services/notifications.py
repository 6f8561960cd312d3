from __future__ import annotations

from datetime import date
from typing import Any, Mapping, Optional

from core.settings import LOCALE, REMINDERS, LocaleSettings, ReminderSettings
from datetime_utils import days_between, parse_day
from services.errors import ValidationFailure
from services.notification_queue import NotificationQueue
from services.results import Result
from services.templates import render_template


class NotificationService:
    """Renders customer notifications and hands them to the queue."""

    def __init__(
        self,
        queue: NotificationQueue,
        *,
        locale: LocaleSettings = LOCALE,
        reminders: ReminderSettings = REMINDERS,
    ) -> None:
        self.queue = queue
        self.locale = locale
        self.reminders = reminders

    def notify(
        self,
        kind: str,
        recipient: Optional[str],
        data: Mapping[str, Any],
        *,
        category: str,
        priority: str = "normal",
    ) -> Result:
        try:
            body = render_template(kind, data, self.locale)
        except ValidationFailure as exc:
            return Result.fail(exc)
        return self.queue.enqueue(recipient or "", body, category=category, priority=priority)

    def send_welcome(self, customer: Mapping[str, Any], *, today: Optional[date] = None) -> Result:
        data = {
            "customer_name": customer.get("name"),
            "customer_id": customer.get("id"),
            "phone": customer.get("phone"),
            "registration_date": today or date.today(),
        }
        return self.notify("welcome", customer.get("phone"), data, category="welcome", priority="high")

    def send_loan_approval(self, loan: Mapping[str, Any], customer: Mapping[str, Any]) -> Result:
        data = {
            "customer_name": customer.get("name"),
            "loan_id": loan.get("id"),
            "amount": loan.get("principal"),
            "tenure": loan.get("tenure"),
            "interest_rate": loan.get("interest_rate"),
            "emi_amount": loan.get("emi_amount"),
            "first_emi_date": loan.get("first_emi_date"),
        }
        return self.notify(
            "loan_approved", customer.get("phone"), data, category="loan_approval", priority="high"
        )

    def send_emi_reminder(
        self,
        emi: Mapping[str, Any],
        loan: Mapping[str, Any],
        customer: Mapping[str, Any],
        *,
        today: Optional[date] = None,
    ) -> Result:
        due = parse_day(emi.get("due_date"))
        days_remaining = days_between(today or date.today(), due) if due else 0
        data = {
            "customer_name": customer.get("name"),
            "loan_id": loan.get("id"),
            "emi_number": emi.get("emi_number"),
            "amount": emi.get("amount"),
            "due_date": due,
            "days_remaining": max(0, days_remaining),
        }
        priority = "high" if days_remaining <= 1 else "normal"
        return self.notify("emi_reminder", customer.get("phone"), data, category="emi_reminder", priority=priority)

    def send_overdue_notice(
        self,
        emi: Mapping[str, Any],
        loan: Mapping[str, Any],
        customer: Mapping[str, Any],
        *,
        today: Optional[date] = None,
    ) -> Result:
        due = parse_day(emi.get("due_date"))
        overdue_days = max(0, days_between(due, today or date.today())) if due else 0
        data = {
            "customer_name": customer.get("name"),
            "loan_id": loan.get("id"),
            "emi_number": emi.get("emi_number"),
            "amount": emi.get("amount"),
            "due_date": due,
            "overdue_days": overdue_days,
            "late_fee": overdue_days * self.reminders.late_fee_per_day,
        }
        return self.notify("emi_overdue", customer.get("phone"), data, category="emi_overdue", priority="high")

    def send_payment_confirmation(
        self,
        emi: Mapping[str, Any],
        customer: Mapping[str, Any],
        next_emi: Optional[Mapping[str, Any]] = None,
    ) -> Result:
        data = {
            "customer_name": customer.get("name"),
            "receipt_number": emi.get("receipt_number"),
            "amount": emi.get("amount"),
            "paid_date": emi.get("paid_date"),
            "payment_mode": emi.get("payment_mode"),
            "next_emi_date": next_emi.get("due_date") if next_emi else None,
            "next_emi_amount": next_emi.get("amount") if next_emi else None,
        }
        return self.notify("emi_paid", customer.get("phone"), data, category="emi_confirmation")

    def send_loan_closure(
        self,
        loan: Mapping[str, Any],
        customer: Mapping[str, Any],
        *,
        paid_amount: Any,
        closure_date: Optional[date] = None,
    ) -> Result:
        data = {
            "customer_name": customer.get("name"),
            "loan_id": loan.get("id"),
            "total_amount": loan.get("total_amount") or loan.get("principal"),
            "paid_amount": paid_amount,
            "closure_date": closure_date or date.today(),
        }
        return self.notify("loan_closure", customer.get("phone"), data, category="loan_closure")


__all__ = ["NotificationService"]
