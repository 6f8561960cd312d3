# loandesk/services/lending.py
from __future__ import annotations

import time
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional

from datetime_utils import to_iso_utc, utc_now
from services.results import Result
from services.sync_engine import SyncEngine


CUSTOMERS = "customers"
LOANS = "loans"
EMIS = "emis"
USERS = "users"


def _stamp(data: Mapping[str, Any], *, created: bool) -> Dict[str, Any]:
    now = to_iso_utc(utc_now())
    row = dict(data)
    if created:
        row.setdefault("created_at", now)
    row["updated_at"] = now
    return row


def _index(rows: Iterable[Mapping[str, Any]]) -> Dict[str, Mapping[str, Any]]:
    return {str(row.get("id")): row for row in rows if row.get("id") is not None}


class LendingService:
    """Customer, loan and EMI operations on top of the sync engine."""

    def __init__(self, engine: SyncEngine) -> None:
        self.engine = engine

    # ----- generic -----
    async def _create(self, table: str, data: Mapping[str, Any]) -> Result:
        return await self.engine.create(table, _stamp(data, created=True))

    async def _update(self, table: str, record_id: Any, updates: Mapping[str, Any]) -> Result:
        return await self.engine.update(table, record_id, _stamp(updates, created=False))

    # ----- customers -----
    async def get_customers(self, filters: Optional[Mapping[str, Any]] = None) -> Result:
        return await self.engine.read(CUSTOMERS, filters)

    async def create_customer(self, data: Mapping[str, Any]) -> Result:
        return await self._create(CUSTOMERS, data)

    async def update_customer(self, customer_id: Any, updates: Mapping[str, Any]) -> Result:
        return await self._update(CUSTOMERS, customer_id, updates)

    async def delete_customer(self, customer_id: Any) -> Result:
        return await self.engine.delete(CUSTOMERS, customer_id)

    async def search_customers(self, term: str) -> Result:
        """Case-insensitive substring match on name, phone and email."""
        result = await self.engine.read(CUSTOMERS)
        if not result.success:
            return result
        needle = (term or "").strip().lower()
        if not needle:
            return result
        matches = [
            row
            for row in result.data
            if any(needle in str(row.get(key) or "").lower() for key in ("name", "phone", "email"))
        ]
        return Result.ok(matches)

    # ----- loans -----
    async def get_loans(self, filters: Optional[Mapping[str, Any]] = None) -> Result:
        return await self.engine.read(LOANS, filters)

    async def create_loan(self, data: Mapping[str, Any]) -> Result:
        return await self._create(LOANS, data)

    async def update_loan(self, loan_id: Any, updates: Mapping[str, Any]) -> Result:
        return await self._update(LOANS, loan_id, updates)

    async def delete_loan(self, loan_id: Any) -> Result:
        return await self.engine.delete(LOANS, loan_id)

    # ----- EMIs -----
    async def get_emis(self, filters: Optional[Mapping[str, Any]] = None) -> Result:
        return await self.engine.read(EMIS, filters)

    async def create_emi(self, data: Mapping[str, Any]) -> Result:
        return await self._create(EMIS, data)

    async def update_emi(self, emi_id: Any, updates: Mapping[str, Any]) -> Result:
        return await self._update(EMIS, emi_id, updates)

    async def delete_emi(self, emi_id: Any) -> Result:
        return await self.engine.delete(EMIS, emi_id)

    async def create_emi_schedule(self, loan_id: Any, schedule: Iterable[Mapping[str, Any]]) -> Result:
        results = []
        for emi in schedule:
            results.append(await self.create_emi({**emi, "loan_id": loan_id}))
        failed = [r.error for r in results if not r.success]
        if failed:
            return Result.fail(f"{len(failed)} EMI(s) not created: {failed[0]}")
        return Result.ok([r.data for r in results])

    async def collect_emi(
        self,
        emi_id: Any,
        *,
        payment_mode: str = "cash",
        receipt_number: Optional[str] = None,
        paid_on: Optional[date] = None,
    ) -> Result:
        updates = {
            "status": "paid",
            "paid_date": (paid_on or date.today()).isoformat(),
            "payment_mode": payment_mode,
            "receipt_number": receipt_number or f"R{emi_id}{int(time.time() * 1000)}",
        }
        return await self.update_emi(emi_id, updates)

    async def list_installments(self, filters: Optional[Mapping[str, Any]] = None) -> Result:
        """EMIs joined with their loan and the loan's customer."""
        emis = await self.get_emis(filters)
        if not emis.success:
            return emis
        loans = await self.get_loans()
        if not loans.success:
            return loans
        customers = await self.get_customers()
        if not customers.success:
            return customers

        loans_by_id = _index(loans.data)
        customers_by_id = _index(customers.data)
        rows: List[Dict[str, Any]] = []
        for emi in emis.data:
            loan = loans_by_id.get(str(emi.get("loan_id")))
            customer = customers_by_id.get(str(loan.get("customer_id"))) if loan else None
            rows.append({**emi, "loan": loan, "customer": customer})
        return Result.ok(rows)

    # ----- users -----
    async def get_users(self, filters: Optional[Mapping[str, Any]] = None) -> Result:
        return await self.engine.read(USERS, filters)

    async def create_user(self, data: Mapping[str, Any]) -> Result:
        return await self._create(USERS, data)

    async def update_user(self, user_id: Any, updates: Mapping[str, Any]) -> Result:
        return await self._update(USERS, user_id, updates)

    async def delete_user(self, user_id: Any) -> Result:
        return await self.engine.delete(USERS, user_id)


__all__ = ["CUSTOMERS", "EMIS", "LOANS", "USERS", "LendingService"]
