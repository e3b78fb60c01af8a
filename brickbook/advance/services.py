"""Advance balance ledger.

A customer's ``advance_balance`` is a cached running total; the
``AdvancePayment`` rows are the audit trail behind it. ``post_ledger_entry``
is the only code that changes the balance, and it always appends the matching
entry in the same session, so the two can only drift if someone writes to the
table by hand. ``AdvanceServices.reconcile`` checks for exactly that.
"""

import logging
from sqlmodel import select, func
from fastapi import HTTPException, status
from sqlalchemy.exc import DatabaseError
import uuid
from decimal import Decimal
from datetime import datetime
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.advance.models import AdvancePayment, AdvanceType, utc_now
from brickbook.advance.schemas import AdvanceInput
from brickbook.customers.models import Customer
from brickbook.customers.services import CustomerServices
from brickbook.sales.models import Sale
from brickbook.auth.services import AuthServices
from brickbook.utils.errors import InsufficientBalance
from brickbook.config import Config

authServices = AuthServices()
customerServices = CustomerServices()
logger = logging.getLogger(__name__)


def post_ledger_entry(
    session: AsyncSession,
    customer: Customer,
    amount: Decimal,
    type: AdvanceType,
    description: str,
    user_id: uuid.UUID,
    sale_id: uuid.UUID = None,
    reference: str = None,
    notes: str = None,
    date: datetime = None,
    idempotency_key: str = None,
) -> AdvancePayment:
    """Append a ledger entry and move the customer's balance by ``amount``.

    Nothing is committed here; the entry and the balance change belong to the
    caller's transaction. The customer row should already be locked.

    Raises:
        InsufficientBalance: if the entry would take the balance below zero.
    """
    new_balance = customer.advance_balance + amount
    if new_balance < 0:
        raise InsufficientBalance(available_balance=customer.advance_balance, required_amount=-amount)

    entry = AdvancePayment(
        customer_id=customer.id,
        user_id=user_id,
        amount=amount,
        type=type,
        description=description,
        reference=reference,
        notes=notes,
        sale_id=sale_id,
        date=date or utc_now(),
        idempotency_key=idempotency_key,
    )
    customer.advance_balance = new_balance

    session.add(entry)
    session.add(customer)
    return entry


class AdvanceServices:

    async def get_customers_with_balance(self, session: AsyncSession, user_id: str, customer_id: uuid.UUID = None):
        """Customers holding advance, highest balance first, plus the total.

        Reads the cached ``advance_balance``; entries are not summed here.
        """
        await authServices.check_user_exists(user_id, session)

        statement = (
            select(Customer)
            .where(Customer.user_id == uuid.UUID(user_id), Customer.advance_balance > 0)
            .order_by(Customer.advance_balance.desc())
        )
        if customer_id:
            statement = statement.where(Customer.id == customer_id)

        try:
            customers = (await session.exec(statement)).all()
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to fetch advance balances for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch advance data"
            )

        total_advance = sum((c.advance_balance for c in customers), Decimal("0.00"))

        return {
            "customers": customers,
            "summary": {
                "total_advance": total_advance,
                "total_customers": len(customers),
            }
        }

    async def add_advance(self, advance_input: AdvanceInput, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)
        user_uuid = uuid.UUID(user_id)

        customer = await customerServices.get_owned_customer(advance_input.customer_id, session, user_id, lock=True)

        entry = post_ledger_entry(
            session,
            customer,
            amount=advance_input.amount,
            type=AdvanceType.ADVANCE_ADDED,
            description=advance_input.description or "Manual advance payment",
            user_id=user_uuid,
            reference=advance_input.reference,
            notes=advance_input.notes,
            date=advance_input.date,
        )
        customer.last_purchase_date = utc_now()

        try:
            await session.commit()
            await session.refresh(entry)
            await session.refresh(customer)
        except Exception:
            await session.rollback()
            logger.exception("Failed to add advance for customer %s", customer.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to add advance payment"
            )

        logger.info(
            "Advance of %s added to customer %s by user %s; balance now %s",
            advance_input.amount, customer.id, user_id, customer.advance_balance
        )

        return {
            "message": f"Advance of {Config.CURRENCY_SYMBOL}{advance_input.amount} added successfully to {customer.name}",
            "advance_payment": entry,
            "customer": customer,
        }

    async def get_transactions(self, session: AsyncSession, user_id: str, customer_id: uuid.UUID = None):
        """Ledger entries, newest first, with customer name and invoice number."""
        await authServices.check_user_exists(user_id, session)

        statement = (
            select(AdvancePayment, Customer.name, Sale.invoice_no)
            .join(Customer, Customer.id == AdvancePayment.customer_id)
            .outerjoin(Sale, Sale.id == AdvancePayment.sale_id)
            .where(AdvancePayment.user_id == uuid.UUID(user_id))
            .order_by(AdvancePayment.date.desc(), AdvancePayment.created_at.desc())
        )
        if customer_id:
            statement = statement.where(AdvancePayment.customer_id == customer_id)

        try:
            rows = (await session.exec(statement)).all()
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to fetch advance transactions for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch advance transactions"
            )

        return [
            {**entry.model_dump(), "customer_name": name, "invoice_no": invoice_no}
            for entry, name, invoice_no in rows
        ]

    async def reconcile(self, session: AsyncSession, user_id: str):
        """Recompute every balance from the ledger and report mismatches."""
        await authServices.check_user_exists(user_id, session)
        user_uuid = uuid.UUID(user_id)

        customers = (await session.exec(select(Customer).where(Customer.user_id == user_uuid))).all()
        ledger_totals = dict((await session.exec(
            select(AdvancePayment.customer_id, func.sum(AdvancePayment.amount))
            .where(AdvancePayment.user_id == user_uuid)
            .group_by(AdvancePayment.customer_id)
        )).all())

        discrepancies = []
        for customer in customers:
            ledger_total = ledger_totals.get(customer.id) or Decimal("0.00")
            difference = customer.advance_balance - ledger_total
            if difference != 0:
                discrepancies.append({
                    "customer_id": customer.id,
                    "customer_name": customer.name,
                    "advance_balance": customer.advance_balance,
                    "ledger_total": ledger_total,
                    "difference": difference,
                })

        if discrepancies:
            logger.warning("Advance ledger drift for %d customer(s) of user %s", len(discrepancies), user_id)

        return {
            "consistent": not discrepancies,
            "checked_customers": len(customers),
            "discrepancies": discrepancies,
        }
