"""Outstanding dues and settlement from advance balance.

Settling a due from advance touches four records: a new ``ADVANCE_USED``
ledger entry, the customer's cached balance, the sale's paid/due/status and a
new ``advance_deduction`` payment. All four are written in one session and
committed once, with the sale and customer rows locked (sale first, then
customer) from before the balance and due checks until the commit.
"""

import logging
from sqlmodel import select
from fastapi import HTTPException, status
from sqlalchemy.exc import DatabaseError, IntegrityError
import uuid
from decimal import Decimal
from datetime import datetime, timezone
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.advance.models import AdvancePayment, AdvanceType
from brickbook.advance.services import post_ledger_entry
from brickbook.customers.models import Customer
from brickbook.customers.services import CustomerServices
from brickbook.dues.schemas import AdvanceDeductionInput
from brickbook.payments.models import Payment, PaymentMethod
from brickbook.sales.models import Sale
from brickbook.auth.services import AuthServices
from brickbook.utils.errors import InsufficientBalance, ExcessPayment, BusinessRuleError
from brickbook.config import Config

authServices = AuthServices()
customerServices = CustomerServices()
logger = logging.getLogger(__name__)


async def settle_from_advance(
    session: AsyncSession,
    customer: Customer,
    sale: Sale,
    amount: Decimal,
    user_id: uuid.UUID,
    description: str = None,
    date: datetime = None,
    idempotency_key: str = None,
):
    """Pay ``amount`` of ``sale`` out of ``customer``'s advance balance.

    Both checks run before anything is written. Nothing is committed; the
    caller owns the transaction and both rows should already be locked.

    Returns:
        tuple: the new ledger entry and the new payment.

    Raises:
        InsufficientBalance: the customer holds less than ``amount``.
        ExcessPayment: the sale owes less than ``amount``.
    """
    if customer.advance_balance < amount:
        raise InsufficientBalance(available_balance=customer.advance_balance, required_amount=amount)
    if sale.due_amount < amount:
        raise ExcessPayment(due_amount=sale.due_amount, payment_amount=amount)

    entry = post_ledger_entry(
        session,
        customer,
        amount=-amount,
        type=AdvanceType.ADVANCE_USED,
        description=description or f"Advance used for payment - Invoice: {sale.invoice_no}",
        user_id=user_id,
        sale_id=sale.id,
        reference=f"SALE_{sale.id}",
        notes=f"Advance deduction of {Config.CURRENCY_SYMBOL}{amount} for due payment",
        date=date,
        idempotency_key=idempotency_key,
    )

    sale.apply_payment(amount)
    session.add(sale)

    # Payment.advance_payment_id references the entry, so insert it first
    await session.flush()

    payment = Payment(
        sale_id=sale.id,
        customer_id=customer.id,
        user_id=user_id,
        amount=amount,
        method=PaymentMethod.ADVANCE_DEDUCTION,
        notes=f"Paid from advance balance - {description or 'Due payment'}",
        reference_number=f"ADV_{str(entry.id)[-8:]}",
        advance_payment_id=entry.id,
    )
    session.add(payment)

    return entry, payment


def compose_settlement(entry: AdvancePayment, customer: Customer, sale: Sale, payment: Payment, message: str):
    return {
        "success": True,
        "message": message,
        "data": {
            "advance_payment": entry,
            "customer": customer,
            "sale": sale,
            "payment": payment,
        },
        "summary": {
            "amount_deducted": payment.amount,
            "remaining_advance": customer.advance_balance,
            "remaining_due": sale.due_amount,
            "new_status": sale.status,
        },
    }


class DueServices:

    async def get_dues(self, session: AsyncSession, user_id: str):
        """Sales that still owe money, newest first."""
        await authServices.check_user_exists(user_id, session)

        statement = (
            select(Sale, Customer.name, Customer.phone)
            .join(Customer, Customer.id == Sale.customer_id)
            .where(Sale.user_id == uuid.UUID(user_id), Sale.due_amount > 0)
            .order_by(Sale.created_at.desc())
        )

        try:
            rows = (await session.exec(statement)).all()
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to fetch dues for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch dues"
            )

        today = datetime.now(timezone.utc).date()
        dues = []
        for sale, name, phone in rows:
            if sale.due_date:
                days_overdue = max(0, (today - sale.due_date).days)
            else:
                days_overdue = max(0, (today - sale.sale_date.date()).days)

            dues.append({
                "sale_id": sale.id,
                "invoice_no": sale.invoice_no,
                "customer_id": sale.customer_id,
                "customer_name": name,
                "customer_phone": phone,
                "total_amount": sale.total_amount,
                "paid_amount": sale.paid_amount,
                "due_amount": sale.due_amount,
                "status": sale.status,
                "due_date": sale.due_date,
                "sale_date": sale.sale_date,
                "days_overdue": days_overdue,
            })
        return dues

    async def _find_by_key(self, session: AsyncSession, scoped_key: str):
        statement = select(AdvancePayment).where(AdvancePayment.idempotency_key == scoped_key)
        return (await session.exec(statement)).first()

    async def _replay(self, entry: AdvancePayment, deduction: AdvanceDeductionInput, session: AsyncSession):
        """Answer a repeated request with the records the first one wrote."""
        if (
            entry.sale_id != deduction.sale_id
            or entry.customer_id != deduction.customer_id
            or -entry.amount != deduction.amount
        ):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Idempotency key already used for a different request"
            )

        customer = await session.get(Customer, entry.customer_id)
        sale = await session.get(Sale, entry.sale_id)
        payment = (await session.exec(
            select(Payment).where(Payment.advance_payment_id == entry.id)
        )).first()

        logger.info("Replayed advance deduction %s for sale %s", entry.id, entry.sale_id)
        return compose_settlement(entry, customer, sale, payment, "Advance deduction already applied")

    async def apply_advance_to_due(
        self,
        deduction: AdvanceDeductionInput,
        session: AsyncSession,
        user_id: str,
        idempotency_key: str = None,
    ):
        await authServices.check_user_exists(user_id, session)
        user_uuid = uuid.UUID(user_id)

        scoped_key = f"{user_id}:{idempotency_key}" if idempotency_key else None
        if scoped_key:
            existing = await self._find_by_key(session, scoped_key)
            if existing:
                return await self._replay(existing, deduction, session)

        sale_statement = select(Sale).where(
            Sale.id == deduction.sale_id,
            Sale.user_id == user_uuid,
            Sale.customer_id == deduction.customer_id,
        ).with_for_update()
        sale = (await session.exec(sale_statement)).first()

        if not sale:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Sale not found"
            )

        customer = await customerServices.get_owned_customer(deduction.customer_id, session, user_id, lock=True)

        # A request with the same key may have committed while we waited on the locks
        if scoped_key:
            existing = await self._find_by_key(session, scoped_key)
            if existing:
                return await self._replay(existing, deduction, session)

        try:
            entry, payment = await settle_from_advance(
                session,
                customer,
                sale,
                amount=deduction.amount,
                user_id=user_uuid,
                description=deduction.description,
                date=deduction.date,
                idempotency_key=scoped_key,
            )
            await session.commit()

        except BusinessRuleError as e:
            logger.warning(
                "Advance deduction of %s on sale %s rejected: %s %s",
                deduction.amount, deduction.sale_id, e.detail, e.extra
            )
            await session.rollback()
            raise

        except IntegrityError:
            await session.rollback()
            # A concurrent request with the same key won the insert
            if scoped_key:
                existing = await self._find_by_key(session, scoped_key)
                if existing:
                    return await self._replay(existing, deduction, session)
            logger.exception("Integrity error during advance deduction on sale %s", deduction.sale_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to process advance deduction"
            )

        except Exception:
            await session.rollback()
            logger.exception("Advance deduction on sale %s failed", deduction.sale_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to process advance deduction"
            )

        await session.refresh(entry)
        await session.refresh(customer)
        await session.refresh(sale)
        await session.refresh(payment)

        logger.info(
            "Applied %s of advance to sale %s; advance left %s, due left %s (%s)",
            deduction.amount, sale.id, customer.advance_balance, sale.due_amount, sale.status.value
        )

        return compose_settlement(
            entry, customer, sale, payment,
            f"{Config.CURRENCY_SYMBOL}{deduction.amount} deducted from advance and applied to due payment successfully"
        )
