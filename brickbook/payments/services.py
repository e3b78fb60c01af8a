import logging
from sqlmodel import select
from fastapi import HTTPException, status
from sqlalchemy.exc import DatabaseError
import uuid
from brickbook.payments.models import Payment
from brickbook.payments.schemas import PaymentInput
from brickbook.customers.services import CustomerServices
from brickbook.sales.models import Sale
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.auth.services import AuthServices

authServices = AuthServices()
customerServices = CustomerServices()
logger = logging.getLogger(__name__)

class PaymentServices:

    async def add_payment(self, payment_input: PaymentInput, session: AsyncSession, user_id: str):
        """Record a direct (non-advance) receipt against one sale.

        The ledger is not involved. Amounts above the sale's due are rejected
        with ExcessPayment; surplus cash belongs in /api/advance instead.
        """
        await authServices.check_user_exists(user_id, session)
        user_uuid = uuid.UUID(user_id)

        # Use with_for_update() to prevent two receipts racing on one sale
        sale_statement = select(Sale).where(
            Sale.id == payment_input.sale_id,
            Sale.user_id == user_uuid
        ).with_for_update()
        sale = (await session.exec(sale_statement)).first()

        if not sale:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Sale not found"
            )

        try:
            sale.apply_payment(payment_input.amount)
        except HTTPException:
            logger.warning(
                "Rejected payment of %s on sale %s (due %s)",
                payment_input.amount, sale.id, sale.due_amount
            )
            await session.rollback()
            raise

        new_payment = Payment(
            **payment_input.model_dump(),
            customer_id=sale.customer_id,
            user_id=user_uuid,
        )
        session.add(new_payment)
        session.add(sale)

        try:
            await session.commit()
            await session.refresh(new_payment)
        except Exception:
            await session.rollback()
            logger.exception("Failed to record payment on sale %s", sale.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to record payment"
            )

        logger.info(
            "Payment of %s (%s) recorded on sale %s; due now %s",
            new_payment.amount, new_payment.method.value, sale.id, sale.due_amount
        )
        return new_payment

    async def get_all_payments(self, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        statement = select(Payment).where(Payment.user_id == uuid.UUID(user_id)).order_by(Payment.created_at.desc())

        try:
            result = await session.exec(statement)
            return result.all()

        except DatabaseError:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

    async def get_payment_by_id(self, payment_id: uuid.UUID, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        statement = select(Payment).where(Payment.id == payment_id, Payment.user_id == uuid.UUID(user_id))

        try:
            result = await session.exec(statement)
            payment = result.first()

        except DatabaseError:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

        if not payment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Payment not found"
            )

        return payment

    async def get_customer_payments_history(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        customer = await customerServices.get_owned_customer(customer_id, session, user_id)

        statement = select(Payment).where(Payment.customer_id == customer.id).order_by(Payment.created_at.desc())

        try:
            result = await session.exec(statement)
            return result.all()

        except DatabaseError:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )
