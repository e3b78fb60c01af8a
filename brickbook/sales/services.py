import logging
from brickbook.sales.schemas import SaleInput, DeliveryUpdate
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.sales.models import Sale, derive_status, utc_now
from brickbook.customers.services import CustomerServices
from brickbook.advance.models import AdvanceType
from brickbook.advance.services import post_ledger_entry
from brickbook.dues.services import settle_from_advance
from brickbook.payments.models import Payment
from sqlmodel import select
from fastapi import HTTPException, status
from sqlalchemy.exc import DatabaseError
import uuid
from decimal import Decimal
from brickbook.auth.services import AuthServices
from brickbook.utils.errors import InsufficientBalance, ExcessPayment, BusinessRuleError
authServices = AuthServices()
customerServices = CustomerServices()
logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
# Largest value a NUMERIC(14, 2) money column holds
MAX_AMOUNT = Decimal("999999999999.99")


def generate_invoice_no() -> str:
    return f"INV-{utc_now():%Y%m%d}-{uuid.uuid4().hex[:8].upper()}"


class SaleServices:

    async def create_sale(self, sale: SaleInput, session: AsyncSession, user_id):
        """Create a sale and book whatever was received against it.

        ``paid_amount`` becomes a normal payment, ``advance_used`` is settled
        from the customer's advance balance and ``advance_payment`` is parked
        as new advance. Everything lands in a single commit.
        """
        await authServices.check_user_exists(user_id, session)
        user_uuid = uuid.UUID(user_id)

        items = []
        subtotal = Decimal("0.00")
        for item in sale.items:
            line_total = (item.quantity * item.unit_price).quantize(CENT)
            items.append({**item.model_dump(mode="json"), "total": str(line_total)})
            subtotal += line_total

        if subtotal > MAX_AMOUNT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Sale subtotal is too large"
            )

        if sale.discount_amount > subtotal:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Discount cannot be larger than the sale subtotal"
            )

        total_amount = subtotal - sale.discount_amount

        # Use with_for_update() to prevent race conditions on balance updates
        customer = await customerServices.get_owned_customer(sale.customer_id, session, user_id, lock=True)

        if sale.advance_used > customer.advance_balance:
            raise InsufficientBalance(available_balance=customer.advance_balance, required_amount=sale.advance_used)

        received = sale.paid_amount + sale.advance_used
        if received > total_amount:
            raise ExcessPayment(due_amount=total_amount, payment_amount=received)

        new_sale = Sale(
            invoice_no=generate_invoice_no(),
            customer_id=customer.id,
            user_id=user_uuid,
            items=items,
            subtotal=subtotal,
            discount_amount=sale.discount_amount,
            total_amount=total_amount,
            paid_amount=Decimal("0.00"),
            due_amount=total_amount,
            status=derive_status(Decimal("0.00"), total_amount),
            payment_method=sale.payment_method,
            notes=sale.notes,
            due_date=sale.due_date,
            sale_date=sale.sale_date or utc_now(),
            delivery_status=sale.delivery_status,
            delivery_address=sale.delivery_address,
            delivery_date=sale.delivery_date,
        )
        session.add(new_sale)

        try:
            # Payments and ledger entries reference the sale row
            await session.flush()

            if sale.advance_used > 0:
                await settle_from_advance(
                    session, customer, new_sale,
                    amount=sale.advance_used,
                    user_id=user_uuid,
                    description=f"Advance used at sale - Invoice: {new_sale.invoice_no}",
                )

            if sale.paid_amount > 0:
                new_sale.apply_payment(sale.paid_amount)
                session.add(Payment(
                    sale_id=new_sale.id,
                    customer_id=customer.id,
                    user_id=user_uuid,
                    amount=sale.paid_amount,
                    method=sale.payment_method,
                    notes="Received at sale time",
                ))

            if sale.advance_payment > 0:
                post_ledger_entry(
                    session, customer,
                    amount=sale.advance_payment,
                    type=AdvanceType.ADVANCE_PAYMENT,
                    description=f"Advance received with invoice {new_sale.invoice_no}",
                    user_id=user_uuid,
                    sale_id=new_sale.id,
                )

            customer.last_purchase_date = utc_now()
            session.add(customer)

            await session.commit()
            await session.refresh(new_sale)
            await session.refresh(customer)

        except BusinessRuleError:
            await session.rollback()
            raise
        except Exception:
            await session.rollback()
            logger.exception("Failed to create sale for customer %s", sale.customer_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="failed to create sale"
            )

        logger.info(
            "Sale %s (%s) created for customer %s: total %s, paid %s, due %s",
            new_sale.invoice_no, new_sale.id, customer.id,
            new_sale.total_amount, new_sale.paid_amount, new_sale.due_amount
        )

        return {
            "sale": new_sale,
            "payment_summary": {
                "total_amount": new_sale.total_amount,
                "paid_amount": sale.paid_amount,
                "advance_used": sale.advance_used,
                "advance_payment": sale.advance_payment,
                "due_amount": new_sale.due_amount,
                "new_advance_balance": customer.advance_balance,
            }
        }

    async def get_all_sales(self, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        statement = select(Sale).where(Sale.user_id == uuid.UUID(user_id)).order_by(Sale.created_at.desc())

        try:
            result = await session.exec(statement)
            return result.all()

        except DatabaseError:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

    async def get_sale_by_id(self, sale_id: uuid.UUID, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        statement = select(Sale).where(Sale.id == sale_id, Sale.user_id == uuid.UUID(user_id))

        try:
            result = await session.exec(statement)
            sale = result.first()

        except DatabaseError:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

        if not sale:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Sale not found"
            )

        return sale

    async def get_customer_sales(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        customer = await customerServices.get_owned_customer(customer_id, session, user_id)

        statement = select(Sale).where(Sale.customer_id == customer.id).order_by(Sale.created_at.desc())
        result = await session.exec(statement)
        return result.all()

    async def update_delivery(self, sale_id: uuid.UUID, update_data: DeliveryUpdate, session: AsyncSession, user_id: str):
        sale = await self.get_sale_by_id(sale_id, session, user_id)

        for key, value in update_data.model_dump(exclude_unset=True).items():
            setattr(sale, key, value)
        sale.updated_at = utc_now()

        try:
            await session.commit()
            await session.refresh(sale)
            return sale

        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to update delivery for sale %s", sale_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )
