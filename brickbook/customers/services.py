import logging
from brickbook.customers.schemas import CustomerCreate, CustomerUpdate
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.customers.models import Customer
from brickbook.sales.models import Sale, SaleStatus
from sqlmodel import select, func, or_
from fastapi import HTTPException, status
from sqlalchemy.exc import DatabaseError
from decimal import Decimal
import uuid
from brickbook.auth.services import AuthServices

authServices = AuthServices()
logger = logging.getLogger(__name__)


class CustomerServices():

    async def get_owned_customer(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str, lock: bool = False):
        """Load a customer belonging to ``user_id`` or raise 404.

        With ``lock`` the row is selected FOR UPDATE and stays locked until
        the caller commits or rolls back.
        """
        statement = select(Customer).where(
            Customer.id == customer_id,
            Customer.user_id == uuid.UUID(user_id)
        )
        if lock:
            statement = statement.with_for_update()

        result = await session.exec(statement)
        customer = result.first()

        if not customer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Customer not found"
            )
        return customer

    async def _check_duplicate(self, session: AsyncSession, user_id: str, name: str = None,
                               phone: str = None, email: str = None, exclude_id: uuid.UUID = None):
        conditions = []
        if name:
            conditions.append(func.lower(Customer.name) == name.lower())
        if phone:
            conditions.append(Customer.phone == phone)
        if email:
            conditions.append(func.lower(Customer.email) == email.lower())
        if not conditions:
            return

        statement = select(Customer).where(Customer.user_id == uuid.UUID(user_id), or_(*conditions))
        if exclude_id:
            statement = statement.where(Customer.id != exclude_id)

        existing = (await session.exec(statement)).first()
        if not existing:
            return

        duplicate_field = "name"
        if phone and existing.phone == phone:
            duplicate_field = "phone number"
        elif email and (existing.email or "").lower() == email.lower():
            duplicate_field = "email"

        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Customer with this {duplicate_field} already exists"
        )


    async def create_customer(self, customer: CustomerCreate, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        await self._check_duplicate(session, user_id, customer.name, customer.phone, customer.email)

        # advance_balance starts at zero, matching an empty ledger
        new_customer = Customer(**customer.model_dump(), user_id=uuid.UUID(user_id))

        session.add(new_customer)

        try:
            await session.commit()
            await session.refresh(new_customer)
        except Exception:
            await session.rollback()
            logger.exception("Failed to create customer for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create customer"
            )

        logger.info("Customer %s created by user %s", new_customer.id, user_id)
        return new_customer

    async def get_all_customers(self, session: AsyncSession, user_id: str):
        """The caller's customers, newest first, each with its outstanding due."""
        await authServices.check_user_exists(user_id, session)
        user_uuid = uuid.UUID(user_id)

        statement = select(Customer).where(Customer.user_id == user_uuid).order_by(Customer.created_at.desc())
        dues_statement = (
            select(Sale.customer_id, func.sum(Sale.due_amount))
            .where(Sale.user_id == user_uuid)
            .group_by(Sale.customer_id)
        )

        try:
            customers = (await session.exec(statement)).all()
            dues = {customer_id: total for customer_id, total in (await session.exec(dues_statement)).all()}
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to list customers for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

        return [
            {**customer.model_dump(), "due_amount": dues.get(customer.id) or Decimal("0.00")}
            for customer in customers
        ]

    async def get_customer_by_id(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        try:
            return await self.get_owned_customer(customer_id, session, user_id)
        except DatabaseError:
            await session.rollback()
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

    async def update_customer(self, customer_id: uuid.UUID, update_data: CustomerUpdate, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        # Convert the input to a dictionary, excluding unset values
        update_dict = update_data.model_dump(exclude_unset=True)

        if not update_dict:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="You must provide at least one field to update (name, phone, email, address)"
            )

        customer = await self.get_owned_customer(customer_id, session, user_id)

        await self._check_duplicate(
            session, user_id,
            update_dict.get("name"), update_dict.get("phone"), update_dict.get("email"),
            exclude_id=customer.id
        )

        for key, value in update_dict.items():
            setattr(customer, key, value)

        try:
            await session.commit()
            await session.refresh(customer)
            return customer

        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to update customer %s", customer_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

    async def delete_customer(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str):
        await authServices.check_user_exists(user_id, session)

        customer = await self.get_owned_customer(customer_id, session, user_id)

        sale_count = (await session.exec(
            select(func.count(Sale.id)).where(Sale.customer_id == customer.id)
        )).one()

        if sale_count:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Customer has sales and cannot be deleted"
            )

        if customer.advance_balance != 0:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Customer still holds an advance balance and cannot be deleted"
            )

        try:
            await session.delete(customer)
            await session.commit()
            return True

        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to delete customer %s", customer_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="internal server error"
            )

    async def _sale_totals(self, session: AsyncSession, customer_id: uuid.UUID):
        zero = Decimal("0.00")
        statement = select(
            func.count(Sale.id),
            func.coalesce(func.sum(Sale.total_amount), zero),
            func.coalesce(func.sum(Sale.paid_amount), zero),
            func.coalesce(func.sum(Sale.due_amount), zero),
        ).where(Sale.customer_id == customer_id)
        count, total, paid, due = (await session.exec(statement)).one()
        return count, Decimal(total), Decimal(paid), Decimal(due)

    async def _recent_sales(self, session: AsyncSession, customer_id: uuid.UUID, limit: int):
        statement = (
            select(Sale)
            .where(Sale.customer_id == customer_id)
            .order_by(Sale.created_at.desc())
            .limit(limit)
        )
        return (await session.exec(statement)).all()

    async def get_customer_stats(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str):
        """Lifetime sale totals for one customer plus the last ten purchases."""
        await authServices.check_user_exists(user_id, session)

        customer = await self.get_owned_customer(customer_id, session, user_id)

        try:
            count, total, paid, due = await self._sale_totals(session, customer.id)
            recent = await self._recent_sales(session, customer.id, 10)
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to compute stats for customer %s", customer_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch customer statistics"
            )

        return {
            "total_sales": count,
            "total_amount": total,
            "total_paid": paid,
            "due_amount": due,
            "recent_purchases": recent,
        }

    async def get_customer_overview(self, customer_id: uuid.UUID, session: AsyncSession, user_id: str):
        """Customer profile with totals, status breakdown and quantities bought per product type."""
        await authServices.check_user_exists(user_id, session)

        customer = await self.get_owned_customer(customer_id, session, user_id)

        status_statement = (
            select(Sale.status, func.count(Sale.id))
            .where(Sale.customer_id == customer.id)
            .group_by(Sale.status)
        )

        try:
            count, total, paid, due = await self._sale_totals(session, customer.id)
            by_status = dict((await session.exec(status_statement)).all())
            item_lists = (await session.exec(select(Sale.items).where(Sale.customer_id == customer.id))).all()
            recent = await self._recent_sales(session, customer.id, 5)
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to build overview for customer %s", customer_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch customer overview"
            )

        # items are validated on the way in, so every entry has product_type and quantity
        quantities = {}
        for items in item_lists:
            for item in items:
                quantities[item["product_type"]] = quantities.get(item["product_type"], Decimal("0")) + Decimal(item["quantity"])
        total_quantity = sum(quantities.values(), Decimal("0"))

        product_types = [
            {
                "product_type": product_type,
                "quantity": quantity,
                "percentage": round(float(quantity / total_quantity * 100), 2) if total_quantity else 0.0,
            }
            for product_type, quantity in sorted(quantities.items(), key=lambda pair: pair[1], reverse=True)
        ]

        return {
            "customer": customer,
            "statistics": {
                "total_sales": count,
                "total_sale_amount": total,
                "total_paid_amount": paid,
                "total_due_amount": due,
                "total_quantity": total_quantity,
                "payment_completion_rate": round(paid / total * 100) if total else 0,
                "average_sale_value": (total / count).quantize(Decimal("0.01")) if count else Decimal("0.00"),
            },
            "product_types": product_types,
            "recent_sales": recent,
            "summary": {
                "fully_paid_sales": by_status.get(SaleStatus.PAID, 0),
                "partial_sales": by_status.get(SaleStatus.PARTIAL, 0),
                "pending_sales": by_status.get(SaleStatus.PENDING, 0),
            },
        }
