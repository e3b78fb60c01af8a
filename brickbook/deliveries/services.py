"""Delivery board.

Deliveries are not stored separately; every sale carries its own delivery
status, address and date, and this module only reads them.
"""

import logging
from sqlmodel import select, func
from fastapi import HTTPException, status
from sqlalchemy.exc import DatabaseError
import uuid
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.customers.models import Customer
from brickbook.sales.models import Sale, DeliveryStatus
from brickbook.auth.services import AuthServices

authServices = AuthServices()
logger = logging.getLogger(__name__)


class DeliveryServices:

    async def get_deliveries(self, session: AsyncSession, user_id: str, delivery_status: DeliveryStatus = None):
        """Every sale of the caller as a delivery, newest first."""
        await authServices.check_user_exists(user_id, session)

        statement = (
            select(Sale, Customer.name, Customer.phone)
            .join(Customer, Customer.id == Sale.customer_id)
            .where(Sale.user_id == uuid.UUID(user_id))
            .order_by(Sale.created_at.desc())
        )
        if delivery_status:
            statement = statement.where(Sale.delivery_status == delivery_status)

        try:
            rows = (await session.exec(statement)).all()
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to fetch deliveries for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch deliveries"
            )

        return [
            {
                "sale_id": sale.id,
                "invoice_no": sale.invoice_no,
                "customer_id": sale.customer_id,
                "customer_name": name,
                "customer_phone": phone,
                "delivery_address": sale.delivery_address,
                "delivery_date": sale.delivery_date,
                "delivery_status": sale.delivery_status,
                "items": sale.items,
                "total_amount": sale.total_amount,
                "notes": sale.notes,
                "sale_date": sale.sale_date,
            }
            for sale, name, phone in rows
        ]

    async def get_stats(self, session: AsyncSession, user_id: str):
        """Counts of deliveries still waiting to go out."""
        await authServices.check_user_exists(user_id, session)

        statement = (
            select(Sale.delivery_status, func.count(Sale.id))
            .where(
                Sale.user_id == uuid.UUID(user_id),
                Sale.delivery_status.in_([DeliveryStatus.PENDING, DeliveryStatus.SCHEDULED]),
            )
            .group_by(Sale.delivery_status)
        )

        try:
            counts = dict((await session.exec(statement)).all())
        except DatabaseError:
            await session.rollback()
            logger.exception("Failed to count deliveries for user %s", user_id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch delivery stats"
            )

        pending = counts.get(DeliveryStatus.PENDING, 0)
        scheduled = counts.get(DeliveryStatus.SCHEDULED, 0)

        return {
            "pending_count": pending,
            "scheduled_count": scheduled,
            "total_notifications": pending + scheduled,
        }
