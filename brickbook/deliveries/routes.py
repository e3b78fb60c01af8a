from fastapi import APIRouter, Depends, Request, Response, status
from brickbook.utils.auth import get_current_user
from brickbook.deliveries.schemas import DeliveryListResponse, DeliveryStatsResponse
from brickbook.deliveries.services import DeliveryServices
from brickbook.sales.models import DeliveryStatus
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.db.main import get_Session
from brickbook.utils.limiter import limiter
from typing import Optional


delivery_router = APIRouter()
delivery_services = DeliveryServices()


@delivery_router.get("/", response_model=DeliveryListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_deliveries(
    request: Request,
    response: Response,
    delivery_status: Optional[DeliveryStatus] = None,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    deliveries = await delivery_services.get_deliveries(session, user_id, delivery_status)

    return {
        "success": True,
        "message": "deliveries fetched successfully",
        "data": deliveries
    }


@delivery_router.get("/stats", response_model=DeliveryStatsResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_delivery_stats(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    stats = await delivery_services.get_stats(session, user_id)

    return {
        "success": True,
        "message": "delivery stats fetched successfully",
        "data": stats
    }
