from fastapi import APIRouter, Depends, Request, Response, status
from brickbook.utils.auth import get_current_user
from brickbook.sales.schemas import (
    SaleInput, SaleResponse, SaleListResponse, SaleCreateResponse,
    DeliveryUpdate,
)
from brickbook.sales.services import SaleServices
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.db.main import get_Session
from brickbook.utils.limiter import limiter
import uuid


sale_router = APIRouter()
sale_services = SaleServices()


@sale_router.post("/", response_model=SaleCreateResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_sale(
    request: Request,
    response: Response,
    sale: SaleInput,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    new_sale = await sale_services.create_sale(sale, session, user_id)

    return {
        "success": True,
        "message": "sale created successfully",
        "data": new_sale
    }


@sale_router.get("/", response_model=SaleListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_all_sales(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    sales = await sale_services.get_all_sales(session, user_id)

    return {
        "success": True,
        "message": "sales fetched successfully",
        "data": sales
    }


@sale_router.get("/{id}", response_model=SaleResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_sale(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    sale = await sale_services.get_sale_by_id(id, session, user_id)

    return {
        "success": True,
        "message": "sale fetched successfully",
        "data": sale
    }


@sale_router.patch("/{id}/delivery", response_model=SaleResponse, status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def update_delivery(
    request: Request,
    response: Response,
    id: uuid.UUID,
    update_data: DeliveryUpdate,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    sale = await sale_services.update_delivery(id, update_data, session, user_id)

    return {
        "success": True,
        "message": "delivery updated successfully",
        "data": sale
    }
