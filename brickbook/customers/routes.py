from fastapi import APIRouter, Depends, Request, Response, status
from brickbook.utils.auth import get_current_user
from brickbook.customers.schemas import (
    CustomerCreate, CustomerResponse, CustomerListResponse,
    CustomerUpdate, CustomerStatsResponse, CustomerOverviewResponse,
)
from brickbook.customers.services import CustomerServices
from brickbook.sales.schemas import SaleListResponse
from brickbook.sales.services import SaleServices
from brickbook.payments.schemas import PaymentListResponse
from brickbook.payments.services import PaymentServices
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.db.main import get_Session
from brickbook.utils.limiter import limiter
import uuid


customer_router = APIRouter()
customer_services = CustomerServices()
sale_services = SaleServices()
payment_services = PaymentServices()


@customer_router.post("/", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_customer(
    request: Request,
    response: Response,
    customer: CustomerCreate,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    new_customer = await customer_services.create_customer(customer, session, user_id)

    return {
        "success": True,
        "message": "customer created successfully",
        "data": new_customer
    }

@customer_router.get("/", response_model=CustomerListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_all_customer(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    customers = await customer_services.get_all_customers(session, user_id)

    return {
        "success": True,
        "message": "customers fetched successfully",
        "data": customers
    }


@customer_router.get("/{id}", response_model=CustomerResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    customer = await customer_services.get_customer_by_id(id, session, user_id)

    return {
        "success": True,
        "message": "customer fetched successfully",
        "data": customer
    }


@customer_router.get("/{id}/sales", response_model=SaleListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_sales(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    sales = await sale_services.get_customer_sales(id, session, user_id)

    return {
        "success": True,
        "message": "customer sales fetched successfully",
        "data": sales
    }


@customer_router.get("/{id}/payments", response_model=PaymentListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_payments(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    payments = await payment_services.get_customer_payments_history(id, session, user_id)

    return {
        "success": True,
        "message": "customer payment history fetched successfully",
        "data": payments
    }


@customer_router.get("/{id}/stats", response_model=CustomerStatsResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_stats(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    stats = await customer_services.get_customer_stats(id, session, user_id)

    return {
        "success": True,
        "message": "customer statistics fetched successfully",
        "data": stats
    }


@customer_router.get("/{id}/overview", response_model=CustomerOverviewResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_customer_overview(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    overview = await customer_services.get_customer_overview(id, session, user_id)

    return {
        "success": True,
        "message": "customer overview fetched successfully",
        "data": overview
    }


@customer_router.patch("/{id}", response_model=CustomerResponse, status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def update_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    update_data: CustomerUpdate,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    customer = await customer_services.update_customer(id, update_data, session, user_id)

    return {
        "success": True,
        "message": "customer updated successfully",
        "data": customer
    }


@customer_router.delete("/{id}", status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def delete_customer(
    request: Request,
    response: Response,
    id: uuid.UUID,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    await customer_services.delete_customer(id, session, user_id)

    return {
        "success": True,
        "message": "customer deleted successfully",
        "data": {}
    }
