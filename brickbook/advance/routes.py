from fastapi import APIRouter, Depends, Request, Response, status
from brickbook.utils.auth import get_current_user
from brickbook.advance.schemas import (
    AdvanceInput, AdvanceBalanceResponse, AdvanceAddedResponse,
    AdvanceTransactionListResponse, ReconciliationResponse,
)
from brickbook.advance.services import AdvanceServices
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.db.main import get_Session
from brickbook.utils.limiter import limiter
from typing import Optional
import uuid


advance_router = APIRouter()
advance_services = AdvanceServices()


@advance_router.get("/", response_model=AdvanceBalanceResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_advance_balances(
    request: Request,
    response: Response,
    customer_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    balances = await advance_services.get_customers_with_balance(session, user_id, customer_id)

    return {
        "success": True,
        "message": "advance balances fetched successfully",
        "data": balances
    }


@advance_router.post("/", response_model=AdvanceAddedResponse, status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def add_advance(
    request: Request,
    response: Response,
    advance: AdvanceInput,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    result = await advance_services.add_advance(advance, session, user_id)

    return {
        "success": True,
        "message": result.pop("message"),
        "data": result
    }


@advance_router.get("/transactions", response_model=AdvanceTransactionListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_advance_transactions(
    request: Request,
    response: Response,
    customer_id: Optional[uuid.UUID] = None,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    transactions = await advance_services.get_transactions(session, user_id, customer_id)

    return {
        "success": True,
        "message": "advance transactions fetched successfully",
        "data": transactions
    }


@advance_router.get("/reconcile", response_model=ReconciliationResponse, status_code=status.HTTP_200_OK)
@limiter.limit("10/minute")
async def reconcile_advance(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    report = await advance_services.reconcile(session, user_id)

    return {
        "success": True,
        "message": "ledger is consistent" if report["consistent"] else "ledger drift detected",
        "data": report
    }
