from fastapi import APIRouter, Depends, Header, Request, Response, status
from brickbook.utils.auth import get_current_user
from brickbook.dues.schemas import AdvanceDeductionInput, DueListResponse, SettlementResponse
from brickbook.dues.services import DueServices
from sqlmodel.ext.asyncio.session import AsyncSession
from brickbook.db.main import get_Session
from brickbook.utils.limiter import limiter
from typing import Optional


due_router = APIRouter()
due_services = DueServices()


@due_router.get("/", response_model=DueListResponse, status_code=status.HTTP_200_OK)
@limiter.limit("100/minute")
async def get_dues(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    user_id = user_details.get("user_id")

    dues = await due_services.get_dues(session, user_id)

    return {
        "success": True,
        "message": "dues fetched successfully",
        "data": dues
    }


@due_router.post("/advance-deduction", response_model=SettlementResponse, status_code=status.HTTP_200_OK)
@limiter.limit("20/minute")
async def apply_advance_to_due(
    request: Request,
    response: Response,
    deduction: AdvanceDeductionInput,
    idempotency_key: Optional[str] = Header(default=None, max_length=128),
    session: AsyncSession = Depends(get_Session),
    user_details: dict = Depends(get_current_user)
):
    """Pay part or all of a sale's due out of the customer's advance balance.

    Send an ``Idempotency-Key`` header to make client retries safe: a repeat
    with the same key returns the first result instead of deducting again.
    """
    user_id = user_details.get("user_id")

    return await due_services.apply_advance_to_due(deduction, session, user_id, idempotency_key)
