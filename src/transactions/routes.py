from typing import Annotated

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from src.db.main import get_session
from src.deps import CurrentUserId
from src.transactions.schemas import TransactionResponse, TransactionListResponse, TransactionUpdate
from src.transactions.services import TransactionService

router = APIRouter()

async def get_transaction_service(session: Annotated[AsyncSession, Depends(get_session)]) -> TransactionService:
    return TransactionService(session)

ServiceDependency = Annotated[TransactionService, Depends(get_transaction_service)]

@router.get("/", response_model=TransactionListResponse, status_code=status.HTTP_200_OK, summary="List my transactions")
async def get_transactions(user_id: CurrentUserId, service: ServiceDependency, skip: int = Query(0, ge=0, description="Number of items to skip"), limit: int = Query(100, ge=1, le=100, description="Max number of items to return")):
    return await service.get_all_for_user(user_id, skip=skip, limit=limit)

@router.get("/debts", response_model=TransactionListResponse, status_code=status.HTTP_200_OK, summary="List my unpaid debts and loans")
async def get_debts(user_id: CurrentUserId, service: ServiceDependency, skip: int = Query(0, ge=0), limit: int = Query(20, ge=1, le=100)):
    return await service.get_debts(user_id, skip=skip, limit=limit)

@router.get("/{transaction_id}", response_model=TransactionResponse, status_code=status.HTTP_200_OK, summary="Get transaction by ID")
async def get_transaction(transaction_id: int, user_id: CurrentUserId, service: ServiceDependency):
    return await service.get_owned(transaction_id, user_id)

@router.patch("/{transaction_id}", response_model=TransactionResponse, status_code=status.HTTP_200_OK, summary="Update a transaction")
async def update_transaction(transaction_id: int, data: TransactionUpdate, user_id: CurrentUserId, service: ServiceDependency):
    """
    Mark a debt or loan as paid, or correct the customer.
    Returns 404 for unknown transactions and 403 for transactions of another user.
    """
    return await service.update(transaction_id, user_id, data)
