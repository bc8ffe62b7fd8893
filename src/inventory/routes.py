from typing import Annotated

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from src.db.main import get_session
from src.deps import CurrentUserId
from src.inventory.schemas import InventoryListResponse, StockMovementListResponse
from src.inventory.services import InventoryService

router = APIRouter()

async def get_inventory_service(session: Annotated[AsyncSession, Depends(get_session)]) -> InventoryService:
    return InventoryService(session)

ServiceDependency = Annotated[InventoryService, Depends(get_inventory_service)]

@router.get("/", response_model=InventoryListResponse, status_code=status.HTTP_200_OK, summary="List my inventory")
async def get_inventory(user_id: CurrentUserId, service: ServiceDependency, skip: int = Query(0, ge=0, description="Number of items to skip"), limit: int = Query(100, ge=1, le=100, description="Max number of items to return")):
    return await service.get_all_for_user(user_id, skip=skip, limit=limit)

@router.get("/{inventory_id}/movements", response_model=StockMovementListResponse, status_code=status.HTTP_200_OK, summary="Stock movement history of an item")
async def get_movements(inventory_id: int, user_id: CurrentUserId, service: ServiceDependency, skip: int = Query(0, ge=0), limit: int = Query(100, ge=1, le=100)):
    """
    Append-only history, newest first.
    Returns 404 for unknown items and 403 for items of another user.
    """
    return await service.get_movements(inventory_id, user_id, skip=skip, limit=limit)
