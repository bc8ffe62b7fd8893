from datetime import datetime
from typing import Optional

from pydantic import Field

from src.common.schemas import CamelModel, PaginatedResponse
from src.inventory.models import MovementType


class InventoryItemResponse(CamelModel):
    id: int
    user_id: int
    item_name: str
    normalized_name: str
    current_quantity: float
    unit: str
    buying_price: float
    selling_price: float
    supplier_name: Optional[str] = None
    last_restocked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class StockMovementResponse(CamelModel):
    id: int
    inventory_id: int
    type: MovementType
    quantity: float = Field(..., description="Signed delta applied to the stock level")
    previous_quantity: float
    new_quantity: float
    unit_price: float
    reason: Optional[str] = None
    supplier_name: Optional[str] = None
    created_at: datetime


class InventoryListResponse(PaginatedResponse[InventoryItemResponse]):
    pass


class StockMovementListResponse(PaginatedResponse[StockMovementResponse]):
    pass
