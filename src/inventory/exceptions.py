from src.common.exceptions import AppError


class InventoryError(AppError):
    """Base exception for inventory module."""
    pass


class InvalidStockQuantityError(InventoryError):
    """Stock confirmation with a quantity that is not positive."""
    def __init__(self, quantity: float):
        self.message = f"Stock quantity must be greater than 0 (got {quantity})."
        super().__init__(self.message)


class StockConflictError(InventoryError):
    """The stock level kept changing underneath a compare-and-set update."""
    def __init__(self, inventory_id: int):
        self.message = f"Inventory item {inventory_id} is being updated concurrently, try again."
        super().__init__(self.message)
