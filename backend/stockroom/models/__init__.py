from .tenancy import Business, Outlet, Warehouse
from .catalog import Product, PriceTier, ProductPriceTier
from .customers import Customer
from .inventory import Inventory, StockMovement
from .audit import AuditLog

__all__ = [
    'Business', 'Outlet', 'Warehouse',
    'Product', 'PriceTier', 'ProductPriceTier',
    'Customer',
    'Inventory', 'StockMovement',
    'AuditLog',
]
