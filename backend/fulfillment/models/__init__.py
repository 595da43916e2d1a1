from .tenancy import Tenant, TenantSettings, Warehouse, PackagingPreset
from .auth import User, SessionToken
from .inventory import Product, ProductWarehouseStock
from .orders import Order, OrderLine, OrderPackagingItem, OrderStatusEvent, OrderLossEvent, OrderTotals
from .metrics import MonthlyMetrics

__all__ = [
    'Tenant', 'TenantSettings', 'Warehouse', 'PackagingPreset',
    'User', 'SessionToken',
    'Product', 'ProductWarehouseStock',
    'Order', 'OrderLine', 'OrderPackagingItem', 'OrderStatusEvent', 'OrderLossEvent', 'OrderTotals',
    'MonthlyMetrics',
]
