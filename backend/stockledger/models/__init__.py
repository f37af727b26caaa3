from .tenancy import DEVICE_STATUSES, TENANT_TIERS, Tenant, Device, TenantOwnedMixin
from .inventory import (
    LOCATION_TYPES,
    SALE,
    STOCK_ADJUSTMENT,
    STOCK_RECEIPT,
    TRANSACTION_TYPES,
    TRANSFER,
    Category,
    Location,
    Product,
    InventoryTransaction,
)
from .audit import AuditRecord

__all__ = [
    'Tenant', 'Device', 'TenantOwnedMixin',
    'Category', 'Location', 'Product', 'InventoryTransaction',
    'AuditRecord',
    'TENANT_TIERS', 'DEVICE_STATUSES', 'LOCATION_TYPES',
    'STOCK_RECEIPT', 'STOCK_ADJUSTMENT', 'TRANSFER', 'SALE', 'TRANSACTION_TYPES',
]
