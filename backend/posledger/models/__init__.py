from .catalog import Category, Supplier, Product
from .auth import User
from .sales import Sale, SaleLine, ImmutableRecordError
from .audit import AuditLogEntry, MOVEMENT_SALE
from .settings import StoreSettings

__all__ = [
    'Category', 'Supplier', 'Product',
    'User',
    'Sale', 'SaleLine', 'ImmutableRecordError',
    'AuditLogEntry', 'MOVEMENT_SALE',
    'StoreSettings',
]
