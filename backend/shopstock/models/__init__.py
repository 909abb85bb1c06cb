from .shops import Shop, User, UserShop
from .catalog import Category, Brand, Product, Variant, Vendor, Tax, Reason
from .customers import Customer
from .stock import StockUnit, GarbageRecord
from .sales import Sale, SaleItem
from .transfers import StockTransfer, StockTransferItem

__all__ = [
    'Shop', 'User', 'UserShop',
    'Category', 'Brand', 'Product', 'Variant', 'Vendor', 'Tax', 'Reason',
    'Customer',
    'StockUnit', 'GarbageRecord',
    'Sale', 'SaleItem',
    'StockTransfer', 'StockTransferItem',
]
