from .catalog import ProductCategory, CategoryOperationalCostComponent, Product, ProductVariant
from .inventory import StockMovement, Supplier, PurchaseOrder, PurchaseItem
from .sales import Channel, Order, OrderItem, Payment, Shipment, ShipmentEvent
from .customers import Customer, CustomerAddress
from .finance import Expense
from .auth import User, SessionToken

__all__ = [
    'ProductCategory', 'CategoryOperationalCostComponent', 'Product', 'ProductVariant',
    'StockMovement', 'Supplier', 'PurchaseOrder', 'PurchaseItem',
    'Channel', 'Order', 'OrderItem', 'Payment', 'Shipment', 'ShipmentEvent',
    'Customer', 'CustomerAddress',
    'Expense',
    'User', 'SessionToken',
]
