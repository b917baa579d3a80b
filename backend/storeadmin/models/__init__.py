from .catalog import Category, Product
from .parties import Supplier, Customer
from .stock_in import StockInOrder, StockInItem
from .orders import Order, OrderItem

__all__ = [
    'Category', 'Product',
    'Supplier', 'Customer',
    'StockInOrder', 'StockInItem',
    'Order', 'OrderItem',
]
