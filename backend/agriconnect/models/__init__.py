from .users import User
from .catalog import Product
from .orders import Order
from .feedback import Review, Contact

__all__ = [
    'User',
    'Product',
    'Order',
    'Review', 'Contact',
]
