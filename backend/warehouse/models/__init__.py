from .auth import User, SessionToken
from .security import RateLimitRecord
from .catalog import Category, Product, ProductHistory
from .deliveries import ToShip, ShipmentNotification, ArchivedDelivery, Driver
from .notifications import Notification

__all__ = [
    'User', 'SessionToken', 'RateLimitRecord',
    'Category', 'Product', 'ProductHistory',
    'ToShip', 'ShipmentNotification', 'ArchivedDelivery', 'Driver',
    'Notification',
]
