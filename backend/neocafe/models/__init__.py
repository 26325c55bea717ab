from .auth import User, AuthToken
from .wallet import Wallet, Transaction, Payment
from .rooms import Room, RoomSession
from .menu import MenuItem
from .orders import Order, OrderItem

__all__ = [
    'User', 'AuthToken',
    'Wallet', 'Transaction', 'Payment',
    'Room', 'RoomSession',
    'MenuItem',
    'Order', 'OrderItem',
]
