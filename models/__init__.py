### models/__init__.py
from .base import Base
from .user import User
from .car import Car
