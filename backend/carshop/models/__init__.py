from carshop.models.user import User, Role
from carshop.models.car import Car, FuelType, Transmission
from carshop.models.inquiry import Inquiry, InquiryStatus

__all__ = [
    'User',
    'Role',
    'Car',
    'FuelType',
    'Transmission',
    'Inquiry',
    'InquiryStatus',
]
