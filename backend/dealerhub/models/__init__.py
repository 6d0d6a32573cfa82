from .admins import Admin, ADMIN_ROLES
from .dealers import Dealer, DEALER_STATUSES
from .otp import OtpCode
from .catalog import Product, PRODUCT_CATEGORIES
from .enquiries import Enquiry, ENQUIRY_STATUSES

__all__ = [
    'Admin', 'ADMIN_ROLES',
    'Dealer', 'DEALER_STATUSES',
    'OtpCode',
    'Product', 'PRODUCT_CATEGORIES',
    'Enquiry', 'ENQUIRY_STATUSES',
]
