from .user import User
from .service import ServiceOffering
from .appointment import Appointment
from .coupon import Coupon
from .coupon_usage import CouponUsage
from .partner_commission import PartnerCommission

__all__ = [
    "User",
    "ServiceOffering",
    "Appointment",
    "Coupon",
    "CouponUsage",
    "PartnerCommission",
]
