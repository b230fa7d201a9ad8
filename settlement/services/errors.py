"""Typed failures of the settlement engine.

Storage-touching operations return them inside a ``Result`` instead of raising, so the
caller that owns the transaction decides whether to commit or roll back. Every error has a
stable ``code`` for API clients and a ``message`` that can be shown to the customer as-is.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class SettlementError(Exception):
    code = "settlement_error"
    default_message = "Settlement failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# ---- validation (caller-fixable) ---------------------------------------------
class ValidationError(SettlementError):
    code = "validation_error"
    default_message = "Invalid input"


class InvalidDiscountRange(ValidationError):
    code = "invalid_discount_range"
    default_message = "Discount percentage must be between 1 and 100"


class InvalidCouponFormat(ValidationError):
    code = "invalid_coupon_format"
    default_message = "Invalid coupon code format. Expected format: [word][discount]off"


class InvalidAmount(ValidationError):
    code = "invalid_amount"
    default_message = "Amount must be a non-negative integer number of cents"


class InvalidStatus(ValidationError):
    code = "invalid_status"
    default_message = 'Invalid status. Must be "pending" or "paid"'


class InvalidStatusTransition(ValidationError):
    code = "invalid_status_transition"
    default_message = "Paid commissions cannot be moved back to pending"


# ---- business rules ----------------------------------------------------------
class BusinessRuleViolation(SettlementError):
    code = "business_rule_violation"


class CouponNotFound(BusinessRuleViolation):
    code = "coupon_not_found"
    default_message = "Coupon not found or inactive"


class CouponAlreadyUsed(BusinessRuleViolation):
    code = "coupon_already_used"
    default_message = "You have already used a coupon. Only one coupon per customer lifetime is allowed."


class CouponAlreadyUsedForThisCoupon(BusinessRuleViolation):
    code = "coupon_already_used_for_this_coupon"
    default_message = "You have already redeemed this coupon"


class DuplicateRedemption(BusinessRuleViolation):
    code = "duplicate_redemption"
    default_message = "This coupon redemption was already recorded"


class CommissionAlreadyExists(BusinessRuleViolation):
    code = "commission_already_exists"
    default_message = "Commission already exists for this appointment"


class AppointmentAlreadySettled(BusinessRuleViolation):
    code = "appointment_already_settled"
    default_message = "This appointment already has a coupon redemption or commission recorded"


class CodeCollision(BusinessRuleViolation):
    code = "code_collision"
    default_message = "Could not generate a unique coupon code"


# ---- not found ---------------------------------------------------------------
class NotFound(SettlementError):
    code = "not_found"
    default_message = "Not found"


class CustomerNotFound(NotFound):
    code = "customer_not_found"
    default_message = "Customer not found"


class PartnerNotFound(NotFound):
    code = "partner_not_found"
    default_message = "Partner not found or user is not a partner"


class AppointmentNotFound(NotFound):
    code = "appointment_not_found"
    default_message = "Appointment not found"


class CommissionNotFound(NotFound):
    code = "commission_not_found"
    default_message = "Commission not found"


class ServiceNotFound(NotFound):
    code = "service_not_found"
    default_message = "Service not found or inactive"


# ---- consistency -------------------------------------------------------------
class PartialSettlementFailure(SettlementError):
    """A dependent write failed after an earlier write of the same settlement succeeded."""

    code = "partial_settlement_failure"
    default_message = "Settlement could not be completed"

    def __init__(self, message: str | None = None, *, cause: SettlementError | None = None) -> None:
        super().__init__(message)
        self.cause = cause


@dataclass(frozen=True)
class Result(Generic[T]):
    value: T | None = None
    error: SettlementError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


def ok(value: T) -> Result[T]:
    return Result(value=value)


def fail(error: SettlementError) -> Result:
    return Result(error=error)
