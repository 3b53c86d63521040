"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class ListingStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    WITHDRAWN = "WITHDRAWN"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    ESCROWED = "ESCROWED"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"


class OrderEvent(str, Enum):
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    BUYER_CONFIRMED = "BUYER_CONFIRMED"
    REFUND = "REFUND"  # issued by the external refund process only


class PayoutType(str, Enum):
    REFERRAL_BOUNTY = "REFERRAL_BOUNTY"
    SELLER_PAYOUT = "SELLER_PAYOUT"


class PayoutStatus(str, Enum):
    PAYABLE = "PAYABLE"        # waiting for the 1st/16th run after the maturation window
    PENDING = "PENDING"        # explicitly requested or retried, processed on demand
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PayoutEvent(str, Enum):
    START = "START"
    SUCCEED = "SUCCEED"
    FAIL = "FAIL"
    RETRY = "RETRY"
    CANCEL = "CANCEL"


class ScoutStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class EarningEntryType(str, Enum):
    BOUNTY_CREDIT = "BOUNTY_CREDIT"
    PAYOUT_DEBIT = "PAYOUT_DEBIT"
