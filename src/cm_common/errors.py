"""Unified error codes and custom exceptions.

Every error is an AppError carrying a numeric code, a message and an HTTP
status. Six category bases group the concrete errors:

  NotFoundError          404  missing order/payout/listing/user/scout
  InvalidStateError      409  transition outside the state machine (reports current status)
  InvalidOperationError  422  business-rule violation
  ForbiddenError         403  caller does not own the resource
  AuthenticationError    401  unverifiable gateway notification / bad token
  GatewayError           502  payment provider failure

Error code ranges:
  1xxx: User/Auth
  2xxx: Listing
  3xxx: Order
  4xxx: Payout
  5xxx: Scout
  6xxx: Payment gateway
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Categories ---

class NotFoundError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 404)


class InvalidStateError(AppError):
    def __init__(self, code: int, message: str, current_status: str) -> None:
        self.current_status = current_status
        super().__init__(code, f"{message} (current status: {current_status})", 409)


class InvalidOperationError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 422)


class ForbiddenError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 403)


class AuthenticationError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 401)


class GatewayError(AppError):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(code, message, 502)


# --- 1xxx: User/Auth ---

class UserNotFoundError(NotFoundError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1001, f"User not found: {user_id}")


class InvalidCredentialsError(AuthenticationError):
    def __init__(self) -> None:
        super().__init__(1002, "Invalid or expired token")


class AccountDisabledError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(1003, "Account is disabled")


class AdminRequiredError(ForbiddenError):
    def __init__(self) -> None:
        super().__init__(1004, "Admin privileges required")


# --- 2xxx: Listing ---

class ListingNotFoundError(NotFoundError):
    def __init__(self, listing_id: str) -> None:
        super().__init__(2001, f"Listing not found: {listing_id}")


class ListingNotPurchasableError(InvalidStateError):
    def __init__(self, listing_id: str, status: str) -> None:
        super().__init__(2002, f"Listing {listing_id} is not available for purchase", status)


# --- 3xxx: Order ---

class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3001, f"Order not found: {order_id}")


class SelfPurchaseError(InvalidOperationError):
    def __init__(self) -> None:
        super().__init__(3002, "You cannot buy your own listing")


class OrderInvalidStateError(InvalidStateError):
    def __init__(self, order_id: str, action: str, status: str) -> None:
        super().__init__(3003, f"Cannot {action} order {order_id}", status)


class OrderAccessForbiddenError(ForbiddenError):
    def __init__(self, order_id: str) -> None:
        super().__init__(3004, f"You can only act on your own orders: {order_id}")


class InvalidItemPriceError(InvalidOperationError):
    def __init__(self, price: object) -> None:
        super().__init__(3005, f"Item price must be a positive integer in paise, got {price!r}")


class MalformedNotificationError(InvalidOperationError):
    def __init__(self, detail: str) -> None:
        super().__init__(3006, f"Malformed payment notification: {detail}")


# --- 4xxx: Payout ---

class PayoutNotFoundError(NotFoundError):
    def __init__(self, payout_id: str) -> None:
        super().__init__(4001, f"Payout not found: {payout_id}")


class PayoutInvalidStateError(InvalidStateError):
    def __init__(self, payout_id: str, action: str, status: str) -> None:
        super().__init__(4002, f"Cannot {action} payout {payout_id}", status)


class NonPositiveAmountError(InvalidOperationError):
    def __init__(self, amount: int) -> None:
        super().__init__(4003, f"Payout amount must be greater than 0 paise, got {amount}")


class InsufficientEarningsError(InvalidOperationError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            4004,
            f"Insufficient earnings: requested {requested} paise, available {available} paise",
        )


class RefundedOrderPayoutError(InvalidOperationError):
    def __init__(self, payout_id: str, order_id: str) -> None:
        super().__init__(
            4005,
            f"Payout {payout_id} references refunded order {order_id}; cancel it instead",
        )


# --- 5xxx: Scout ---

class ScoutNotFoundError(NotFoundError):
    def __init__(self, scout_ref: str) -> None:
        super().__init__(5001, f"Scout not found: {scout_ref}")


class ScoutOwnershipError(InvalidOperationError):
    def __init__(self, scout_id: str, user_id: str) -> None:
        super().__init__(5002, f"Scout {scout_id} does not belong to user {user_id}")


class ScoutAlreadyRegisteredError(AppError):
    def __init__(self) -> None:
        super().__init__(5003, "User is already registered as a scout", 409)


class ScoutNotEligibleError(InvalidOperationError):
    def __init__(self) -> None:
        super().__init__(
            5004,
            "You need at least 1 completed transaction (as buyer or seller) to register as a scout",
        )


class ScoutAccessForbiddenError(ForbiddenError):
    def __init__(self, scout_id: str) -> None:
        super().__init__(5005, f"You can only act on your own scout profile: {scout_id}")


# --- 6xxx: Payment gateway ---

class NotificationAuthenticationError(AuthenticationError):
    def __init__(self, detail: str = "Invalid webhook credentials or signature") -> None:
        super().__init__(6001, detail)


class PaymentInitiationError(GatewayError):
    def __init__(self, detail: str) -> None:
        super().__init__(6002, f"Payment gateway error: {detail}")


class SettlementError(GatewayError):
    def __init__(self, detail: str) -> None:
        super().__init__(6003, f"Settlement failed: {detail}")


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
