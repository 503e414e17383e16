"""Structured failures raised by the rewards services.

Each error is an ``HTTPException`` with a fixed status code and a stable
``kind``; the response body is ``{"detail": {"error": kind, "message": ...}}``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException


class RewardsError(HTTPException):
    """Base class for rewards failures surfaced to API callers."""

    status_code_default = 500
    kind = "rewards_error"
    default_message = "Rewards operation failed."

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        detail: Dict[str, Any] = {"error": self.kind, "message": self.message}
        detail.update(extra)
        super().__init__(status_code=self.status_code_default, detail=detail)


class InvalidInput(RewardsError):
    status_code_default = 400
    kind = "invalid_input"
    default_message = "Invalid input."


class UserNotFound(RewardsError):
    status_code_default = 404
    kind = "user_not_found"
    default_message = "User not found."


class ReferredUserNotFound(RewardsError):
    status_code_default = 404
    kind = "referred_user_not_found"
    default_message = "Referred user not found."


class InvalidReferralCode(RewardsError):
    status_code_default = 404
    kind = "invalid_referral_code"
    default_message = "Invalid referral code."


class InvalidOrConsumedToken(RewardsError):
    status_code_default = 404
    kind = "invalid_or_consumed_token"
    default_message = "Invalid or already confirmed token."


class DailyLimitExceeded(RewardsError):
    status_code_default = 403
    kind = "daily_limit_exceeded"
    default_message = "Daily coin limit reached."


class InsufficientBalance(RewardsError):
    status_code_default = 403
    kind = "insufficient_balance"
    default_message = "Not enough coins to redeem."


class InsufficientFairCoins(RewardsError):
    status_code_default = 400
    kind = "insufficient_fair_coins"
    default_message = "Not enough fair play coins."


class SelfReferral(RewardsError):
    status_code_default = 400
    kind = "self_referral"
    default_message = "Cannot refer yourself."


class AlreadyReferred(RewardsError):
    status_code_default = 400
    kind = "already_referred"
    default_message = "User already referred."


class DuplicateReferral(RewardsError):
    status_code_default = 409
    kind = "duplicate_referral"
    default_message = "Referral already exists."


class Unauthorized(RewardsError):
    status_code_default = 401
    kind = "unauthorized"
    default_message = "Missing or invalid access token."


class Forbidden(RewardsError):
    status_code_default = 403
    kind = "forbidden"
    default_message = "Not allowed for this caller."


class PersistenceFailure(RewardsError):
    status_code_default = 500
    kind = "persistence_failure"
    default_message = "Failed to update the rewards ledger."


class RateLimited(RewardsError):
    status_code_default = 429
    kind = "rate_limited"
    default_message = "Rate limit exceeded. Try again later."


class OperationTimeout(RewardsError):
    status_code_default = 504
    kind = "timeout"
    default_message = "Rewards operation timed out."


class ServiceUnavailable(RewardsError):
    status_code_default = 503
    kind = "service_unavailable"
    default_message = "A backing service is unavailable."
