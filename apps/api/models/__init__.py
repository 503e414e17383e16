"""Models package."""

from .user import User
from .coin_transaction import CoinTransaction
from .user_visit import UserVisit
from .referral import Referral
