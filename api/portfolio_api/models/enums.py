"""
Enums for the portfolio admin API.
"""

from enum import Enum


class LoginStage(str, Enum):
    """Steps of the admin login flow, in order."""

    AWAITING_SECRET = "awaiting_secret"
    AWAITING_POSSESSION = "awaiting_possession"  # passkey or one-time code
    AWAITING_HUMAN_CHECK = "awaiting_human_check"
    AUTHENTICATED = "authenticated"

    @classmethod
    def ordered(cls) -> list["LoginStage"]:
        return [
            cls.AWAITING_SECRET,
            cls.AWAITING_POSSESSION,
            cls.AWAITING_HUMAN_CHECK,
            cls.AUTHENTICATED,
        ]

    def next(self) -> "LoginStage":
        """Following stage; AUTHENTICATED is terminal."""
        stages = self.ordered()
        index = stages.index(self)
        return stages[min(index + 1, len(stages) - 1)]


class PossessionFactor(str, Enum):
    """Configured second login step."""

    PASSKEY = "passkey"
    ONE_TIME_CODE = "one_time_code"


class HumanCheckOperator(str, Enum):
    """Arithmetic operators used by the human check."""

    ADD = "+"
    SUBTRACT = "-"
    MULTIPLY = "*"
