"""
Human Check

Arithmetic question shown after the possession factor. The first operand is
drawn from [10, 30), the second from [1, 10], and the operator from
{+, -, *}. Answers must match exactly.
"""

import secrets
from dataclasses import dataclass

from portfolio_api.models.enums import HumanCheckOperator

FIRST_OPERAND_RANGE = (10, 30)  # half-open
SECOND_OPERAND_RANGE = (1, 10)  # inclusive


@dataclass(frozen=True)
class HumanCheck:
    first: int
    second: int
    operator: HumanCheckOperator

    @classmethod
    def generate(cls, rng: secrets.SystemRandom | None = None) -> "HumanCheck":
        rng = rng or secrets.SystemRandom()
        low, high = FIRST_OPERAND_RANGE
        first = rng.randrange(low, high)
        second = rng.randint(*SECOND_OPERAND_RANGE)
        operator = rng.choice(list(HumanCheckOperator))
        return cls(first=first, second=second, operator=operator)

    @property
    def expression(self) -> str:
        symbol = "×" if self.operator is HumanCheckOperator.MULTIPLY else self.operator.value
        return f"{self.first} {symbol} {self.second}"

    @property
    def expected(self) -> int:
        if self.operator is HumanCheckOperator.ADD:
            return self.first + self.second
        if self.operator is HumanCheckOperator.SUBTRACT:
            return self.first - self.second
        return self.first * self.second


def verify_human_check(answer: int | str | None, expected: int) -> bool:
    """
    Compare a submitted answer to the expected result.

    Args:
        answer: Integer or its decimal string form
        expected: Result of the question that was shown

    Returns:
        True only for an exact integer match
    """
    if answer is None or isinstance(answer, bool):
        return False
    if isinstance(answer, str):
        answer = answer.strip()
        try:
            answer = int(answer)
        except ValueError:
            return False
    if not isinstance(answer, int):
        return False
    return answer == expected
