"""
Collaborators — внешние зависимости движка

- TokenCustody: перемещение токенов между владельцами и движком
- Clock: текущее время для пересчёта tau

Протоколы описывают только то, что движок вызывает. В комплекте
in-memory custody и часы (системные и ручные) для тестов и симуляций.
"""

import time
from collections import defaultdict
from typing import Protocol, runtime_checkable

from src.core.domain.errors import InsufficientBalanceError, InvalidParametersError


# =============================================================================
# PROTOCOLS
# =============================================================================


@runtime_checkable
class TokenCustody(Protocol):
    """Хранение токенов. Движок передаёт только точные целые суммы."""

    def transfer_in(self, token: str, source: str, amount: int) -> None:
        """Перевод amount токена от source в движок."""
        ...

    def transfer_out(self, token: str, destination: str, amount: int) -> None:
        """Перевод amount токена из движка на destination."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Источник времени (unix секунды)."""

    def now(self) -> int:
        ...


# =============================================================================
# IN-MEMORY CUSTODY
# =============================================================================


class InMemoryCustody:
    """
    Балансы токенов в памяти.

    held — токены, находящиеся у движка (резервы, комиссии, маржа, залог).
    """

    def __init__(self) -> None:
        self._balances: dict[tuple[str, str], int] = defaultdict(int)
        self._held: dict[str, int] = defaultdict(int)

    def mint(self, token: str, account: str, amount: int) -> None:
        if amount < 0:
            raise InvalidParametersError(f"mint amount must be non-negative, got {amount}")
        self._balances[(token, account)] += amount

    def balance_of(self, token: str, account: str) -> int:
        return self._balances.get((token, account), 0)

    def held(self, token: str) -> int:
        return self._held.get(token, 0)

    def transfer_in(self, token: str, source: str, amount: int) -> None:
        """
        Raises:
            InsufficientBalanceError: У source недостаточно токенов
        """
        available = self.balance_of(token, source)
        if amount > available:
            raise InsufficientBalanceError(token, amount, available)
        self._balances[(token, source)] = available - amount
        self._held[token] += amount

    def transfer_out(self, token: str, destination: str, amount: int) -> None:
        """
        Raises:
            InsufficientBalanceError: У движка недостаточно токенов
        """
        available = self.held(token)
        if amount > available:
            raise InsufficientBalanceError(token, amount, available)
        self._held[token] = available - amount
        self._balances[(token, destination)] += amount


# =============================================================================
# CLOCKS
# =============================================================================


class SystemClock:
    """Системное время."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Часы, управляемые вручную (тесты, симуляции)."""

    def __init__(self, timestamp: int = 0) -> None:
        self._timestamp = timestamp

    def now(self) -> int:
        return self._timestamp

    def set(self, timestamp: int) -> None:
        self._timestamp = timestamp

    def advance(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError(f"clock cannot go backwards: {seconds}")
        self._timestamp += seconds
