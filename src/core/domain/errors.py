"""
Engine Errors — иерархия исключений движка

Коды ошибок:
  1xxx: параметры вызова (суммы, PoolId, экспирация)
  2xxx: резервы и float
  3xxx: позиции и маржа
  4xxx: защита от проскальзывания
  9xxx: нарушение инварианта (ошибка аппроксимации или реализации)

Все ошибки пробрасываются синхронно; операция, завершившаяся ошибкой,
не оставляет частичных изменений состояния. Повторы — забота вызывающего.
"""


class EngineError(Exception):
    """Базовая ошибка движка."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


# --- 1xxx: Parameters ---


class InvalidParametersError(EngineError):
    """Нулевые/отрицательные суммы, некорректный PoolId, невалидные параметры кривой."""

    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid parameters: {detail}")


class PoolNotFoundError(InvalidParametersError):
    def __init__(self, pool_id: str) -> None:
        super().__init__(f"pool not found: {pool_id}")
        self.code = 1002


class PoolExpiredError(InvalidParametersError):
    def __init__(self, pool_id: str) -> None:
        super().__init__(f"pool has reached maturity: {pool_id}")
        self.code = 1003


# --- 2xxx: Reserves ---


class InsufficientReservesError(EngineError):
    def __init__(self, detail: str) -> None:
        super().__init__(2001, f"Insufficient reserves: {detail}")


class InsufficientFloatError(EngineError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2002,
            f"Insufficient float: required {required}, available {available}",
        )
        self.required = required
        self.available = available


# --- 3xxx: Positions ---


class CollateralConflictError(EngineError):
    """Владелец одновременно поставщик ликвидности и заёмщик в одном пуле."""

    def __init__(self, owner: str, pool_id: str, detail: str) -> None:
        super().__init__(
            3001,
            f"Collateral conflict for {owner} on pool {pool_id}: {detail}",
        )


class InsufficientBalanceError(InsufficientReservesError):
    """Недостаточно токенов у владельца (custody или маржа)."""

    def __init__(self, token: str, required: int, available: int) -> None:
        super().__init__(
            f"{token} balance: required {required}, available {available}"
        )
        self.code = 3002


# --- 4xxx: Slippage ---


class SlippageExceededError(EngineError):
    def __init__(self, detail: str) -> None:
        super().__init__(4001, f"Slippage exceeded: {detail}")


# --- 9xxx: Invariant ---


class InvariantViolationError(EngineError):
    """
    Инвариант уменьшился после свопа сильнее допустимой толерантности.

    Признак ошибки аппроксимации или реализации. Операция отклоняется целиком.
    """

    def __init__(self, invariant_last: int, invariant_next: int) -> None:
        super().__init__(
            9001,
            f"Invariant decreased: {invariant_next} < {invariant_last}",
        )
        self.invariant_last = invariant_last
        self.invariant_next = invariant_next


def require_positive(value: int, name: str) -> None:
    """
    Проверка, что сумма строго положительна.

    Raises:
        InvalidParametersError: Если value <= 0
    """
    if value <= 0:
        raise InvalidParametersError(f"{name} must be positive, got {value}")
