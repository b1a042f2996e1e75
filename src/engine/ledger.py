"""
Position Ledger — хранилище позиций и маржинальных счетов

Позиции адресуются ключом (owner, pool_id), маржа — owner. Чтение никогда
не создаёт записей: отсутствующая позиция читается как пустая. Запись
происходит только через commit, который публикует набор снапшотов целиком.
"""

import logging
from typing import Iterable

from src.core.domain.position import Margin, Position

logger = logging.getLogger(__name__)


class PositionLedger:
    """Позиции и маржа всех владельцев. Единственный мутатор — Engine."""

    def __init__(self) -> None:
        self._positions: dict[tuple[str, str], Position] = {}
        self._margins: dict[str, Margin] = {}

    def get_position(self, owner: str, pool_id: str) -> Position:
        position = self._positions.get((owner, pool_id))
        if position is None:
            return Position(owner=owner, pool_id=pool_id)
        return position

    def get_margin(self, owner: str) -> Margin:
        margin = self._margins.get(owner)
        if margin is None:
            return Margin(owner=owner)
        return margin

    def commit(
        self,
        positions: Iterable[Position] = (),
        margins: Iterable[Margin] = (),
    ) -> None:
        """Публикация новых снапшотов позиций и маржи."""
        for position in positions:
            self._positions[(position.owner, position.pool_id)] = position
            logger.debug(
                "Position %s/%s: liquidity=%d float=%d debt=%d",
                position.owner,
                position.pool_id,
                position.liquidity,
                position.float_liquidity,
                position.debt,
            )
        for margin in margins:
            self._margins[margin.owner] = margin
