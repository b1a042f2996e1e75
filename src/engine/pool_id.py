"""PoolId — детерминированный идентификатор пула из (strike, sigma, maturity)."""

import hashlib
import re
from typing import Final

from src.core.domain.errors import InvalidParametersError

POOL_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"^0x[0-9a-f]{64}$")

# Ширина каждого параметра в байтах при упаковке
_WORD_BYTES: Final[int] = 32


def compute_pool_id(strike: int, sigma: int, maturity: int) -> str:
    """
    Идентификатор пула: sha3-256 от упакованных (strike, sigma, maturity).

    Args:
        strike: Страйк (wei)
        sigma: Волатильность (bps)
        maturity: Экспирация (секунды)

    Returns:
        "0x" + 64 hex символа

    Raises:
        InvalidParametersError: Если параметр отрицательный или не помещается в 32 байта
    """
    try:
        packed = b"".join(
            value.to_bytes(_WORD_BYTES, "big") for value in (strike, sigma, maturity)
        )
    except OverflowError as e:
        raise InvalidParametersError(
            f"pool parameters out of range: strike={strike}, sigma={sigma}, maturity={maturity}"
        ) from e
    return "0x" + hashlib.sha3_256(packed).hexdigest()


def validate_pool_id(pool_id: str) -> None:
    """
    Raises:
        InvalidParametersError: Если pool_id не в формате 0x + 64 hex
    """
    if not isinstance(pool_id, str) or not POOL_ID_PATTERN.match(pool_id):
        raise InvalidParametersError(f"malformed pool id: {pool_id!r}")
