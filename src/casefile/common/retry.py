"""
Politique de backoff exponentiel partagee.

Une seule implementation sert aux deux niveaux de retry:
- retry de file (objets `rq.Retry` construits via `to_rq_retry()`)
- retry d'appel au modele multimodal (`retry_async`)

Usage:
    policy = BackoffPolicy(attempts=3, base_delay=2.0)
    result = await retry_async(call_model, policy=policy, operation="Gemini")
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from rq import Retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BackoffPolicy:
    """
    Politique de retry: `attempts` executions au total, delai exponentiel entre deux.

    delay(n) = base_delay * factor ** (n - 1) pour la n-ieme attente (n >= 1),
    majore d'un jitter aleatoire dans [0, jitter * delay(n)).

    Le delai reste strictement croissant tant que (1 + jitter) < factor,
    ce qui est verifie a la construction.
    """

    attempts: int = 3
    base_delay: float = 2.0
    factor: float = 2.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.attempts < 1:
            raise ValueError("attempts must be >= 1")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if self.factor <= 1:
            raise ValueError("factor must be > 1")
        if self.jitter < 0 or (1 + self.jitter) >= self.factor:
            raise ValueError("jitter must satisfy 0 <= jitter < factor - 1")

    @property
    def max_retries(self) -> int:
        return self.attempts - 1

    def delay_for(self, retry_number: int, rng: Optional[random.Random] = None) -> float:
        """Delai (secondes) avant la `retry_number`-ieme nouvelle tentative (1-indexe)."""
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")
        delay = self.base_delay * self.factor ** (retry_number - 1)
        if self.jitter:
            delay += (rng or random).uniform(0, self.jitter * delay)
        return delay

    def delays(self) -> list[float]:
        """Delais nominaux (sans jitter) entre les tentatives successives."""
        return [self.base_delay * self.factor ** (n - 1) for n in range(1, self.attempts)]

    def intervals(self) -> list[int]:
        """Delais en secondes entieres pour RQ, strictement croissants."""
        intervals: list[int] = []
        for delay in self.delays():
            value = max(1, math.ceil(delay))
            if intervals and value <= intervals[-1]:
                value = intervals[-1] + 1
            intervals.append(value)
        return intervals

    def to_rq_retry(self) -> Optional[Retry]:
        if self.max_retries == 0:
            return None
        return Retry(max=self.max_retries, interval=self.intervals())


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    policy: BackoffPolicy,
    operation: str = "operation",
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Execute `func` jusqu'a `policy.attempts` fois.

    Leve la derniere exception rencontree une fois les tentatives epuisees;
    l'attribut `attempts` lui est ajoute pour le diagnostic.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, policy.attempts + 1):
        try:
            logger.debug(f"[Retry] {operation}: attempt {attempt}/{policy.attempts}")
            return await func()
        except retry_on as exc:
            last_error = exc
            logger.warning(f"[Retry] {operation}: attempt {attempt}/{policy.attempts} failed: {exc}")
            if attempt < policy.attempts:
                delay = policy.delay_for(attempt)
                logger.info(f"[Retry] {operation}: waiting {delay:.1f}s before retry")
                await sleep(delay)

    assert last_error is not None
    setattr(last_error, "attempts", policy.attempts)
    raise last_error


__all__ = ["BackoffPolicy", "retry_async"]
