import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Tuple, Type

logger = logging.getLogger(__name__)


@dataclass
class RetryAttempt:
    attempt: int
    error: str
    delay: float


@dataclass
class RetryPolicy:
    """Политика повторов с экспоненциальной задержкой"""
    max_attempts: int = 3
    base_delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float = 5.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def delay_for(self, attempt: int) -> float:
        return min(self.max_delay, self.base_delay * (self.multiplier ** (attempt - 1)))


class RetryExhaustedError(Exception):
    """Итоговый отчет о неудаче после всех попыток"""

    def __init__(self, operation: str, attempts: List[RetryAttempt]):
        last = attempts[-1].error if attempts else "unknown error"
        super().__init__(f"{operation} failed after {len(attempts)} attempts: {last}")
        self.operation = operation
        self.attempts = attempts


@dataclass
class RetryOutcome:
    result: Any
    attempts: List[RetryAttempt] = field(default_factory=list)


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    policy: Optional[RetryPolicy] = None,
    operation: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryOutcome:
    """Выполнение корутины с повторами.

    Неудачные попытки накапливаются в журнале; после последней поднимается
    RetryExhaustedError со всем журналом. Ошибки вне policy.retry_on
    пробрасываются сразу.
    """
    policy = policy or RetryPolicy()
    attempts: List[RetryAttempt] = []

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await func()
            return RetryOutcome(result=result, attempts=attempts)
        except policy.retry_on as e:
            delay = policy.delay_for(attempt) if attempt < policy.max_attempts else 0.0
            attempts.append(RetryAttempt(attempt=attempt, error=str(e), delay=delay))
            logger.warning(f"{operation} attempt {attempt}/{policy.max_attempts} failed: {e}")
            if delay:
                await sleep(delay)

    raise RetryExhaustedError(operation, attempts)
