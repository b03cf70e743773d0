import logging
import time
from typing import Any, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def call_with_retry(func: Callable[..., Any], *args, max_attempts: int = 3, backoff: float = 0.2,
                    retry_on: Tuple[Type[BaseException], ...] = (Exception,), **kwargs) -> Any:
    """
    Call func(*args, **kwargs) with bounded exponential backoff.

    - retries only on exceptions in retry_on, others propagate immediately
    - sleeps backoff * 2**attempt between attempts
    - raises the last exception once max_attempts is exhausted
    """
    last_exc = None
    for attempt in range(max(1, int(max_attempts))):
        try:
            return func(*args, **kwargs)
        except retry_on as e:
            last_exc = e
            if attempt + 1 >= max_attempts:
                break
            sleep_t = backoff * (2 ** attempt)
            logger.warning("[Retry] %s failed (attempt %d/%d): %s; retrying in %.2fs",
                           getattr(func, "__name__", func), attempt + 1, max_attempts, e, sleep_t)
            time.sleep(sleep_t)
    raise last_exc
