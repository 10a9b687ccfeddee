"""
재시도 로직 유틸리티.

외부 프로세스(변환기) 호출 실패 시 재시도를 지원합니다.
기본 정책은 재시도 없음 (max_retries=0 → 1회 시도).
"""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retry_with_exponential_backoff(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = 0,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 재시도.

    Args:
        func: 재시도할 함수
        *args: func에 전달할 위치 인자
        max_retries: 최대 재시도 횟수 (0이면 1회만 시도)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        sleep: 대기 함수 (테스트에서 교체)
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    delay = initial_delay
    attempts = max(0, max_retries) + 1

    for attempt in range(1, attempts + 1):
        try:
            result = func(*args, **kwargs)
            if attempt > 1:
                logger.info(f"Retry succeeded on attempt {attempt}/{attempts}")
            return result

        except exceptions as e:
            if attempt == attempts:
                if attempts > 1:
                    logger.error(f"All {attempts} attempts failed. Last error: {e}")
                raise

            logger.warning(
                f"Attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )

            sleep(delay)

            # 지수 백오프
            delay = min(delay * exponential_base, max_delay)

    # Should never reach here
    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)
