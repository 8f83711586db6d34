"""Bounded calls into slow or unreliable collaborators."""

from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TypeVar

from src.core.exceptions import CollaboratorError

T = TypeVar("T")


def call_with_timeout(func: Callable[..., T], timeout: float, *args, **kwargs) -> T:
    """Run ``func`` on a worker thread and wait at most ``timeout`` seconds.

    The worker is abandoned on timeout; Python threads cannot be killed, so
    a hung collaborator keeps running in the background until it returns.

    Args:
        func: The collaborator call.
        timeout: Seconds to wait. Non-positive values disable the limit.

    Returns:
        Whatever ``func`` returns.

    Raises:
        CollaboratorError: If the call raised or did not finish in time.
    """
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(func, *args, **kwargs)
    try:
        return future.result(timeout=timeout if timeout > 0 else None)
    except FutureTimeoutError as exc:
        raise CollaboratorError(
            f"{getattr(func, '__name__', 'collaborator')} timed out after {timeout:.1f}s"
        ) from exc
    except Exception as exc:
        raise CollaboratorError(str(exc) or exc.__class__.__name__) from exc
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
