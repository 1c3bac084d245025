"""
Error Handling Infrastructure for Frame Enhancer
"""
import functools
import time
import traceback
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from core.logger import AppLogger


class FrameEnhancerError(Exception):
    """Base class for application errors."""


class MediaError(FrameEnhancerError):
    """The video cannot be opened or its metadata cannot be read."""


class FrameDecodeError(FrameEnhancerError):
    """A single frame could not be decoded at the requested timestamp."""

    def __init__(self, timestamp: float, reason: str = "decode failed"):
        super().__init__(f"Could not decode frame at {timestamp:.3f}s: {reason}")
        self.timestamp = timestamp


class RemoteServiceError(FrameEnhancerError):
    """A classifier or enhancer call failed or returned an unusable response."""


class SelectionCapacityError(FrameEnhancerError):
    """Adding a frame would exceed the selection limit."""

    def __init__(self, max_selected: int):
        super().__init__(f"You can select up to {max_selected} frames.")
        self.max_selected = max_selected


class PipelineBusyError(FrameEnhancerError):
    """A run was started while another run is still active."""


class ErrorHandler:
    def __init__(self, logger: 'AppLogger', max_attempts: int, backoff_seconds: list):
        """
        Initializes the ErrorHandler.

        Args:
            logger: Application logger.
            max_attempts: Default maximum retry attempts.
            backoff_seconds: List of backoff delays in seconds.
        """
        self.logger = logger
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds

    def with_retry(self, max_attempts: Optional[int] = None, backoff_seconds: Optional[list] = None, recoverable_exceptions: tuple = (Exception,)):
        """
        Decorator that retries the function call upon failure.

        Args:
            max_attempts: Maximum number of attempts.
            backoff_seconds: List of backoff times between retries.
            recoverable_exceptions: Tuple of exceptions to catch and retry.

        Returns:
            Decorated function.
        """
        max_attempts = max(1, max_attempts or self.max_attempts)
        backoff_seconds = backoff_seconds if backoff_seconds is not None else self.backoff_seconds

        def decorator(func: Callable) -> Callable:
            @functools.wraps(func)
            def wrapper(*args, **kwargs) -> Any:
                last_exception = None
                for attempt in range(max_attempts):
                    try:
                        return func(*args, **kwargs)
                    except recoverable_exceptions as e:
                        last_exception = e
                        if attempt < max_attempts - 1:
                            sleep_time = backoff_seconds[min(attempt, len(backoff_seconds) - 1)] if backoff_seconds else 0
                            self.logger.warning(f"Attempt {attempt + 1} failed, retrying in {sleep_time}s: {e}", component="error_handler")
                            time.sleep(sleep_time)
                        else:
                            self.logger.error(f"All retry attempts failed for {func.__name__}: {e}", component="error_handler", stack_trace=traceback.format_exc())
                raise last_exception
            return wrapper
        return decorator
