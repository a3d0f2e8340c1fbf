"""Error taxonomy with retry logic for LLM transport and agent-level failures."""

import asyncio
import random
import re
from typing import Optional, Type, Tuple, Callable, Any
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of transport errors for better handling."""
    NETWORK = "network"  # Connection issues, timeouts
    API_ERROR = "api_error"  # API returned error response
    AUTH_ERROR = "auth_error"  # Authentication/authorization failures
    RATE_LIMIT = "rate_limit"  # Rate limit exceeded
    VALIDATION = "validation"  # Input validation errors
    UNKNOWN = "unknown"


class RetryableError(Exception):
    """Base exception for transport errors that may be retried."""
    def __init__(self, message: str, category: ErrorCategory, retryable: bool = True, retry_after: Optional[float] = None):
        self.message = message
        self.category = category
        self.retryable = retryable
        self.retry_after = retry_after
        super().__init__(message)


class NetworkError(RetryableError):
    """Network-related errors (connection, timeout)."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.NETWORK, retryable=True, retry_after=retry_after)


class APIError(RetryableError):
    """API returned an error response."""
    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False, retry_after: Optional[float] = None):
        self.status_code = status_code
        super().__init__(message, ErrorCategory.API_ERROR, retryable=retryable, retry_after=retry_after)


class AuthError(RetryableError):
    """Authentication/authorization errors."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.AUTH_ERROR, retryable=False)


class RateLimitError(RetryableError):
    """Rate limit exceeded."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, ErrorCategory.RATE_LIMIT, retryable=True, retry_after=retry_after)


class ValidationError(RetryableError):
    """Input validation errors."""
    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.VALIDATION, retryable=False)


class AgentErrorKind(str, Enum):
    """Error kinds surfaced to callers in AgentResponse.error.type."""
    SYSTEM_ERROR = "SYSTEM_ERROR"  # LLM / infrastructure failure
    VALIDATION_ERROR = "VALIDATION_ERROR"  # Malformed user input
    BUSINESS_RULE = "BUSINESS_RULE"  # Domain constraint violated


class AgentError(Exception):
    """
    Base exception for agent-layer failures.

    Recoverability is fixed where the error is raised, so handlers never
    need to inspect the message text.
    """
    kind: AgentErrorKind = AgentErrorKind.SYSTEM_ERROR
    recoverable: bool = True

    def __init__(self, message: str, kind: Optional[AgentErrorKind] = None, recoverable: Optional[bool] = None):
        self.message = message
        if kind is not None:
            self.kind = kind
        if recoverable is not None:
            self.recoverable = recoverable
        super().__init__(message)


class LLMServiceError(AgentError):
    """The LLM provider failed after primary and fallback attempts."""


class LLMTimeoutError(LLMServiceError):
    """An LLM call exceeded its timeout."""


class FatalAgentError(AgentError):
    """Unrecoverable failure; the conversation cannot continue on this agent."""
    recoverable = False


class MissingTenantContextError(FatalAgentError):
    """An LLM call was attempted without a tenant context."""


class InvalidAgentConfigError(FatalAgentError):
    """Agent configuration failed validation at construction time."""


class RestaurantNotFoundError(AgentError):
    """Restaurant row does not exist in storage."""

    def __init__(self, restaurant_id: int):
        self.restaurant_id = restaurant_id
        super().__init__(f"Restaurant {restaurant_id} not found", recoverable=False)


class TenantAccessError(AgentError):
    """Tenant is not allowed to use the requested capability (status or plan)."""
    kind = AgentErrorKind.BUSINESS_RULE
    recoverable = False

    def __init__(self, message: str, tenant_id: Optional[int] = None, agent_type: Optional[str] = None):
        self.tenant_id = tenant_id
        self.agent_type = agent_type
        super().__init__(message)


_FATAL_MARKERS = ("SYSTEM_ERROR", "CRITICAL", "Fatal")


def is_recoverable(error: Exception) -> bool:
    """
    Decide whether a conversation can continue after an error.

    Typed errors carry their own flag. Only untyped exceptions fall back to
    scanning the message for fatal markers.
    """
    if isinstance(error, AgentError):
        return error.recoverable
    if isinstance(error, RetryableError):
        return error.category != ErrorCategory.AUTH_ERROR
    message = str(error)
    return not any(marker in message for marker in _FATAL_MARKERS)


def classify_error(error: Exception) -> Tuple[ErrorCategory, bool, Optional[float]]:
    """
    Classify an error into a category and determine if it's retryable.

    Args:
        error: The exception to classify

    Returns:
        Tuple of (category, retryable, retry_after_seconds)
    """
    if isinstance(error, RetryableError):
        return error.category, error.retryable, error.retry_after

    if isinstance(error, AgentError):
        return ErrorCategory.UNKNOWN, False, None

    error_str = str(error).lower()
    error_type = type(error).__name__

    if isinstance(error, asyncio.TimeoutError) or error_type in ['ConnectionError', 'TimeoutError']:
        return ErrorCategory.NETWORK, True, None

    if any(keyword in error_str for keyword in ['connection', 'timeout', 'network', 'dns', 'refused']):
        return ErrorCategory.NETWORK, True, None

    if 'rate limit' in error_str or '429' in error_str or 'too many requests' in error_str:
        retry_after = None
        match = re.search(r'retry[_-]after[:\s]+(\d+)', error_str, re.IGNORECASE)
        if match:
            retry_after = float(match.group(1))
        return ErrorCategory.RATE_LIMIT, True, retry_after

    if any(keyword in error_str for keyword in ['unauthorized', 'forbidden', '401', '403', 'authentication', 'authorization']):
        return ErrorCategory.AUTH_ERROR, False, None

    if 'api' in error_str or 'http' in error_str:
        return ErrorCategory.API_ERROR, False, None

    return ErrorCategory.UNKNOWN, False, None


async def retry_with_backoff(
    func: Callable,
    max_retries: int = 2,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int], None]] = None,
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff
        retryable_exceptions: Tuple of exception types to retry
        on_retry: Optional callback called on each retry (exception, attempt_number)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except retryable_exceptions as e:
            _, retryable, retry_after = classify_error(e)

            if not retryable or attempt >= max_retries:
                raise

            if retry_after:
                delay = min(retry_after, max_delay)
            else:
                delay = min(initial_delay * (exponential_base ** attempt), max_delay)

            # Jitter to avoid thundering herd
            delay += random.uniform(0, delay * 0.1)

            if on_retry:
                result = on_retry(e, attempt + 1)
                if asyncio.iscoroutine(result):
                    await result

            await asyncio.sleep(delay)


def wrap_llm_error(error: Exception, provider: str) -> RetryableError:
    """
    Wrap LLM API errors into our error types.

    Args:
        error: Original exception
        provider: LLM provider name ('openai', 'gemini')

    Returns:
        RetryableError with appropriate category
    """
    if isinstance(error, RetryableError):
        return error

    error_str = str(error)
    error_lower = error_str.lower()

    if 'rate limit' in error_lower or '429' in error_str:
        retry_after = None
        if hasattr(error, 'response') and hasattr(error.response, 'headers'):
            retry_after_header = error.response.headers.get('retry-after')
            if retry_after_header:
                try:
                    retry_after = float(retry_after_header)
                except ValueError:
                    retry_after = None
        return RateLimitError(f"{provider} rate limit exceeded", retry_after=retry_after)

    if '401' in error_str or 'unauthorized' in error_lower or 'authentication' in error_lower:
        return AuthError(f"{provider} authentication failed: {error_str}")

    if any(keyword in error_lower for keyword in ['connection', 'timeout', 'network']):
        return NetworkError(f"{provider} network error: {error_str}")

    status_code = getattr(error, 'status_code', None)
    if isinstance(status_code, int):
        if status_code == 429:
            return RateLimitError(f"{provider} rate limit exceeded (429)")
        elif status_code in [401, 403]:
            return AuthError(f"{provider} auth error ({status_code})")
        elif status_code >= 500:
            return APIError(f"{provider} server error ({status_code})", status_code=status_code, retryable=True)
        else:
            return APIError(f"{provider} API error ({status_code})", status_code=status_code, retryable=False)

    return NetworkError(f"{provider} error: {error_str}")
