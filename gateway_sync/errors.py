# Cloudflare Gateway Adblock Updater
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

from typing import Optional

class GatewaySyncError(Exception):
    """Base class for every error raised by gateway_sync."""

class ConfigError(GatewaySyncError):
    pass

class OperationCancelled(GatewaySyncError):
    def __init__(self, reason: str = "cancelled"):
        super().__init__(reason)
        self.reason = reason

class DownloadError(GatewaySyncError):
    """A domain list source could not be fetched."""

    def __init__(self, url: str, status: Optional[int] = None, detail: str = ""):
        if status is not None:
            message = f"http {status} from {url}"
        else:
            message = f"download {url} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.url = url
        self.status = status

class GatewayError(GatewaySyncError):
    """Base class for failures talking to the Gateway API."""

class TransportError(GatewayError):
    def __init__(self, method: str, path: str, cause: Exception):
        super().__init__(f"{method} {path}: {cause}")
        self.method = method
        self.path = path
        self.cause = cause

class ApiRequestError(GatewayError):
    def __init__(self, method: str, path: str, status: int, body: str = ""):
        super().__init__(f"{method} {path}: http {status}: {body}")
        self.method = method
        self.path = path
        self.status = status
        self.body = body

class RateLimitedError(ApiRequestError):
    def __init__(self, method: str, path: str, retry_after: Optional[int] = None):
        super().__init__(method, path, 429, "rate limited")
        self.retry_after = retry_after

class RequestBuildError(GatewayError):
    """The request could not be constructed. Never retried."""

    def __init__(self, method: str, path: str, cause: Exception):
        super().__init__(f"{method} {path}: invalid request: {cause}")
        self.method = method
        self.path = path
        self.cause = cause

class RetryBudgetExceeded(GatewayError):
    def __init__(self, method: str, path: str, attempts: int, last_error: Exception):
        super().__init__(
            f"{method} {path}: giving up after {attempts} attempt(s): {last_error}"
        )
        self.method = method
        self.path = path
        self.attempts = attempts
        self.last_error = last_error

class ResponseError(GatewayError):
    """A successful HTTP response whose body could not be used."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation}: {detail}")
        self.operation = operation
        self.detail = detail

class GatewayOperationError(GatewayError):
    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"{operation}: {cause}")
        self.operation = operation
        self.cause = cause

class ReconcileError(GatewaySyncError):
    def __init__(self, step: str, cause: Exception):
        super().__init__(f"{step}: {cause}")
        self.step = step
        self.cause = cause
