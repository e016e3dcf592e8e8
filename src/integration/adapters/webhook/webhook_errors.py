from dataclasses import dataclass


class WebhookExecutorError(Exception):
    """Base class for third-party executor endpoint failures."""
    pass


class WebhookNetworkError(WebhookExecutorError):
    """Connection failure after retries were exhausted."""
    pass


@dataclass
class WebhookTimeoutError(WebhookExecutorError):
    timeout_seconds: float

    def __str__(self) -> str:
        return f"Webhook executor timeout after {self.timeout_seconds:g}s"


@dataclass
class WebhookResponseError(WebhookExecutorError):
    """Non-2xx status or a body that is not a valid execution result."""
    status_code: int
    description: str

    def __str__(self) -> str:
        if self.status_code:
            return f"Webhook executor returned {self.status_code}: {self.description}"
        return f"Invalid response from webhook executor: {self.description}"
