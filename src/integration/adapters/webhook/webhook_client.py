import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from src.integration.adapters.webhook.webhook_errors import (
    WebhookNetworkError,
    WebhookResponseError,
    WebhookTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookExecutorConfig:
    executor_url: str
    api_key: Optional[str] = None
    timeout_seconds: float = 30.0
    max_retries: int = 2


class WebhookClient:
    """
    HTTP client for third-party executor endpoints.
    Retries connection errors and 5xx responses with backoff, then
    normalizes every failure into a WebhookExecutorError.
    """

    def __init__(self, config: WebhookExecutorConfig, session: Optional[requests.Session] = None):
        if not config.executor_url:
            raise ValueError("Webhook executor URL is required")
        self.config = config
        self.session = session or self._create_session(config.max_retries)

    def _create_session(self, max_retries: int) -> requests.Session:
        session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=0.5,
            status_forcelist=[502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        try:
            response = self.session.post(
                self.config.executor_url,
                json=payload,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except requests.Timeout as e:
            logger.error("Webhook executor %s timed out", self.config.executor_url)
            raise WebhookTimeoutError(self.config.timeout_seconds) from e
        except requests.RequestException as e:
            logger.error("Webhook executor network error: %s", e)
            raise WebhookNetworkError(f"Request failed: {e}") from e

        if not response.ok:
            logger.warning("Webhook executor returned %s", response.status_code)
            raise WebhookResponseError(response.status_code, response.reason or "")

        try:
            data = response.json()
        except ValueError as e:
            raise WebhookResponseError(0, "body is not JSON") from e
        if not isinstance(data, dict):
            raise WebhookResponseError(0, "body is not a JSON object")
        return data
