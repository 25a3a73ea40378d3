from datetime import datetime, UTC
from typing import Any, Dict

from pydantic import BaseModel


class AuthConfig(BaseModel):
    """Datadog key pair used for every request."""
    api_key: str
    app_key: str


class DatadogKeyAuth:
    """API key + application key authentication sent as request headers."""

    API_KEY_HEADER = "DD-API-KEY"
    APP_KEY_HEADER = "DD-APPLICATION-KEY"

    def __init__(self, config: AuthConfig):
        if not config.api_key or not config.app_key:
            raise ValueError("Both an API key and an application key are required")
        self.config = config
        self._metrics: Dict[str, Any] = {
            'auth_attempts': 0,
            'last_auth_time': None
        }

    async def get_auth_headers(self) -> Dict[str, str]:
        """Get authentication headers."""
        self._metrics['auth_attempts'] += 1
        self._metrics['last_auth_time'] = datetime.now(UTC)
        return {
            self.API_KEY_HEADER: self.config.api_key,
            self.APP_KEY_HEADER: self.config.app_key
        }

    def get_metrics(self) -> Dict[str, Any]:
        """Get authentication metrics."""
        return self._metrics.copy()
