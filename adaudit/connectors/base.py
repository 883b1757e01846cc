"""Abstract base class for ad platform adapters."""

from abc import ABC, abstractmethod
from typing import Dict, Any


class PlatformAdapter(ABC):
    """Base class for every supported advertising/analytics platform.

    Subclasses describe the platform's OAuth endpoints and produce the
    performance document an audit analyses.
    """

    #: Display name, e.g. "Google Ads"
    name: str
    authorize_url: str
    scope: str
    api_base: str

    @property
    @abstractmethod
    def platform_id(self) -> str:
        """Return the platform identifier (e.g., 'google-ads')."""
        ...

    @abstractmethod
    def campaign_data(self) -> Dict[str, Any]:
        """Return the platform-specific part of the performance document."""
        ...

    def fetch_performance_data(self, account_name: str) -> Dict[str, Any]:
        """Return performance metrics for the last 30 days of an account."""
        return {
            "accountName": account_name,
            "platform": self.platform_id,
            "dateRange": "Last 30 days",
            "currency": "USD",
            **self.campaign_data(),
        }

    def describe(self) -> Dict[str, str]:
        return {
            "id": self.platform_id,
            "name": self.name,
            "authUrl": self.authorize_url,
            "scope": self.scope,
            "apiBase": self.api_base,
        }
