"""
Base class for endpoint consumers built on ApiService.
"""

from abc import ABC, abstractmethod

from apiservice.services.client import ApiService
from apiservice.settings import Settings


class BaseDataSource(ABC):
    """
    Abstract base class for all endpoint consumers.

    All data sources should:
    - Use the injected ApiService for HTTP requests (auth, cache, errors)
    - Return Pydantic models
    - Let typed ApiError subclasses propagate to the caller
    """

    def __init__(self, api: ApiService, settings: Settings):
        self.api = api
        self.settings = settings

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Unique identifier for this data source."""
        ...

    def is_configured(self) -> bool:
        """Check if the data source has somewhere to talk to."""
        return bool(self.settings.api_base_url)
