"""
DataSource interface and supporting types.

This module defines the core abstraction for sources that fetch data from the
catalog API. Each source provides request preparation and envelope retrieval;
the pagination engine only needs a page-fetch callable built on top of them.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .envelope import Envelope

T = TypeVar("T")


@dataclass
class RequestSpec:
    """
    Specification for an HTTP request.

    Attributes:
        url: Full URL to request
        method: HTTP method (GET, POST, etc.)
        headers: HTTP headers as key-value pairs
        query_params: Query string parameters
        body: Optional form body for POST requests
    """
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, str] = field(default_factory=dict)
    body: dict[str, str] | None = None


@dataclass
class Page(Generic[T]):
    """
    A single page of results from a paginated endpoint.

    Attributes:
        items: Records in this page
        offset: Offset the page was requested at
        total_items: Collection size reported alongside the page
    """
    items: list[T]
    offset: int = 0
    total_items: int = 0


# Fetches the page starting at the given offset
PageFetcher = Callable[[int], Awaitable[list[T]]]


class DataSource(ABC):
    """
    Abstract base class for all data sources.

    Subclasses build requests for their API and turn responses into envelopes.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this data source.

        Returns:
            The name of the data source (e.g., "tcgplayer")
        """
        pass

    @abstractmethod
    def prepare_request(self, endpoint: str, params: dict[str, Any] | None = None) -> RequestSpec:
        """
        Prepare an HTTP request specification for the given endpoint.

        Args:
            endpoint: API endpoint path (relative to base URL)
            params: Optional parameters to include in the request

        Returns:
            A RequestSpec with url, method, headers, and query parameters
        """
        pass

    @abstractmethod
    async def get_request(self, endpoint: str, params: dict[str, Any] | None = None) -> Envelope:
        """
        Perform an authenticated GET and decode the response envelope.

        Args:
            endpoint: API endpoint path
            params: Optional query parameters

        Returns:
            The decoded Envelope
        """
        pass
