"""
Review Provider Clients
=======================

One client per upstream source. A client fetches the raw review payloads
of one product from its source and knows nothing about other sources or
about storage.

Clients:
    ScraperServiceClient: the review scraper microservice, one instance
        per source it serves (amazon, bestbuy, walmart, ...)
    WalmartApiClient: ScraperAPI structured Walmart review endpoint
        (source name: walmart_api)

Contract:
    fetch(product_id) returns a list of payload dicts, possibly empty.
    Timeouts, non-success responses and malformed bodies raise ProviderError.

Usage:
    registry = build_default_registry()
    client = registry.get("amazon")
    payloads = client.fetch("42")
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any

import requests

from .config import ProviderConfig
from .data_models import RawReviewPayload

logger = logging.getLogger(__name__)


WALMART_API_SOURCE = "walmart_api"


class ProviderError(Exception):
    """One upstream source was unreachable or returned something unusable."""

    def __init__(self, source: str, cause: Any):
        self.source = source
        self.cause = cause
        super().__init__(f"{source}: {cause}")

    @property
    def error_type(self) -> str:
        if isinstance(self.cause, requests.Timeout):
            return "ProviderTimeout"
        return type(self.cause).__name__ if isinstance(self.cause, Exception) else "ProviderError"


class ProviderClient(ABC):
    """Base class for a single-source review provider."""

    def __init__(self, source: str, timeout: float = 30.0):
        self.source = source
        self.timeout = timeout

    @abstractmethod
    def fetch(self, product_id: str) -> List[RawReviewPayload]:
        """Fetch raw review payloads for one product."""

    def _get(self, url: str, params: Dict[str, Any]) -> requests.Response:
        """GET with the client timeout, turning transport failures into ProviderError."""
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ProviderError(self.source, e) from e
        return response

    def _parse_json(self, response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.source, f"Malformed response body: {e}") from e


class ScraperServiceClient(ProviderClient):
    """
    Review scraper microservice client for one source.

    GET {base_url}/api/scrape/reviews/{product_id}?source={source}
    The review list is read from "data", falling back to "reviews".
    """

    def __init__(self, source: str, base_url: str, timeout: float = 30.0):
        super().__init__(source, timeout)
        self.base_url = base_url.rstrip("/")

    def fetch(self, product_id: str) -> List[RawReviewPayload]:
        url = f"{self.base_url}/api/scrape/reviews/{product_id}"
        logger.debug(f"Fetching {self.source} reviews for product {product_id}")

        response = self._get(url, {"source": self.source})
        if response.status_code != 200:
            raise ProviderError(
                self.source,
                f"Scraper service returned {response.status_code}: {response.text[:200]}",
            )

        parsed = self._parse_json(response)
        if not isinstance(parsed, dict):
            raise ProviderError(self.source, "Unexpected scraper response format: body is not an object")

        reviews = parsed.get("data") or parsed.get("reviews") or []
        if not isinstance(reviews, list):
            raise ProviderError(self.source, "Unexpected scraper response format: reviews is not an array")
        if any(not isinstance(item, dict) for item in reviews):
            raise ProviderError(self.source, "Unexpected scraper response format: review is not an object")

        return reviews


class WalmartApiClient(ProviderClient):
    """
    ScraperAPI structured Walmart review client.

    The catalog has no Walmart ids of its own, so each local product is
    mapped onto one of the configured Walmart product ids. The mapping is a
    stable hash of the local id: re-ingesting a product always hits the
    same Walmart product.
    """

    def __init__(
        self,
        api_key: str,
        walmart_product_ids: List[str],
        base_url: str = "https://api.scraperapi.com/structured/walmart/review/v1",
        timeout: float = 30.0,
        source: str = WALMART_API_SOURCE,
    ):
        super().__init__(source, timeout)
        self.api_key = api_key
        self.walmart_product_ids = list(walmart_product_ids)
        self.base_url = base_url

    def resolve_external_id(self, product_id: str) -> Optional[str]:
        if not self.walmart_product_ids:
            return None
        digest = hashlib.sha256(str(product_id).encode("utf-8")).hexdigest()
        return self.walmart_product_ids[int(digest[:8], 16) % len(self.walmart_product_ids)]

    def fetch(self, product_id: str) -> List[RawReviewPayload]:
        external_id = self.resolve_external_id(product_id)
        if external_id is None:
            raise ProviderError(self.source, "No Walmart product ids configured")

        logger.debug(f"Fetching Walmart reviews for product {product_id} (walmart id {external_id})")
        response = self._get(self.base_url, {"api_key": self.api_key, "product_id": external_id})
        if not 200 <= response.status_code < 300:
            raise ProviderError(self.source, f"ScraperAPI returned status {response.status_code}")

        parsed = self._parse_json(response)
        if not isinstance(parsed, dict):
            raise ProviderError(self.source, "Unexpected ScraperAPI response format")

        raw_reviews = parsed.get("reviews")
        if not isinstance(raw_reviews, list):
            raw_reviews = []

        return [
            self._to_payload(review, parsed)
            for review in raw_reviews
            if isinstance(review, dict)
        ]

    @staticmethod
    def _to_payload(review: Dict[str, Any], response: Dict[str, Any]) -> RawReviewPayload:
        """Fold response-level fallbacks into each review."""
        badges = review.get("badges")
        verified = isinstance(badges, list) and any(
            str(badge).strip().lower() == "verified purchase" for badge in badges
        )
        return {
            "author": review.get("author") or "Anonymous",
            "rating": review.get("rating"),
            "title": review.get("title") or response.get("product_name") or "Walmart Review",
            "text": review.get("text") or review.get("content") or "",
            "date_published": (
                review.get("date_published")
                or review.get("date")
                or response.get("date_published")
            ),
            "verified_purchase": verified,
        }


class ProviderRegistry:
    """Known sources and the client serving each of them."""

    def __init__(self, clients: Optional[List[ProviderClient]] = None):
        self._clients: Dict[str, ProviderClient] = {}
        for client in clients or []:
            self.register(client)

    def register(self, client: ProviderClient) -> None:
        self._clients[client.source.lower()] = client

    def get(self, source: str) -> Optional[ProviderClient]:
        return self._clients.get(source.strip().lower())

    @property
    def sources(self) -> List[str]:
        return list(self._clients)

    def __contains__(self, source: str) -> bool:
        return self.get(source) is not None

    def __len__(self) -> int:
        return len(self._clients)


def build_default_registry(config: Optional[ProviderConfig] = None) -> ProviderRegistry:
    """
    Register every source described by configuration.

    The walmart_api source is only registered when a ScraperAPI key is set.
    """
    config = config or ProviderConfig()
    registry = ProviderRegistry()

    for source in config.sources:
        registry.register(ScraperServiceClient(
            source=source,
            base_url=config.scraper_service_url,
            timeout=config.request_timeout,
        ))

    if config.scraperapi_key:
        registry.register(WalmartApiClient(
            api_key=config.scraperapi_key,
            walmart_product_ids=config.walmart_product_ids,
            base_url=config.scraperapi_url,
            timeout=config.request_timeout,
        ))

    logger.info(f"Provider registry built: {', '.join(registry.sources) or 'no sources'}")
    return registry
