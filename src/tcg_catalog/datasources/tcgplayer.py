"""
TCGplayer catalog and pricing client.

Wraps the authenticating transport with typed helpers for the catalog
(categories, groups, products, SKUs, printings) and pricing endpoints.
Batched lookups accept at most MAX_IDS_IN_REQUEST ids and paginated listings
return at most MAX_ITEMS_IN_RESPONSE items; use chunked() and the pagination
engine to go beyond that.
"""
import asyncio
import logging
from enum import IntEnum
from typing import Any, Callable, Iterable, Iterator, Optional, Sequence, TypeVar

import aiohttp

from tcg_catalog.core import (
    ClientConfig,
    Credentials,
    DataSource,
    Envelope,
    Page,
    RateLimiter,
    RequestSpec,
    TimeProvider,
    decode,
)
from tcg_catalog.core.transport import AuthenticatingTransport, RetryPolicy

from .models import (
    Category,
    Group,
    Printing,
    Product,
    ProductPriceSet,
    Sku,
    SkuPriceSet,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ITEMS_IN_RESPONSE = 100
MAX_IDS_IN_REQUEST = 250


class CategoryId(IntEnum):
    """All active categories on the platform."""
    MAGIC = 1
    YUGIOH = 2
    POKEMON = 3
    AXIS_ALLIES = 4
    DD_MINIATURES = 6
    EPIC = 7
    HEROCLIX = 8
    MONSTERPOCALYPSE = 9
    REDAKAI = 10
    STAR_WARS_MINIATURES = 11
    WORLD_OF_WARCRAFT_MINIATURES = 12
    WOW = 13
    SUPPLIES = 14
    ORGANIZERS_STORES = 15
    CHRONO_CLASH_SYSTEM = 16
    FORCE_OF_WILL = 17
    DICE_MASTERS = 18
    FUTURE_CARD_BUDDYFIGHT = 19
    WEISS_SCHWARZ = 20
    TCGPLAYER = 22
    DRAGON_BALL_Z = 23
    FINAL_FANTASY = 24
    UNIVERSUS = 25
    STAR_WARS_DESTINY = 26
    DRAGON_BALL_SUPER = 27
    DRAGOBORNE = 28
    FUNKO = 29
    METAX = 30
    CARD_SLEEVES = 31
    DECK_BOXES = 32
    CARD_STORAGE_TINS = 33
    LIFE_COUNTERS = 34
    PLAYMATS = 35
    ZOMBIE_WORLD_ORDER = 36
    THE_CASTER_CHRONICLES = 37
    MY_LITTLE_PONY = 38
    WARHAMMER_BOOKS = 39
    WARHAMMER_BIG_BOX_GAMES = 40
    WARHAMMER_BOX_SETS = 41
    WARHAMMER_CLAMPACKS = 42
    CITADEL_PAINTS = 43
    CITADEL_TOOLS = 44
    WARHAMMER_GAME_ACCESSORIES = 45
    BOOKS = 46
    EXODUS = 47
    LIGHTSEEKERS = 48
    PROTECTIVE_PAGES = 49
    STORAGE_ALBUMS = 50
    COLLECTIBLE_STORAGE = 51
    SUPPLY_BUNDLES = 52
    MUNCHKIN = 53
    WARHAMMER_AGE_OF_SIGMAR_CHAMPIONS = 54
    ARCHITECT = 55
    BULK_LOTS = 56
    TRANSFORMERS = 57
    BAKUGAN = 58
    KEYFORGE = 59
    CARDFIGHT_VANGUARD = 60
    ARGENT_SAGA = 61
    FLESH_AND_BLOOD = 62
    DIGIMON = 63
    ALTERNATE_SOULS = 64
    GATE_RULER = 65
    METAZOO = 66
    WIXOSS = 67
    ONE_PIECE = 68
    MARVEL_COMICS = 69
    DC_COMICS = 70
    LORCANA = 71
    BATTLE_SPIRITS_SAGA = 72
    SHADOWVERSE_EVOLVE = 73
    GRAND_ARCHIVE = 74
    AKORA = 75
    KRYPTIK = 76
    SORCERY_CONTESTED_REALM = 77
    ALPHA_CLASH = 78
    STAR_WARS_UNLIMITED = 79
    DRAGON_BALL_SUPER_FUSION_WORLD = 80
    UNION_ARENA = 81
    TCGPLAYER_SUPPLIES = 82


ALL_PRODUCT_TYPES = [
    "Cards",
    "Booster Box",
    "Booster Pack",
    "Sealed Products",
    "Intro Pack",
    "Fat Pack",
    "Box Sets",
    "Precon/Event Decks",
    "Magic Deck Pack",
    "Magic Booster Box Case",
    "All 5 Intro Packs",
    "Intro Pack Display",
    "3x Magic Booster Packs",
    "Booster Battle Pack",
]

# Product types containing singles
PRODUCT_TYPES_SINGLES = ALL_PRODUCT_TYPES[:1]

# Product types containing sealed products
PRODUCT_TYPES_SEALED = ALL_PRODUCT_TYPES[1:]


def chunked(ids: Sequence[int], size: int = MAX_IDS_IN_REQUEST) -> Iterator[list[int]]:
    """Split ids into batches small enough for a single lookup call."""
    if size <= 0:
        raise ValueError("size must be positive")
    for start in range(0, len(ids), size):
        yield list(ids[start:start + size])


def _join_ids(ids: Iterable[int]) -> str:
    ids = list(ids)
    if len(ids) > MAX_IDS_IN_REQUEST:
        raise ValueError("too many ids in request")
    if not ids:
        raise ValueError("at least one id is required")
    return ",".join(str(i) for i in ids)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


class TCGPlayerClient(DataSource):
    """
    Authenticated client for the TCGplayer API.

    Use as an async context manager so the underlying HTTP session is closed:

        async with TCGPlayerClient(pub, pri) as client:
            total = await client.total_products(CategoryId.MAGIC)

    Each client owns its credentials, token store and rate limiter, so
    several clients can coexist in one process.
    """

    def __init__(
        self,
        public_key: str,
        private_key: str,
        config: Optional[ClientConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limiter: Optional[RateLimiter] = None,
        time_provider: Optional[TimeProvider] = None,
    ):
        """
        Initialize the client.

        Args:
            public_key: TCGplayer public key
            private_key: TCGplayer private key
            config: Client settings (defaults to ClientConfig())
            session: Optional externally owned aiohttp session
            rate_limiter: Optional shared limiter (defaults to one built from config)
            time_provider: Clock for throttling, backoff and token expiry
        """
        self.credentials = Credentials(public_key=public_key or "", private_key=private_key or "")
        self.config = config or ClientConfig()
        self.time_provider = time_provider
        self.rate_limiter = rate_limiter or RateLimiter(
            steady_rate=self.config.steady_rate,
            burst=self.config.burst,
            time_provider=time_provider,
            host=self.config.api_url,
        )
        self._session = session
        self._owns_session = session is None
        self._transport: Optional[AuthenticatingTransport] = None

    @property
    def name(self) -> str:
        return "tcgplayer"

    @property
    def transport(self) -> AuthenticatingTransport:
        """Transport for this client, created with the session on first use."""
        if self._transport is None:
            if self._session is None:
                self._session = aiohttp.ClientSession()
            self._transport = AuthenticatingTransport(
                credentials=self.credentials,
                session=self._session,
                rate_limiter=self.rate_limiter,
                token_url=self.config.token_url,
                retry_policy=RetryPolicy(
                    max_retries=self.config.max_retries,
                    wait_min=self.config.retry_wait_min,
                    wait_max=self.config.retry_wait_max,
                ),
                timeout=self.config.request_timeout,
                token_skew=self.config.token_skew,
                time_provider=self.time_provider,
            )
        return self._transport

    async def __aenter__(self) -> "TCGPlayerClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None if self._owns_session else self._session
        self._transport = None

    def prepare_request(self, endpoint: str, params: dict[str, Any] | None = None) -> RequestSpec:
        """
        Prepare a GET request against the versioned API root.

        Args:
            endpoint: Path below the API root (e.g., "catalog/products")
            params: Optional query parameters; bools become "true"/"false",
                lists are comma-joined and None values are dropped

        Returns:
            RequestSpec with URL and query params
        """
        url = f"{self.config.base_url}/{endpoint.lstrip('/')}"
        query = {
            key: _query_value(value)
            for key, value in (params or {}).items()
            if value is not None
        }
        return RequestSpec(url=url, method="GET", query_params=query)

    async def get_request(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> Envelope:
        """
        Perform an authenticated GET request and partially parse the response.

        Args:
            endpoint: Path below the API root
            params: Optional query parameters
            cancel: Optional cancellation signal for the permit wait

        Returns:
            The decoded Envelope

        Raises:
            ApiError: If the request failed and the API explained why
            DecodeError: If the body is not valid JSON
            TransportError: If the request could not be completed
            AuthError: If authentication failed
        """
        spec = self.prepare_request(endpoint, params)
        response = await self.transport.send(spec, cancel=cancel)
        return decode(response.body, response.status)

    async def _get_list(
        self,
        endpoint: str,
        factory: Callable[[dict[str, Any]], T],
        params: dict[str, Any] | None = None,
    ) -> list[T]:
        envelope = await self.get_request(endpoint, params)
        return [factory(item) for item in envelope.results or []]

    async def fetch_page(
        self,
        endpoint: str,
        factory: Callable[[dict[str, Any]], T],
        offset: int = 0,
        params: dict[str, Any] | None = None,
        limit: int = MAX_ITEMS_IN_RESPONSE,
        cancel: Optional[asyncio.Event] = None,
    ) -> Page[T]:
        """
        Fetch one page of a paginated listing.

        Args:
            endpoint: Path below the API root
            factory: Builds a record from one result dict
            offset: Index of the first item
            params: Extra query parameters
            limit: Page size (at most MAX_ITEMS_IN_RESPONSE)
            cancel: Optional cancellation signal for the permit wait

        Returns:
            Page with the decoded records and the reported total
        """
        query = dict(params or {})
        query["offset"] = offset
        query["limit"] = min(limit, MAX_ITEMS_IN_RESPONSE)
        envelope = await self.get_request(endpoint, query, cancel)
        items = [factory(item) for item in envelope.results or []]
        return Page(items=items, offset=offset, total_items=envelope.total_items)

    async def _query_total(
        self,
        endpoint: str,
        category: Optional[int] = None,
        product_types: Optional[Sequence[str]] = None,
    ) -> int:
        """Retrieve how many items a full listing will hold."""
        params: dict[str, Any] = {"limit": 1}
        if category is not None:
            params["categoryId"] = int(category)
        if product_types is not None:
            params["productTypes"] = list(product_types)
        envelope = await self.get_request(endpoint, params)
        return envelope.total_items

    async def total_products(self, category: int, product_types: Optional[Sequence[str]] = None) -> int:
        return await self._query_total("catalog/products", category, product_types)

    async def total_groups(self, category: int) -> int:
        return await self._query_total("catalog/groups", category)

    async def total_categories(self) -> int:
        return await self._query_total("catalog/categories")

    async def list_category_printings(self, category: int) -> list[Printing]:
        return await self._get_list(f"catalog/categories/{int(category)}/printings", Printing.from_dict)

    async def get_categories_details(self, category_ids: Sequence[int]) -> list[Category]:
        """
        Look up categories by id.

        Raises:
            ValueError: If more than MAX_IDS_IN_REQUEST ids are given
        """
        ids = _join_ids(category_ids)
        return await self._get_list(f"catalog/categories/{ids}", Category.from_dict)

    async def get_products_details(self, product_ids: Sequence[int], include_skus: bool = False) -> list[Product]:
        """
        Look up products by id, with extended fields.

        Raises:
            ValueError: If more than MAX_IDS_IN_REQUEST ids are given
        """
        ids = _join_ids(product_ids)
        params: dict[str, Any] = {"getExtendedFields": True}
        if include_skus:
            params["includeSkus"] = True
        return await self._get_list(f"catalog/products/{ids}", Product.from_dict, params)

    async def list_all_products(
        self,
        category: int,
        product_types: Optional[Sequence[str]] = None,
        include_skus: bool = False,
        offset: int = 0,
        cancel: Optional[asyncio.Event] = None,
    ) -> list[Product]:
        """List one page of products in a category, starting at offset."""
        params: dict[str, Any] = {
            "getExtendedFields": True,
            "categoryId": int(category),
        }
        if product_types is not None:
            params["productTypes"] = list(product_types)
        if include_skus:
            params["includeSkus"] = True
        page = await self.fetch_page(
            "catalog/products", Product.from_dict, offset, params, cancel=cancel
        )
        return page.items

    async def list_product_skus(self, product_id: int) -> list[Sku]:
        return await self._get_list(f"catalog/products/product/{int(product_id)}/skus", Sku.from_dict)

    async def list_all_category_groups(self, category: int, offset: int = 0) -> list[Group]:
        """List one page of groups in a category, starting at offset."""
        page = await self.fetch_page(
            "catalog/groups", Group.from_dict, offset, {"categoryId": int(category)}
        )
        return page.items

    async def get_market_prices_by_products(self, product_ids: Sequence[int]) -> list[ProductPriceSet]:
        ids = _join_ids(product_ids)
        return await self._get_list(f"pricing/product/{ids}", ProductPriceSet.from_dict)

    async def get_market_prices_by_skus(self, sku_ids: Sequence[int]) -> list[SkuPriceSet]:
        ids = _join_ids(sku_ids)
        return await self._get_list(f"pricing/sku/{ids}", SkuPriceSet.from_dict)
