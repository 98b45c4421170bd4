"""
Unit tests for DataSource interface and supporting types.

Tests verify that the core abstractions (RequestSpec, Page, DataSource)
work correctly and enforce interface contracts, and that the TCGplayer
client builds requests the way the API expects them.
"""
import pytest

from tcg_catalog.core import ClientConfig, DataSource, Page, RequestSpec
from tcg_catalog.datasources import MAX_IDS_IN_REQUEST, TCGPlayerClient, chunked
from tcg_catalog.datasources.tcgplayer import _join_ids


class TestRequestSpec:
    """Tests for RequestSpec dataclass."""

    def test_minimal_request_spec(self):
        """Test creating a minimal RequestSpec with just a URL."""
        spec = RequestSpec(url="https://api.example.com/endpoint")

        assert spec.url == "https://api.example.com/endpoint"
        assert spec.method == "GET"
        assert spec.headers == {}
        assert spec.query_params == {}
        assert spec.body is None

    def test_full_request_spec(self):
        """Test creating a complete RequestSpec with all fields."""
        spec = RequestSpec(
            url="https://api.example.com/token",
            method="POST",
            headers={"Accept": "application/json"},
            query_params={"limit": "10"},
            body={"grant_type": "client_credentials"},
        )

        assert spec.method == "POST"
        assert spec.headers == {"Accept": "application/json"}
        assert spec.query_params == {"limit": "10"}
        assert spec.body == {"grant_type": "client_credentials"}

    def test_headers_default_factory(self):
        """Test that headers dict is independent per instance."""
        spec1 = RequestSpec(url="http://example.com/1")
        spec2 = RequestSpec(url="http://example.com/2")

        spec1.headers["X-Custom"] = "value1"

        assert "X-Custom" not in spec2.headers


class TestPage:
    """Tests for Page dataclass."""

    def test_minimal_page(self):
        page = Page(items=[{"id": 1}, {"id": 2}])

        assert page.items == [{"id": 1}, {"id": 2}]
        assert page.offset == 0
        assert page.total_items == 0

    def test_page_with_position(self):
        page = Page(items=["a"], offset=200, total_items=250)

        assert page.offset == 200
        assert page.total_items == 250


class TestDataSourceInterface:
    """Tests for DataSource abstract base class."""

    def test_cannot_instantiate_abstract_datasource(self):
        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            DataSource()  # type: ignore

    def test_datasource_requires_get_request(self):
        """Test that subclasses must implement get_request."""
        class IncompleteSource(DataSource):
            @property
            def name(self):
                return "test"

            def prepare_request(self, endpoint, params=None):
                return RequestSpec(url=endpoint)

        with pytest.raises(TypeError, match="Can't instantiate abstract class"):
            IncompleteSource()  # type: ignore

    def test_complete_datasource_can_be_instantiated(self):
        class CompleteSource(DataSource):
            @property
            def name(self):
                return "complete"

            def prepare_request(self, endpoint, params=None):
                return RequestSpec(url=f"http://api.example.com/{endpoint}")

            async def get_request(self, endpoint, params=None):
                return None

        source = CompleteSource()
        assert source.name == "complete"

    def test_tcgplayer_client_is_datasource(self):
        client = TCGPlayerClient("pub", "pri")

        assert isinstance(client, DataSource)
        assert client.name == "tcgplayer"


class TestPrepareRequest:
    """Tests for TCGPlayerClient.prepare_request."""

    @pytest.fixture
    def client(self):
        return TCGPlayerClient("pub", "pri", config=ClientConfig(api_url="http://stub.local"))

    def test_url_under_versioned_root(self, client):
        spec = client.prepare_request("catalog/products")

        assert spec.url == "http://stub.local/v1.39.0/catalog/products"
        assert spec.method == "GET"
        assert spec.query_params == {}

    def test_leading_slash_ignored(self, client):
        assert client.prepare_request("/catalog/groups").url == "http://stub.local/v1.39.0/catalog/groups"

    def test_query_values_are_encoded(self, client):
        spec = client.prepare_request("catalog/products", {
            "categoryId": 3,
            "getExtendedFields": True,
            "includeSkus": False,
            "productTypes": ["Cards", "Booster Box"],
            "offset": None,
        })

        assert spec.query_params == {
            "categoryId": "3",
            "getExtendedFields": "true",
            "includeSkus": "false",
            "productTypes": "Cards,Booster Box",
        }

    def test_no_auth_header_before_send(self, client):
        assert "Authorization" not in client.prepare_request("catalog/categories").headers


class TestIdBatching:

    def test_join_ids(self):
        assert _join_ids([1, 2, 3]) == "1,2,3"

    def test_join_ids_limit(self):
        _join_ids(range(MAX_IDS_IN_REQUEST))
        with pytest.raises(ValueError, match="too many ids"):
            _join_ids(range(MAX_IDS_IN_REQUEST + 1))

    def test_join_ids_empty(self):
        with pytest.raises(ValueError):
            _join_ids([])

    def test_chunked(self):
        batches = list(chunked(list(range(600))))

        assert [len(b) for b in batches] == [250, 250, 100]
        assert sum(batches, []) == list(range(600))

    def test_chunked_invalid_size(self):
        with pytest.raises(ValueError):
            list(chunked([1], 0))
