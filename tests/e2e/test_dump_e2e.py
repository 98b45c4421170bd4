"""
End-to-end tests for the category dump.

These drive the full stack (CLI run, dumper, client, transport, token store,
rate limiter and pagination) against the fake catalog and check the JSON
document that comes out.
"""
import io
import json
import logging

import pytest

from tcg_catalog import cli
from tcg_catalog.core import ApiError, ClientConfig, Credentials
from tcg_catalog.datasources import TCGPlayerClient
from tcg_catalog.dumper import dump_category
from tests.integration.stub_server import FakeCatalog, StubServer

logger = logging.getLogger(__name__)

CATEGORY_ID = 1
GROUP_COUNT = 10
PRODUCT_COUNT = 250


@pytest.fixture
def catalog():
    return FakeCatalog(category_id=CATEGORY_ID, group_count=GROUP_COUNT, product_count=PRODUCT_COUNT)


@pytest.fixture
async def stub_server(catalog):
    server = StubServer(handler=catalog.handle)
    await server.start()

    yield server

    await server.stop()


@pytest.fixture
def config(stub_server):
    return ClientConfig(api_url=stub_server.base_url)


async def run_dump(config, workers=4, strict=False, credentials=None):
    out = io.StringIO()
    status = await cli.run(
        CATEGORY_ID,
        credentials or Credentials("pub", "pri"),
        config,
        workers,
        strict=strict,
        out=out,
    )
    return status, out.getvalue()


class TestDumpCommand:
    """Full dump through cli.run."""

    async def test_full_dump(self, config, catalog, stub_server, caplog):
        with caplog.at_level(logging.INFO):
            status, output = await run_dump(config, workers=4)

        assert status == 0
        document = json.loads(output)
        assert set(document) == {"category", "groups", "products"}
        assert document["category"]["categoryId"] == CATEGORY_ID
        assert len(document["groups"]) == GROUP_COUNT

        product_ids = [p["productId"] for p in document["products"]]
        assert len(product_ids) == PRODUCT_COUNT
        assert product_ids == sorted(product_ids)
        assert len(set(product_ids)) == PRODUCT_COUNT
        assert all(p["skus"] for p in document["products"])

        assert output.endswith("\n")
        assert catalog.token_requests == 1
        assert "Retrieved category details" in caplog.text
        assert f"Found {GROUP_COUNT} groups" in caplog.text
        assert f"Found {PRODUCT_COUNT} products" in caplog.text

    async def test_each_product_page_requested_once(self, config, stub_server):
        await run_dump(config, workers=4)

        offsets = sorted(
            r["query"].get("offset")
            for r in stub_server.requests_to("catalog/products")
            if r["query"].get("limit") != "1"
        )
        assert offsets == ["0", "100", "200"]

    async def test_output_independent_of_worker_count(self, config):
        _, single = await run_dump(config, workers=1)
        _, many = await run_dump(config, workers=8)

        assert single == many

    async def test_failed_page_leaves_gap(self, config, catalog, caplog):
        catalog.failing_offsets = {100}

        status, output = await run_dump(config, workers=4)

        assert status == 0
        products = json.loads(output)["products"]
        assert len(products) == PRODUCT_COUNT - 100
        assert "page at offset 100 failed" in caplog.text

    async def test_strict_fails_on_gap(self, config, catalog, caplog):
        """The partial document is still written before the non-zero exit."""
        catalog.failing_offsets = {0}

        status, output = await run_dump(config, workers=2, strict=True)

        assert status == 1
        products = json.loads(output)["products"]
        assert len(products) == PRODUCT_COUNT - 100
        missing = {p["productId"] for p in catalog.products[:100]}
        assert not missing & {p["productId"] for p in products}
        assert "page at offset 0 failed" in caplog.text

    async def test_unknown_category_exits_nonzero(self, stub_server):
        config = ClientConfig(api_url=stub_server.base_url)
        out = io.StringIO()

        status = await cli.run(999, Credentials("pub", "pri"), config, 4, out=out)

        assert status == 1
        assert out.getvalue() == ""

    async def test_bad_credentials_exit_nonzero(self, config):
        status, output = await run_dump(config, credentials=Credentials("pub", "wrong"))

        assert status == 1
        assert output == ""


class TestDumpCategory:
    """dump_category used directly as a library call."""

    async def test_snapshot(self, config, fake_time):
        async with TCGPlayerClient("pub", "pri", config=config, time_provider=fake_time) as client:
            snapshot = await dump_category(client, CATEGORY_ID, workers=3)

        assert snapshot.complete
        assert snapshot.total_products == PRODUCT_COUNT
        assert snapshot.category.category_id == CATEGORY_ID
        assert [g.group_id for g in snapshot.groups] == list(range(1, GROUP_COUNT + 1))

    async def test_missing_category(self, config, fake_time):
        async with TCGPlayerClient("pub", "pri", config=config, time_provider=fake_time) as client:
            with pytest.raises(ApiError):
                await dump_category(client, 999)

    async def test_failed_offsets_reported(self, config, catalog, fake_time):
        catalog.failing_offsets = {200}

        async with TCGPlayerClient("pub", "pri", config=config, time_provider=fake_time) as client:
            snapshot = await dump_category(client, CATEGORY_ID, workers=2)

        assert not snapshot.complete
        assert snapshot.failed_offsets == [200]
        assert len(snapshot.products) == 200


class TestMain:
    """Argument and configuration errors are caught before any network call."""

    @pytest.fixture(autouse=True)
    def no_client(self, monkeypatch):
        def refuse(*args, **kwargs):
            raise AssertionError("client must not be constructed")

        monkeypatch.setattr(cli, "TCGPlayerClient", refuse)
        monkeypatch.delenv("TCGPLAYER_PUBLIC_KEY", raising=False)
        monkeypatch.delenv("TCGPLAYER_PRIVATE_KEY", raising=False)

    def test_missing_keys(self, caplog):
        assert cli.main(["--category", "1"]) == 1
        assert "Missing TCGplayer keys" in caplog.text

    def test_missing_category(self, caplog):
        assert cli.main(["--pub", "pub", "--pri", "pri"]) == 1
        assert "Missing category id" in caplog.text

    def test_invalid_thread_count(self):
        assert cli.main(["--category", "1", "--pub", "pub", "--pri", "pri", "--thread", "0"]) == 1

    def test_environment_keys_accepted(self, monkeypatch, caplog):
        monkeypatch.setenv("TCGPLAYER_PUBLIC_KEY", "pub")
        monkeypatch.setenv("TCGPLAYER_PRIVATE_KEY", "pri")

        # Keys resolve from the environment; the category check is what fails
        assert cli.main([]) == 1
        assert "Missing TCGplayer keys" not in caplog.text
        assert "Missing category id" in caplog.text

    def test_invalid_config_file(self, tmp_path):
        path = tmp_path / "client.yml"
        path.write_text("client:\n  burst: 0\n")

        assert cli.main(["--category", "1", "--pub", "pub", "--pri", "pri", "--config", str(path)]) == 1

    def test_parser_defaults(self):
        args = cli.build_parser().parse_args([])

        assert args.category == 0
        assert args.thread is None
        assert args.strict is False
