import httpx
import pytest

from chain_fixtures import INSTANCE_X, build_chain, payload, spawn
from skipchain_explorer.errors import FetchError
from skipchain_explorer.rpc import RosterClient


@pytest.fixture
def chain():
    return build_chain([payload(spawn(INSTANCE_X)), payload(), payload()])


def _client(handler, nodes=("http://node1:7771", "http://node2:7771")) -> RosterClient:
    transport = httpx.MockTransport(handler)
    return RosterClient(list(nodes), client=httpx.AsyncClient(transport=transport))


# ---------------------------------------------------------------------------
# Happy paths
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_by_hash_hits_the_block_endpoint(chain):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=chain[1].model_dump_json())

    async with _client(handler) as client:
        block = await client.fetch_block_by_hash(chain[1].hash)

    assert block == chain[1]
    assert seen == [f"http://node1:7771/skipchain/blocks/{chain[1].hex_hash}"]


@pytest.mark.asyncio
async def test_fetch_by_index_addresses_the_genesis(chain):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == f"/skipchain/{chain[0].hex_hash}/blocks/2"
        return httpx.Response(200, content=chain[2].model_dump_json())

    async with _client(handler) as client:
        block = await client.fetch_block_by_index(chain[0].hash, 2)

    assert block.index == 2


# ---------------------------------------------------------------------------
# Roster failover
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unreachable_node_falls_through_to_next(chain):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "node1":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, content=chain[0].model_dump_json())

    async with _client(handler) as client:
        block = await client.fetch_block_by_hash(chain[0].hash)

    assert block == chain[0]


@pytest.mark.asyncio
async def test_server_error_and_bad_body_fall_through(chain):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "node1":
            return httpx.Response(503)
        if request.url.host == "node2":
            return httpx.Response(200, content=b"{}")
        return httpx.Response(200, content=chain[0].model_dump_json())

    nodes = ("http://node1", "http://node2", "http://node3/")
    async with _client(handler, nodes) as client:
        block = await client.fetch_block_by_hash(chain[0].hash)

    assert block.index == 0


@pytest.mark.asyncio
async def test_every_node_missing_the_block_reads_as_unknown(chain):
    async with _client(lambda request: httpx.Response(404)) as client:
        with pytest.raises(FetchError, match="Unknown block") as excinfo:
            await client.fetch_block_by_hash(chain[1].hash)

    assert excinfo.value.block_hash == chain[1].hash


@pytest.mark.asyncio
async def test_every_node_failing_raises_fetch_error(chain):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "node1":
            raise httpx.ReadTimeout("too slow", request=request)
        return httpx.Response(500)

    async with _client(handler) as client:
        with pytest.raises(FetchError, match="ReadTimeout.*HTTP 500"):
            await client.fetch_block_by_hash(chain[1].hash)


@pytest.mark.asyncio
async def test_negative_index_is_refused_without_a_request(chain):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        with pytest.raises(FetchError, match="non-negative"):
            await client.fetch_block_by_index(chain[0].hash, -1)


def test_roster_must_not_be_empty():
    with pytest.raises(ValueError, match="at least one node"):
        RosterClient([])
