import asyncio
import pytest
from unittest.mock import AsyncMock

from chain_fixtures import INSTANCE_X, MemoryFetcher, build_chain, payload, spawn
from skipchain_explorer.errors import FetchError
from skipchain_explorer.models import Block, Direction
from skipchain_explorer.walker import ChainWalker


@pytest.fixture
def chain():
    return build_chain([payload(spawn(INSTANCE_X)) for _ in range(5)])


async def _collect(walker: ChainWalker, start: Block, direction: Direction, cancel=None) -> list[int]:
    return [b.index async for b in walker.walk(start, direction, cancel)]


# ---------------------------------------------------------------------------
# Ordering and boundaries
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_walk_forward_follows_links_in_order(chain):
    walker = ChainWalker(MemoryFetcher(chain))
    assert await _collect(walker, chain[2], Direction.FORWARD) == [3, 4]


@pytest.mark.asyncio
async def test_walk_backward_reaches_genesis(chain):
    walker = ChainWalker(MemoryFetcher(chain))
    assert await _collect(walker, chain[2], Direction.BACKWARD) == [1, 0]


@pytest.mark.asyncio
async def test_walk_backward_from_genesis_is_empty(chain):
    fetcher = MemoryFetcher(chain)
    assert await _collect(ChainWalker(fetcher), chain[0], Direction.BACKWARD) == []
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_walk_forward_from_tip_is_empty(chain):
    fetcher = MemoryFetcher(chain)
    assert await _collect(ChainWalker(fetcher), chain[-1], Direction.FORWARD) == []
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_walk_restarts_with_fresh_fetches(chain):
    fetcher = MemoryFetcher(chain)
    walker = ChainWalker(fetcher)

    first = await _collect(walker, chain[0], Direction.FORWARD)
    second = await _collect(walker, chain[0], Direction.FORWARD)

    assert first == second == [1, 2, 3, 4]
    assert len(fetcher.calls) == 8


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_fetch_failure_is_not_exhaustion(chain):
    walker = ChainWalker(MemoryFetcher(chain, fail_on={chain[3].hash}))
    seen = []

    with pytest.raises(FetchError, match="node refused") as excinfo:
        async for block in walker.walk(chain[0], Direction.FORWARD):
            seen.append(block.index)

    assert seen == [1, 2]
    assert excinfo.value.block_hash == chain[3].hash


@pytest.mark.asyncio
async def test_foreign_fetcher_errors_are_wrapped(chain):
    fetcher = AsyncMock()
    fetcher.fetch_block_by_hash.side_effect = ConnectionResetError("peer went away")

    with pytest.raises(FetchError, match="peer went away") as excinfo:
        await _collect(ChainWalker(fetcher), chain[2], Direction.BACKWARD)

    assert isinstance(excinfo.value.__cause__, ConnectionResetError)
    fetcher.fetch_block_by_hash.assert_awaited_once_with(chain[1].hash)


@pytest.mark.asyncio
async def test_block_that_does_not_advance_is_rejected(chain):
    # The roster answers with the start block itself, which would loop forever.
    fetcher = AsyncMock()
    fetcher.fetch_block_by_hash.return_value = chain[2]

    with pytest.raises(FetchError, match="does not move forward"):
        await _collect(ChainWalker(fetcher), chain[2], Direction.FORWARD)


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_cancel_before_walk_issues_no_fetch(chain):
    fetcher = MemoryFetcher(chain)
    cancel = asyncio.Event()
    cancel.set()

    assert await _collect(ChainWalker(fetcher), chain[2], Direction.FORWARD, cancel) == []
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_cancel_mid_walk_stops_before_next_fetch(chain):
    fetcher = MemoryFetcher(chain)
    cancel = asyncio.Event()
    seen = []

    async for block in ChainWalker(fetcher).walk(chain[0], Direction.FORWARD, cancel):
        seen.append(block.index)
        if block.index == 2:
            cancel.set()

    assert seen == [1, 2]
    assert len(fetcher.calls) == 2
