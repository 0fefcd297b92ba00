# walker.py
# Directional, pull-based traversal of a skipchain.
#
# The walker knows links and nothing else. It never decodes payloads and
# never retries: a failed fetch ends the walk with FetchError, which callers
# must be able to tell apart from reaching genesis or the tip.

import asyncio
import logging
from typing import AsyncIterator, Protocol

from skipchain_explorer.errors import FetchError
from skipchain_explorer.models import Block, Direction

logger = logging.getLogger(__name__)


class BlockFetcher(Protocol):
    """Block source backed by the roster. Must tolerate concurrent callers."""

    async def fetch_block_by_hash(self, block_hash: bytes) -> Block:
        ...

    async def fetch_block_by_index(self, genesis_hash: bytes, index: int) -> Block:
        ...


def _advances(current: Block, fetched: Block, direction: Direction) -> bool:
    if direction is Direction.FORWARD:
        return fetched.index > current.index
    return fetched.index < current.index


class ChainWalker:
    """
    Yields the blocks after (FORWARD) or before (BACKWARD) a starting block.

    Example:
        walker = ChainWalker(client)
        async for block in walker.walk(clicked, Direction.BACKWARD):
            ...
    """

    def __init__(self, fetcher: BlockFetcher) -> None:
        self._fetcher = fetcher

    async def walk(
        self,
        start: Block,
        direction: Direction,
        cancel: asyncio.Event | None = None,
    ) -> AsyncIterator[Block]:
        """
        Fetch one block per step, following the first link in `direction`.

        Ends quietly at the chain boundary or once `cancel` is set.
        Raises FetchError when a block cannot be retrieved.
        """
        current = start
        while True:
            next_hash = current.next_hash(direction)
            if next_hash is None:
                logger.debug("%s walk ended at block %d", direction.value, current.index)
                return
            if cancel is not None and cancel.is_set():
                return

            try:
                block = await self._fetcher.fetch_block_by_hash(next_hash)
            except FetchError:
                raise
            except Exception as exc:
                raise FetchError(f"Fetching block {next_hash.hex()} failed: {exc}", next_hash) from exc

            if not _advances(current, block, direction):
                raise FetchError(
                    f"Block {next_hash.hex()} has index {block.index}, which does not move "
                    f"{direction.value} from {current.index}.",
                    next_hash,
                )
            # A fetch that lands after cancellation is dropped, not yielded.
            if cancel is not None and cancel.is_set():
                return

            yield block
            current = block
