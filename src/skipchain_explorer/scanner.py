# scanner.py
# Instance-history scanner.
#
# Given one instruction and the block it sits in, walk the chain outward in
# both directions and report every instruction touching the same instance.
#
# Control flow:
#   scan() → ScanState + two EventStreams → origin block filtered
#   → one ChainWalker task per direction → decode → filter → emit
#   → both directions done → progress 100 (only if nothing failed) → close
#
# Suspension happens only at block fetches; decoding and filtering run
# synchronously, so the matches of one block always arrive together.

import asyncio
import logging
from typing import Callable, Generic, Iterable, TypeVar

from skipchain_explorer.codec import decode_body
from skipchain_explorer.errors import DecodeError, FetchError
from skipchain_explorer.models import (
    Block,
    Cursor,
    DecodeWarning,
    Direction,
    DirectionFailed,
    Instruction,
    Match,
    ScanEvent,
    ScanOutcome,
    ScanState,
    Transaction,
)
from skipchain_explorer.walker import BlockFetcher, ChainWalker

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


# ---------------------------------------------------------------------------
# Streams
# ---------------------------------------------------------------------------


class EventStream(Generic[T]):
    """
    Single-consumer async channel fed by a running scan.

    Iteration ends once the stream is closed. abort() drops anything the
    consumer has not read yet, so nothing is observed after a cancel.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, item: T) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    def abort(self) -> None:
        while not self._queue.empty():
            self._queue.get_nowait()
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "EventStream[T]":
        return self

    async def __anext__(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker in place so later reads end too.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item


class ScanHandle:
    """
    What a caller holds for one running scan.

    `matches` yields Match, DecodeWarning and DirectionFailed events.
    `progress` yields integer percentages. cancel() may be called any
    number of times; only the first call before completion does anything.
    """

    def __init__(self, state: ScanState) -> None:
        self.state = state
        self.matches: EventStream[ScanEvent] = EventStream()
        self.progress: EventStream[int] = EventStream()
        self._cancel = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._outcome: ScanOutcome | None = None
        self._last_progress = -1

    @property
    def outcome(self) -> ScanOutcome | None:
        """None while the scan is still running."""
        return self._outcome

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        if self._outcome is not None:
            return
        self._cancel.set()
        self._outcome = ScanOutcome.CANCELLED
        self.matches.abort()
        self.progress.abort()
        if self._task is not None:
            self._task.cancel()
        logger.info(
            "Scan of %s cancelled after %d block(s), %d match(es)",
            self.state.instance_id.hex(),
            self.state.blocks_visited,
            self.state.match_count,
        )

    async def wait(self) -> ScanOutcome:
        """
        Block until the scan finishes or is cancelled.

        Re-raises whatever aborted the scan, if anything did.
        """
        if self._task is not None:
            await asyncio.wait({self._task})
            if not self._task.cancelled() and self._task.exception() is not None:
                raise self._task.exception()
        return self._outcome

    def _report_progress(self, value: int) -> None:
        if value > self._last_progress:
            self._last_progress = value
            self.progress.put(value)

    def _finish(self, outcome: ScanOutcome) -> None:
        if self._outcome is not None:
            return
        self._outcome = outcome
        if outcome is ScanOutcome.COMPLETED:
            self._report_progress(100)
        self.matches.close()
        self.progress.close()
        logger.info(
            "Scan of %s %s: %d block(s), %d match(es)",
            self.state.instance_id.hex(),
            outcome.value,
            self.state.blocks_visited,
            self.state.match_count,
        )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


def _expected_blocks(state: ScanState, cursor: Cursor) -> int:
    """Best-effort count of blocks one direction will visit."""
    if cursor.done:
        return cursor.visited
    if cursor.direction is Direction.BACKWARD:
        return max(state.origin_index, cursor.visited)
    if state.tip_index is not None:
        return max(state.tip_index - state.origin_index, cursor.visited)
    # The tip is unknown until reached; assume one more block.
    return cursor.visited + 1


def estimate_progress(state: ScanState) -> int:
    """Percentage of the estimated total visited so far, capped at 99."""
    total = 1 + sum(_expected_blocks(state, c) for c in state.cursors.values())
    return min(99, state.blocks_visited * 100 // total)


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------


class InstanceScanner:
    """
    Finds every instruction on the chain that shares an instance ID.

    One scanner may run any number of concurrent scans over the same
    fetcher; each scan owns its own ScanState.

    Example:
        scanner = InstanceScanner(client)
        handle = scanner.scan(instruction, block)
        async for event in handle.matches:
            ...
    """

    def __init__(
        self,
        fetcher: BlockFetcher,
        decoder: Callable[[bytes], list[Transaction]] = decode_body,
    ) -> None:
        self._fetcher = fetcher
        self._decoder = decoder

    def scan(
        self,
        origin: Instruction,
        origin_block: Block,
        directions: Iterable[Direction] = (Direction.BACKWARD, Direction.FORWARD),
        tip_index: int | None = None,
    ) -> ScanHandle:
        """
        Start scanning from `origin_block` and return immediately.

        Must be called from inside a running event loop. `tip_index`, when
        known, sharpens the forward progress estimate.
        """
        state = ScanState(
            instance_id=origin.instance_id,
            origin_index=origin_block.index,
            tip_index=tip_index,
            cursors={
                d: Cursor(direction=d, block_hash=origin_block.hash)
                for d in dict.fromkeys(directions)
            },
        )
        handle = ScanHandle(state)
        handle._task = asyncio.get_running_loop().create_task(self._run(handle, origin_block))
        logger.info(
            "Scanning for instance %s from block %d (%s)",
            origin.instance_id.hex(),
            origin_block.index,
            ", ".join(d.value for d in state.cursors),
        )
        return handle

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    async def _run(self, handle: ScanHandle, origin_block: Block) -> None:
        try:
            self._visit(handle, origin_block)
            handle._report_progress(estimate_progress(handle.state))

            await asyncio.gather(
                *(self._drive(handle, origin_block, cursor) for cursor in handle.state.cursors.values())
            )
        except Exception:
            # Consumers must never hang on a stream nobody will close.
            logger.exception("Scan of %s aborted", handle.state.instance_id.hex())
            handle._cancel.set()
            handle._finish(ScanOutcome.PARTIAL)
            raise

        failed = any(c.failed for c in handle.state.cursors.values())
        handle._finish(ScanOutcome.PARTIAL if failed else ScanOutcome.COMPLETED)

    async def _drive(self, handle: ScanHandle, origin_block: Block, cursor: Cursor) -> None:
        walker = ChainWalker(self._fetcher)
        try:
            async for block in walker.walk(origin_block, cursor.direction, handle._cancel):
                cursor.block_hash = block.hash
                cursor.visited += 1
                self._visit(handle, block)
                handle._report_progress(estimate_progress(handle.state))
        except FetchError as exc:
            cursor.failed = True
            logger.warning("%s walk stopped after block %s: %s", cursor.direction.value, cursor.block_hash.hex(), exc)
            handle.matches.put(
                DirectionFailed(
                    direction=cursor.direction,
                    block_hash=cursor.block_hash.hex(),
                    reason=str(exc),
                )
            )
        else:
            cursor.exhausted = True

        if not handle.cancelled:
            handle._report_progress(estimate_progress(handle.state))

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def _visit(self, handle: ScanHandle, block: Block) -> None:
        """Decode one block and emit its matches together, in transaction order."""
        state = handle.state
        state.blocks_visited += 1
        logger.debug("Visiting block %d", block.index)

        try:
            transactions = self._decoder(block.payload)
        except DecodeError as exc:
            logger.warning("Skipping block %d (%s): %s", block.index, block.hex_hash, exc)
            handle.matches.put(
                DecodeWarning(block_hash=block.hex_hash, block_index=block.index, reason=str(exc))
            )
            return

        found = [
            Match(block_hash=block.hex_hash, block_index=block.index, instruction=instruction)
            for transaction in transactions
            for instruction in transaction.instructions
            if instruction.instance_id == state.instance_id
        ]
        state.match_count += len(found)
        for match in found:
            handle.matches.put(match)
