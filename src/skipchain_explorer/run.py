# run.py
# Entry point. Config and wiring only, no logic lives here.
#
# Usage:
#   skipchain-explorer <block-hash>                   show one block
#   skipchain-explorer <genesis-hash>:<index>         same, addressed by index
#   skipchain-explorer <block> <tx>.<instruction>     also scan that instance
#
# The roster comes from SKIPCHAIN_NODES (see config.py).

import asyncio
import sys

from skipchain_explorer import display
from skipchain_explorer.codec import decode_body, hex_to_bytes
from skipchain_explorer.config import configure_logging, load_config
from skipchain_explorer.errors import DecodeError, ExplorerError
from skipchain_explorer.models import Block, Instruction, Match, ScanEvent
from skipchain_explorer.rpc import RosterClient
from skipchain_explorer.scanner import InstanceScanner, ScanHandle


async def _fetch(client: RosterClient, address: str) -> Block:
    if ":" in address:
        genesis, index = address.split(":", 1)
        return await client.fetch_block_by_index(hex_to_bytes(genesis), int(index))
    return await client.fetch_block_by_hash(hex_to_bytes(address))


def _pick(block: Block, position: str) -> Instruction:
    tx_index, instruction_index = (int(p) for p in position.split(".", 1))
    return decode_body(block.payload)[tx_index].instructions[instruction_index]


async def _follow(handle: ScanHandle, clicked_hash: str) -> list[Match]:
    matches: list[Match] = []

    async def read_matches() -> None:
        event: ScanEvent
        async for event in handle.matches:
            if isinstance(event, Match):
                matches.append(event)
                display.match_found(event, clicked_hash)
            elif event.kind == "decode_warning":
                display.decode_warning(event)
            else:
                display.direction_failed(event)

    async def read_progress() -> None:
        with display.progress_bar() as bar:
            task = bar.add_task("scan", total=100)
            async for value in handle.progress:
                bar.update(task, completed=value)

    await asyncio.gather(read_matches(), read_progress())
    return matches


async def explore(address: str, position: str | None) -> None:
    config = load_config()
    configure_logging(config.log_level)

    async with RosterClient(config.nodes, timeout=config.timeout) as client:
        block = await _fetch(client, address)
        try:
            display.block_detail(block, decode_body(block.payload))
        except DecodeError as exc:
            display.block_undecodable(block, str(exc))
            return

        if position is None:
            return

        instruction = _pick(block, position)
        display.scan_started(instruction)
        handle = InstanceScanner(client).scan(instruction, block)
        try:
            matches = await _follow(handle, block.hex_hash)
            outcome = await handle.wait()
        except asyncio.CancelledError:
            handle.cancel()
            display.halt("Scan cancelled.")
            raise
        display.scan_summary(instruction.instance_id, matches, block.hex_hash, outcome)


def main() -> None:
    args = sys.argv[1:]
    if not args or len(args) > 2:
        display.halt("usage: skipchain-explorer <block> [<tx>.<instruction>]")
        sys.exit(2)

    try:
        asyncio.run(explore(args[0], args[1] if len(args) == 2 else None))
    except ExplorerError as exc:
        display.halt(str(exc))
        sys.exit(1)
    except (ValueError, IndexError) as exc:
        display.halt(f"Bad block address or instruction position: {exc}")
        sys.exit(2)
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
