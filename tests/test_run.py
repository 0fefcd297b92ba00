import pytest
from rich.console import Console

from chain_fixtures import INSTANCE_X, INSTANCE_Y, MemoryFetcher, build_chain, invoke, payload, spawn
from skipchain_explorer import display, run


class _FakeRoster(MemoryFetcher):
    """MemoryFetcher that can stand in for RosterClient inside `async with`."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None


@pytest.fixture
def chain():
    return build_chain([
        payload(spawn(INSTANCE_X, contract="value")),
        payload(invoke(INSTANCE_Y), invoke(INSTANCE_X, contract="value")),
        b"corrupt",
        payload(invoke(INSTANCE_X, contract="value")),
    ])


@pytest.fixture
def recorder(monkeypatch, chain):
    console = Console(record=True, width=200, color_system=None)
    monkeypatch.setattr(display, "console", console)
    monkeypatch.setenv("SKIPCHAIN_NODES", "http://node1:7771")
    monkeypatch.setattr(run, "RosterClient", lambda nodes, timeout: _FakeRoster(chain))
    return console


@pytest.mark.asyncio
async def test_explore_renders_block_and_scans_instance(recorder, chain):
    await run.explore(chain[1].hex_hash, "0.1")
    text = recorder.export_text()

    assert "Block 1" in text
    assert f"INSTANCE SCAN — {INSTANCE_X.hex()}" in text
    assert "Skipped block 2" in text
    assert "3 instruction(s), scan completed" in text


@pytest.mark.asyncio
async def test_explore_by_index_without_scan(recorder, chain):
    await run.explore(f"{chain[0].hex_hash}:3", None)
    text = recorder.export_text()

    assert "Block 3" in text
    assert "INSTANCE SCAN" not in text


@pytest.mark.asyncio
async def test_explore_reports_undecodable_block(recorder, chain):
    await run.explore(chain[2].hex_hash, "0.0")
    assert "payload could not be decoded" in recorder.export_text()
