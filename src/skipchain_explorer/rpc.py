# rpc.py
# Block fetching from the roster of validating nodes over HTTP.
#
# Nodes are asked in roster order; the first good answer wins. The walker
# and scanner see only FetchError, never httpx exceptions.

import logging

import httpx
from pydantic import ValidationError

from skipchain_explorer.errors import FetchError
from skipchain_explorer.models import Block

logger = logging.getLogger(__name__)


class RosterClient:
    """
    BlockFetcher backed by the roster's HTTP endpoints.

    One AsyncClient is shared by every caller, so concurrent scans and both
    directions of a single scan may use the same instance.

    Example:
        async with RosterClient(["http://node1:7771"]) as client:
            block = await client.fetch_block_by_hash(block_hash)
    """

    def __init__(
        self,
        nodes: list[str],
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not nodes:
            raise ValueError("A roster needs at least one node.")
        self._nodes = [node.rstrip("/") for node in nodes]
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "RosterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def nodes(self) -> list[str]:
        return list(self._nodes)

    # ------------------------------------------------------------------
    # BlockFetcher
    # ------------------------------------------------------------------

    async def fetch_block_by_hash(self, block_hash: bytes) -> Block:
        return await self._fetch(f"/skipchain/blocks/{block_hash.hex()}", block_hash)

    async def fetch_block_by_index(self, genesis_hash: bytes, index: int) -> Block:
        if index < 0:
            raise FetchError(f"Block index must be non-negative, got {index}.", genesis_hash)
        return await self._fetch(f"/skipchain/{genesis_hash.hex()}/blocks/{index}", genesis_hash)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _fetch(self, path: str, block_hash: bytes) -> Block:
        """Try every node in turn. Raises FetchError when none can answer."""
        reasons: list[str] = []
        not_found = 0

        for node in self._nodes:
            try:
                response = await self._client.get(node + path)
            except httpx.HTTPError as exc:
                logger.debug("Node %s unreachable: %s", node, exc)
                reasons.append(f"{node}: {exc.__class__.__name__}")
                continue

            if response.status_code == 404:
                not_found += 1
                reasons.append(f"{node}: not found")
                continue
            if response.is_error:
                reasons.append(f"{node}: HTTP {response.status_code}")
                continue

            try:
                return Block.model_validate_json(response.content)
            except ValidationError as exc:
                reasons.append(f"{node}: invalid block ({exc.error_count()} error(s))")

        if not_found == len(self._nodes):
            raise FetchError(f"Unknown block {path.rsplit('/', 1)[-1]}.", block_hash)
        raise FetchError(f"No node could serve {path}: {'; '.join(reasons)}", block_hash)
