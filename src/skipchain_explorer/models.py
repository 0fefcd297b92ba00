# models.py
# Data contracts for the skipchain explorer.
# Pure schema and validation. No business logic lives here.
#
# Every bytes field travels as lowercase hex in JSON.

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

_HEX_BYTES = ConfigDict(ser_json_bytes="hex", val_json_bytes="hex")
_FROZEN_HEX_BYTES = ConfigDict(frozen=True, ser_json_bytes="hex", val_json_bytes="hex")


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


# ---------------------------------------------------------------------------
# Chain
# ---------------------------------------------------------------------------


class ForwardLink(BaseModel):
    """Signed pointer from a block to a later one."""

    model_config = _FROZEN_HEX_BYTES

    to: bytes = Field(..., description="Hash of the block this link points to.")
    signature: bytes = Field(default=b"", description="Collective signature of the link.")


class Block(BaseModel):
    """A skipblock as returned by the roster. Immutable once fetched."""

    model_config = _FROZEN_HEX_BYTES

    index: int = Field(..., ge=0, description="Position on the chain, 0 is genesis.")
    hash: bytes
    backlinks: tuple[bytes, ...] = Field(
        default=(), description="Hashes of prior blocks; the first is the direct predecessor."
    )
    forward_links: tuple[ForwardLink, ...] = Field(
        default=(), description="Links to later blocks; the first is the direct successor."
    )
    payload: bytes = Field(default=b"", description="Encoded DataBody.")
    verifiers: tuple[bytes, ...] = Field(default=())

    @property
    def hex_hash(self) -> str:
        return self.hash.hex()

    def next_hash(self, direction: Direction) -> bytes | None:
        """Hash of the neighbouring block in `direction`, or None at a boundary."""
        if direction is Direction.BACKWARD:
            return self.backlinks[0] if self.backlinks else None
        return self.forward_links[0].to if self.forward_links else None


# ---------------------------------------------------------------------------
# Transactions and instructions
# ---------------------------------------------------------------------------


class Argument(BaseModel):
    model_config = _HEX_BYTES

    name: str
    value: bytes = b""


class Spawn(BaseModel):
    """Creates a new instance of a contract."""

    kind: Literal["spawn"] = "spawn"
    contract_id: str
    args: list[Argument] = Field(default_factory=list)


class Invoke(BaseModel):
    """Runs a command against an existing instance."""

    kind: Literal["invoke"] = "invoke"
    contract_id: str
    command: str = ""
    args: list[Argument] = Field(default_factory=list)


class Delete(BaseModel):
    """Removes an instance."""

    kind: Literal["delete"] = "delete"
    contract_id: str


Action = Annotated[Union[Spawn, Invoke, Delete], Field(discriminator="kind")]


class Instruction(BaseModel):
    """One atomic operation on the instance identified by `instance_id`."""

    model_config = _HEX_BYTES

    instance_id: bytes
    action: Action

    @property
    def kind(self) -> str:
        return self.action.kind

    @property
    def contract_id(self) -> str:
        return self.action.contract_id

    @property
    def args(self) -> list[Argument]:
        if isinstance(self.action, Delete):
            return []
        return self.action.args


class Transaction(BaseModel):
    model_config = _HEX_BYTES

    accepted: bool = True
    instructions: list[Instruction] = Field(default_factory=list)


class DataBody(BaseModel):
    """Decoded form of a block payload."""

    model_config = _HEX_BYTES

    tx_results: list[Transaction] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Scan events
# ---------------------------------------------------------------------------


class Match(BaseModel):
    """An instruction touching the scanned instance, with the block it lives in."""

    model_config = _HEX_BYTES

    kind: Literal["match"] = "match"
    block_hash: str
    block_index: int
    instruction: Instruction


class DecodeWarning(BaseModel):
    """A block was skipped because its payload did not decode."""

    kind: Literal["decode_warning"] = "decode_warning"
    block_hash: str
    block_index: int
    reason: str


class DirectionFailed(BaseModel):
    """Terminal event for one direction: the next block could not be fetched."""

    kind: Literal["direction_failed"] = "direction_failed"
    direction: Direction
    block_hash: str = Field(..., description="Last block reached before the failure.")
    reason: str


ScanEvent = Union[Match, DecodeWarning, DirectionFailed]


class ScanOutcome(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Scan state
# ---------------------------------------------------------------------------


class Cursor(BaseModel):
    """Walk position for one direction of a scan."""

    direction: Direction
    block_hash: bytes
    exhausted: bool = False
    failed: bool = False
    visited: int = 0

    @property
    def done(self) -> bool:
        return self.exhausted or self.failed


class ScanState(BaseModel):
    """Mutable bookkeeping owned by exactly one running scan."""

    instance_id: bytes
    origin_index: int
    cursors: dict[Direction, Cursor] = Field(default_factory=dict)
    tip_index: int | None = None
    match_count: int = 0
    blocks_visited: int = 0
