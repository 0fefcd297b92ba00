# codec.py
# Block payload encoding plus the small byte helpers shared by the
# scanner and the display.
#
# Payloads are the JSON form of DataBody. Hashes are SHA-256 over a
# deterministic serialization, so two equal instructions always hash alike.

import hashlib
import json
from typing import Any

from pydantic import ValidationError

from skipchain_explorer.errors import DecodeError
from skipchain_explorer.models import DataBody, Instruction, Transaction


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _sha256(data: str) -> str:
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def _serialize(obj: dict[str, Any]) -> str:
    """Deterministic serialization. sort_keys is non-negotiable."""
    return json.dumps(obj, sort_keys=True, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Hex helpers
# ---------------------------------------------------------------------------

def bytes_to_hex(value: bytes) -> str:
    return value.hex()


def hex_to_bytes(value: str | None) -> bytes:
    """Parse a hex string. Empty or missing input yields empty bytes."""
    if not value:
        return b""
    return bytes.fromhex(value)


def display_value(value: bytes) -> str:
    """Argument values read as text when they are printable UTF-8, hex otherwise."""
    try:
        text = value.decode("utf-8")
    except UnicodeDecodeError:
        return value.hex()
    return text if text.isprintable() else value.hex()


# ---------------------------------------------------------------------------
# Payload codec
# ---------------------------------------------------------------------------

def decode_body(payload: bytes) -> list[Transaction]:
    """
    Decode a block payload into its transactions.

    Raises DecodeError on anything that is not a valid DataBody.
    """
    if not payload:
        return []
    try:
        body = DataBody.model_validate_json(payload)
    except ValidationError as exc:
        raise DecodeError(f"Malformed block payload: {exc.error_count()} error(s)") from exc
    return body.tx_results


def encode_body(transactions: list[Transaction]) -> bytes:
    return DataBody(tx_results=transactions).model_dump_json().encode("utf-8")


def instruction_hash(instruction: Instruction) -> str:
    """Hex-encoded SHA-256 of the instruction's canonical JSON form."""
    return _sha256(_serialize(instruction.model_dump(mode="json")))
