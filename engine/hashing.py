"""Deterministic block hashing compatible with browser-side chain validators.

The hash input is ``prevHash + JSON.stringify(trades) + timestamp + nonce``
fed through SHA-256 and hex-encoded.  ``js_json`` reproduces the
ECMAScript ``JSON.stringify`` text for plain JSON data so that a chain
fetched from the API validates identically in Python and in a browser.
"""

import hashlib
import json
import math
from decimal import Decimal
from typing import Any, Iterable, Mapping, Union

from engine.schemas import Trade

GENESIS_PREV_HASH = "0"
GENESIS_HASH = "genesis"


def js_number(value: Union[int, float]) -> str:
    """Format a number the way ECMAScript ``Number.prototype.toString`` does.

    * Integral values print without a fractional part (``10.0`` -> ``10``).
    * Plain decimal notation is used for magnitudes in ``[1e-6, 1e21)``.
    * Exponents outside that range carry no zero padding (``1e-7``).
    * NaN and infinities serialize as ``null``, as in ``JSON.stringify``.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if not math.isfinite(value):
        return "null"
    magnitude = abs(value)
    if value == int(value) and magnitude < 1e21:
        return str(int(value))
    text = repr(value)
    if "e" not in text:
        return text
    if 1e-6 <= magnitude < 1e21:
        return format(Decimal(text), "f")
    mantissa, exponent = text.split("e")
    sign = "-" if exponent.startswith("-") else "+"
    return f"{mantissa}e{sign}{exponent.lstrip('+-').lstrip('0')}"


def js_json(value: Any) -> str:
    """Compact JSON text in insertion order, matching ``JSON.stringify``."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return js_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, Mapping):
        items = ",".join(
            f"{json.dumps(str(k), ensure_ascii=False)}:{js_json(v)}" for k, v in value.items()
        )
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(js_json(v) for v in value) + "]"
    raise TypeError(f"Cannot serialize {type(value).__name__} into block hash input")


def serialize_trades(trades: Iterable[Union[Trade, Mapping[str, Any]]]) -> str:
    """Canonical text of a trade batch as it enters the block hash."""
    records = [t.to_dict() if isinstance(t, Trade) else t for t in trades]
    return js_json(records)


def compute_block_hash(
    prev_hash: str,
    trades: Iterable[Union[Trade, Mapping[str, Any]]],
    timestamp: Union[int, float],
    nonce: Union[int, float],
) -> str:
    """SHA-256 hex digest over ``(prev_hash, trades, timestamp, nonce)``."""
    payload = f"{prev_hash}{serialize_trades(trades)}{js_number(timestamp)}{js_number(nonce)}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
