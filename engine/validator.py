"""Pure chain validation: link checks and block-hash recomputation.

Works on in-process ``Block`` objects and on their JSON form (a chain
fetched from the API), with identical results for identical data.
Failures are reported, never raised.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from engine.hashing import compute_block_hash
from engine.schemas import Block

ChainLike = Sequence[Union[Block, Mapping[str, Any]]]


@dataclass(frozen=True)
class IntegrityViolation:
    index: int
    reason: str


@dataclass(frozen=True)
class ChainReport:
    valid: bool
    length: int
    checked_blocks: int
    violation: Optional[IntegrityViolation] = None

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "length": self.length,
            "checked_blocks": self.checked_blocks,
            "violation": (
                {"index": self.violation.index, "reason": self.violation.reason}
                if self.violation else None
            ),
        }


def _fields(block: Union[Block, Mapping[str, Any]]):
    if isinstance(block, Block):
        return block.prev_hash, block.trades, block.timestamp, block.nonce, block.hash
    return block["prevHash"], block["trades"], block["timestamp"], block["nonce"], block["hash"]


def inspect_chain(chain: ChainLike) -> ChainReport:
    """Check every non-genesis block; stop at the first violation."""
    length = len(chain)
    checked = 0
    for i in range(1, length):
        try:
            _, _, _, _, prev_hash_field = _fields(chain[i - 1])
            prev_hash, trades, timestamp, nonce, stored_hash = _fields(chain[i])
            if prev_hash != prev_hash_field:
                return ChainReport(False, length, checked, IntegrityViolation(i, "prevHash does not match previous block hash"))
            if compute_block_hash(prev_hash, trades, timestamp, nonce) != stored_hash:
                return ChainReport(False, length, checked, IntegrityViolation(i, "hash does not match block contents"))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return ChainReport(False, length, checked, IntegrityViolation(i, f"malformed block: {e}"))
        checked += 1
    return ChainReport(True, length, checked)


def validate_chain(chain: ChainLike) -> bool:
    """True when the chain is empty, genesis-only, or every block links and hashes correctly."""
    return inspect_chain(chain).valid
