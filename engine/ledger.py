"""Append-only, hash-linked ledger of settled trades, optionally backed by ``Store``."""

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, List, Optional

import numpy as np

from engine.hashing import GENESIS_HASH, GENESIS_PREV_HASH, compute_block_hash
from engine.schemas import Block, Trade, now_ms
from engine.validator import inspect_chain

if TYPE_CHECKING:
    from engine.store import Store

logger = logging.getLogger(__name__)

_NONCE_LIMIT = 1_000_000


class Ledger:
    """Ordered sequence of blocks; the only mutation is append-at-tail.

    Single writer: ``append`` must be serialized by the caller (the
    kernel's exclusion scope).  Reads return snapshots and never expose
    the internal list.

    When a store is present every block is persisted as it is appended,
    and an existing persisted chain is reloaded instead of minting a new
    genesis block.
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        store: Optional["Store"] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._rng = rng if rng is not None else np.random.default_rng()
        self._store = store
        self._clock = clock
        self._blocks: List[Block] = []
        if store is not None:
            for row in store.get_blocks():
                self._blocks.append(Block.from_dict(row))
            if self._blocks:
                report = inspect_chain(self._blocks)
                if report.valid:
                    logger.info("Ledger reloaded: %d blocks", len(self._blocks))
                else:
                    logger.warning(
                        "Reloaded ledger failed validation at block %d: %s",
                        report.violation.index, report.violation.reason,
                    )
        if not self._blocks:
            self._push(Block(
                index=0,
                prev_hash=GENESIS_PREV_HASH,
                timestamp=self._clock(),
                trades=(),
                nonce=0,
                hash=GENESIS_HASH,
            ))

    def append(self, trades: Iterable[Trade]) -> Block:
        """Seal ``trades`` into a new block linked to the current head."""
        batch = tuple(trades)
        prev = self._blocks[-1]
        nonce = int(self._rng.integers(_NONCE_LIMIT))
        timestamp = self._clock()
        block = Block(
            index=len(self._blocks),
            prev_hash=prev.hash,
            timestamp=timestamp,
            trades=batch,
            nonce=nonce,
            hash=compute_block_hash(prev.hash, batch, timestamp, nonce),
        )
        self._push(block)
        logger.info("Block #%d appended (%d trades, hash %s...)", block.index, len(batch), block.hash[:8])
        return block

    def _push(self, block: Block) -> None:
        if self._store is not None:
            self._store.append_block(block.to_dict())
        self._blocks.append(block)

    def head(self) -> Block:
        return self._blocks[-1]

    def all(self) -> List[Block]:
        return list(self._blocks)

    def to_dicts(self) -> List[dict]:
        return [b.to_dict() for b in self._blocks]

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(list(self._blocks))
