import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .pool import OutputRef, UTXOPool
from .tx import Transaction
from .validator import (
    CROSS_DOUBLE_SPEND,
    DANGLING_REFERENCE,
    check_tx,
    input_refs,
    is_valid_tx,
    tx_fee,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectedTx:
    tx: Transaction
    fee: int


def apply_tx(tx: Transaction, pool: UTXOPool) -> None:
    for ref in input_refs(tx):
        pool.remove(ref)
    pool.add_outputs(tx)


def conflicting_refs(tx: Transaction, spent: Set[OutputRef]) -> Set[OutputRef]:
    return spent.intersection(input_refs(tx))


def replay(genesis: UTXOPool, txs: Iterable[Transaction]) -> Tuple[UTXOPool, List[SelectedTx]]:
    """Rebuild a pool from ``genesis`` by applying ``txs`` in order.

    Transactions were validated when first accepted, so only their inputs
    can have gone stale. One whose inputs no longer resolve (it spent an
    output of a transaction that is not replayed) is left out.
    """
    pool = genesis.copy()
    kept: List[SelectedTx] = []
    for tx in txs:
        if not all(pool.contains(ref) for ref in input_refs(tx)):
            logger.debug("Replay drops tx %s: %s", tx.txid[:16], DANGLING_REFERENCE)
            continue
        kept.append(SelectedTx(tx, tx_fee(tx, pool)))
        apply_tx(tx, pool)
    return pool, kept


class TxHandler:
    """First-come-first-served batch commit over a private copy of a pool.

    ``handle_txs`` keeps scanning the batch while a scan accepts something,
    so a transaction spending an output created later in the same batch is
    still picked up.
    """

    def __init__(self, pool: UTXOPool):
        self.pool = pool.copy()
        self.rejected: Dict[str, str] = {}

    def is_valid_tx(self, tx: Transaction) -> bool:
        return is_valid_tx(tx, self.pool)

    def _reject(self, tx: Transaction, reason: str) -> None:
        logger.debug("Skipping tx %s: %s", tx.txid[:16], reason)
        self.rejected[tx.txid] = reason

    def handle_txs(self, candidates: Iterable[Transaction]) -> List[Transaction]:
        candidates = list(candidates)
        pool = self.pool.copy()
        accepted: List[Transaction] = []
        accepted_ids: Set[str] = set()
        spent: Set[OutputRef] = set()
        self.rejected = {}

        passes = 0
        progress = True
        while progress:
            progress = False
            passes += 1
            for tx in candidates:
                txid = tx.txid
                if txid in accepted_ids:
                    continue
                # spent refs are gone from the pool, so test them first for a precise reason
                if conflicting_refs(tx, spent):
                    self._reject(tx, CROSS_DOUBLE_SPEND)
                    continue
                reason = check_tx(tx, pool)
                if reason is not None:
                    self._reject(tx, reason)
                    continue
                accepted.append(tx)
                accepted_ids.add(txid)
                spent.update(input_refs(tx))
                apply_tx(tx, pool)
                self.rejected.pop(txid, None)
                progress = True

        self.pool = pool
        logger.info(
            "Committed %d of %d txs in %d passes", len(accepted), len(candidates), passes
        )
        return accepted

    commit = handle_txs


class MaxFeeTxHandler(TxHandler):
    """Batch commit that settles double-spends in favour of higher total fees.

    A transaction that conflicts with already accepted ones is tried in their
    place: the conflicting transactions are dropped, the pool is replayed from
    the start-of-call snapshot, and the swap is kept only when the aggregate
    fee strictly increases. This is a greedy, order dependent choice, not an
    optimal subset. ``commit`` still runs the first-come-first-served policy.
    """

    def __init__(self, pool: UTXOPool):
        super().__init__(pool)
        self.total_fees = 0

    def _try_replace(
        self,
        tx: Transaction,
        conflicts: Set[OutputRef],
        genesis: UTXOPool,
        selected: List[SelectedTx],
        current_fees: int,
    ) -> Optional[Tuple[List[SelectedTx], UTXOPool, int]]:
        survivors = [s.tx for s in selected if not conflicts.intersection(input_refs(s.tx))]
        trial_pool, trial = replay(genesis, survivors)

        reason = check_tx(tx, trial_pool)
        if reason is not None:
            self._reject(tx, reason)
            return None

        trial.append(SelectedTx(tx, tx_fee(tx, trial_pool)))
        trial_fees = sum(s.fee for s in trial)
        if trial_fees <= current_fees:
            self._reject(tx, CROSS_DOUBLE_SPEND)
            return None

        apply_tx(tx, trial_pool)
        kept = {s.tx.txid for s in trial}
        for s in selected:
            if s.tx.txid not in kept:
                self._reject(s.tx, CROSS_DOUBLE_SPEND)
        logger.info(
            "Swapped in tx %s, evicting %d, fees %d -> %d",
            tx.txid[:16],
            len(selected) + 1 - len(trial),
            current_fees,
            trial_fees,
        )
        return trial, trial_pool, trial_fees

    def handle_txs(self, candidates: Iterable[Transaction]) -> List[Transaction]:
        candidates = list(candidates)
        genesis = self.pool.copy()
        pool = genesis.copy()
        selected: List[SelectedTx] = []
        accepted_ids: Set[str] = set()
        spent: Set[OutputRef] = set()
        fees = 0
        self.rejected = {}

        passes = 0
        progress = True
        while progress:
            progress = False
            passes += 1
            for tx in candidates:
                txid = tx.txid
                if txid in accepted_ids:
                    continue
                conflicts = conflicting_refs(tx, spent)
                if conflicts:
                    trial = self._try_replace(tx, conflicts, genesis, selected, fees)
                    if trial is None:
                        continue
                    selected, pool, fees = trial
                    accepted_ids = {s.tx.txid for s in selected}
                    spent = {ref for s in selected for ref in input_refs(s.tx)}
                    self.rejected.pop(txid, None)
                    progress = True
                    continue

                reason = check_tx(tx, pool)
                if reason is not None:
                    self._reject(tx, reason)
                    continue
                fee = tx_fee(tx, pool)
                selected.append(SelectedTx(tx, fee))
                accepted_ids.add(txid)
                spent.update(input_refs(tx))
                apply_tx(tx, pool)
                fees += fee
                self.rejected.pop(txid, None)
                progress = True

        self.pool = pool
        self.total_fees = fees
        logger.info(
            "Committed %d of %d txs in %d passes, fees %d",
            len(selected),
            len(candidates),
            passes,
            fees,
        )
        return [s.tx for s in selected]

    commit_max_fee = handle_txs
