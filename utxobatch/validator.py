import logging
from typing import List, Optional, Set

from . import crypto
from .pool import OutputRef, UTXOPool
from .tx import Transaction

logger = logging.getLogger(__name__)

DANGLING_REFERENCE = "dangling-reference"
INTRA_DOUBLE_SPEND = "intra-double-spend"
BAD_SIGNATURE = "bad-signature"
NEGATIVE_OUTPUT = "negative-output"
VALUE_CREATION = "value-creation"
CROSS_DOUBLE_SPEND = "cross-double-spend"


def input_refs(tx: Transaction) -> List[OutputRef]:
    return [OutputRef(inp.prev_txid, inp.output_index) for inp in tx.inputs]


def _signature_ok(tx: Transaction, index: int, pool: UTXOPool, ref: OutputRef) -> bool:
    sig = tx.inputs[index].signature
    if not sig:
        return False
    try:
        pub = crypto.key_from_hex(pool.get(ref).pubkey)
    except (KeyError, TypeError, ValueError):
        return False
    return crypto.verify(pub, tx.signing_payload(index), sig)


def check_tx(tx: Transaction, pool: UTXOPool) -> Optional[str]:
    """Return None when ``tx`` is valid against ``pool``, else the rejection reason.

    Inputs must reference live outputs, each at most once, and carry a
    signature by the output's key over the payload for that input. Outputs
    must be non-negative and may not exceed a strictly positive input total.
    ``pool`` is only read.
    """
    seen: Set[OutputRef] = set()
    total_in = 0
    for idx, ref in enumerate(input_refs(tx)):
        if not pool.contains(ref):
            return DANGLING_REFERENCE
        if ref in seen:
            return INTRA_DOUBLE_SPEND
        seen.add(ref)
        if not _signature_ok(tx, idx, pool, ref):
            return BAD_SIGNATURE
        total_in += pool.get(ref).value

    total_out = 0
    for out in tx.outputs:
        if out.value < 0:
            return NEGATIVE_OUTPUT
        total_out += out.value

    if total_in <= 0 or total_in < total_out:
        return VALUE_CREATION
    return None


def is_valid_tx(tx: Transaction, pool: UTXOPool) -> bool:
    reason = check_tx(tx, pool)
    if reason is not None:
        logger.debug("Rejecting tx %s: %s", tx.txid[:16], reason)
    return reason is None


def tx_fee(tx: Transaction, pool: UTXOPool) -> int:
    total_in = sum(pool.get(ref).value for ref in input_refs(tx))
    return total_in - tx.output_total()
