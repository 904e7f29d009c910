from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .tx import Transaction, TxOutput, create_genesis


@dataclass(frozen=True, order=True)
class OutputRef:
    txid: str
    index: int

    @property
    def key(self) -> str:
        return f"{self.txid}:{self.index}"

    @staticmethod
    def parse(text: str) -> "OutputRef":
        txid, sep, idx = text.rpartition(":")
        if not sep or not txid:
            raise ValueError(f"Invalid output reference: {text}")
        try:
            return OutputRef(txid, int(idx))
        except ValueError as exc:
            raise ValueError(f"Invalid output reference: {text}") from exc


class UTXOPool:
    """Unspent outputs keyed by the reference that created them."""

    def __init__(self, utxos: Optional[Dict[OutputRef, TxOutput]] = None):
        self._utxos: Dict[OutputRef, TxOutput] = dict(utxos or {})

    @classmethod
    def genesis(cls, outputs: List[TxOutput]) -> "UTXOPool":
        pool = cls()
        pool.add_outputs(create_genesis(outputs))
        return pool

    def contains(self, ref: OutputRef) -> bool:
        return ref in self._utxos

    def get(self, ref: OutputRef) -> TxOutput:
        return self._utxos[ref]

    def put(self, ref: OutputRef, out: TxOutput) -> None:
        self._utxos[ref] = out

    def remove(self, ref: OutputRef) -> None:
        self._utxos.pop(ref, None)

    def add_outputs(self, tx: Transaction) -> None:
        txid = tx.txid
        for idx, out in enumerate(tx.outputs):
            self.put(OutputRef(txid, idx), out)

    def copy(self) -> "UTXOPool":
        # outputs are frozen, a shallow copy of the mapping is independent
        return UTXOPool(self._utxos)

    def refs(self) -> List[OutputRef]:
        return sorted(self._utxos)

    def total_value(self) -> int:
        return sum(out.value for out in self._utxos.values())

    def __contains__(self, ref: object) -> bool:
        return ref in self._utxos

    def __iter__(self) -> Iterator[OutputRef]:
        return iter(self._utxos)

    def __len__(self) -> int:
        return len(self._utxos)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UTXOPool):
            return NotImplemented
        return self._utxos == other._utxos

    def to_dict(self) -> Dict[str, object]:
        return {ref.key: out.to_dict() for ref, out in sorted(self._utxos.items())}

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "UTXOPool":
        if not isinstance(data, dict):
            raise ValueError("pool must be an object")
        return UTXOPool({OutputRef.parse(k): TxOutput.from_dict(v) for k, v in data.items()})
