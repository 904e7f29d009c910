from dataclasses import dataclass, field
from typing import Dict, List, Optional

from . import crypto
from .utils import json_dumps, sha256

COIN = 100_000_000


@dataclass(frozen=True)
class TxInput:
    prev_txid: str
    output_index: int
    signature: Optional[str] = None

    def to_dict(self, include_sig: bool = True) -> Dict[str, object]:
        data: Dict[str, object] = {
            "prev_txid": self.prev_txid,
            "output_index": self.output_index,
        }
        if include_sig:
            data["signature"] = self.signature
        return data

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "TxInput":
        try:
            sig = data.get("signature")
            return TxInput(
                prev_txid=str(data["prev_txid"]),
                output_index=int(data["output_index"]),
                signature=str(sig) if sig else None,
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"malformed tx input: {data!r}") from exc


@dataclass(frozen=True)
class TxOutput:
    value: int
    pubkey: Dict[str, str]

    def to_dict(self) -> Dict[str, object]:
        return {"value": self.value, "pubkey": dict(self.pubkey)}

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "TxOutput":
        try:
            pubkey = data["pubkey"]
            if not isinstance(pubkey, dict):
                raise TypeError("pubkey must be an object")
            return TxOutput(
                value=int(data["value"]),
                pubkey={str(k): str(v) for k, v in pubkey.items()},
            )
        except (KeyError, TypeError, AttributeError) as exc:
            raise ValueError(f"malformed tx output: {data!r}") from exc


@dataclass
class Transaction:
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)

    def to_dict(self, include_sigs: bool = True) -> Dict[str, object]:
        return {
            "inputs": [inp.to_dict(include_sig=include_sigs) for inp in self.inputs],
            "outputs": [out.to_dict() for out in self.outputs],
        }

    @staticmethod
    def from_dict(data: Dict[str, object]) -> "Transaction":
        if not isinstance(data, dict):
            raise ValueError("transaction must be an object")
        inputs = data.get("inputs", [])
        outputs = data.get("outputs", [])
        if not isinstance(inputs, list) or not isinstance(outputs, list):
            raise ValueError("inputs and outputs must be lists")
        return Transaction(
            inputs=[TxInput.from_dict(i) for i in inputs],
            outputs=[TxOutput.from_dict(o) for o in outputs],
        )

    @property
    def txid(self) -> str:
        # signatures are part of the identity; two signings never collide
        return sha256(json_dumps(self.to_dict(include_sigs=True)).encode())

    def signing_payload(self, index: int) -> bytes:
        if index < 0 or index >= len(self.inputs):
            raise IndexError("input index out of range")
        payload = self.to_dict(include_sigs=False)
        payload["index"] = index
        return json_dumps(payload).encode()

    def sign_input(self, index: int, priv: Dict[str, int]) -> None:
        sig = crypto.sign(self.signing_payload(index), priv)
        inp = self.inputs[index]
        self.inputs[index] = TxInput(inp.prev_txid, inp.output_index, sig)

    def sign(self, priv: Dict[str, int]) -> None:
        for idx in range(len(self.inputs)):
            self.sign_input(idx, priv)

    def output_total(self) -> int:
        return sum(o.value for o in self.outputs)


def create_genesis(outputs: List[TxOutput]) -> Transaction:
    # inputs-less; only seeds a pool and is never validated
    return Transaction(inputs=[], outputs=list(outputs))
