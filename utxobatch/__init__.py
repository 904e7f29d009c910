from .handler import MaxFeeTxHandler, SelectedTx, TxHandler
from .pool import OutputRef, UTXOPool
from .tx import Transaction, TxInput, TxOutput
from .validator import check_tx, is_valid_tx, tx_fee

__all__ = [
    "MaxFeeTxHandler",
    "OutputRef",
    "SelectedTx",
    "Transaction",
    "TxHandler",
    "TxInput",
    "TxOutput",
    "UTXOPool",
    "check_tx",
    "is_valid_tx",
    "tx_fee",
]
