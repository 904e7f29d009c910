import pytest

from utxobatch.pool import UTXOPool
from utxobatch.tx import Transaction, TxInput, TxOutput
from utxobatch.wallet import Wallet


@pytest.fixture
def alice():
    return Wallet.create()


@pytest.fixture
def bob():
    return Wallet.create()


@pytest.fixture
def make_pool():
    def _make(*owned):
        # owned: (wallet, value) pairs, one genesis output each
        return UTXOPool.genesis([TxOutput(value, w.authority) for w, value in owned])

    return _make


@pytest.fixture
def make_tx():
    def _make(refs, outputs, signer=None):
        tx = Transaction(
            inputs=[TxInput(r.txid, r.index) for r in refs],
            outputs=[TxOutput(value, w.authority) for w, value in outputs],
        )
        if signer is not None:
            tx.sign(signer.priv)
        return tx

    return _make
