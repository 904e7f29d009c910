import argparse
import json
import os
from decimal import Decimal, InvalidOperation
from typing import Dict, List

from . import config
from .handler import MaxFeeTxHandler, TxHandler, replay
from .pool import OutputRef, UTXOPool
from .tx import COIN, Transaction, TxInput, TxOutput
from .validator import check_tx
from .wallet import Wallet


def parse_amount(text: str, allow_zero: bool = False) -> int:
    try:
        val = Decimal(text)
    except InvalidOperation as exc:
        raise SystemExit(f"Invalid amount: {text}") from exc
    if val < 0 or (val == 0 and not allow_zero):
        raise SystemExit("Amount must be > 0")
    return int(val * COIN)


def format_amount(amount: int) -> str:
    return f"{Decimal(amount) / COIN:.8f}"


def _load_json(value: str):
    if os.path.exists(value):
        with open(value, "r", encoding="utf-8") as f:
            return json.load(f)
    return json.loads(value)


def _save_json(path: str, data) -> None:
    dir_name = os.path.dirname(path)
    if dir_name:
        os.makedirs(dir_name, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)


def _pool_path(args: argparse.Namespace) -> str:
    return args.pool or os.path.join(args.data_dir, "pool.json")


def _load_pool(path: str) -> UTXOPool:
    if not os.path.exists(path):
        raise SystemExit(f"Pool not found: {path} (run genesis first)")
    try:
        return UTXOPool.from_dict(_load_json(path))
    except ValueError as exc:
        raise SystemExit(f"Invalid pool file {path}: {exc}") from exc


def _load_batch(value: str) -> List[Transaction]:
    data = _load_json(value)
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise SystemExit("Expected JSON list of transactions")
    try:
        return [Transaction.from_dict(item) for item in data]
    except ValueError as exc:
        raise SystemExit(f"Invalid transaction: {exc}") from exc


def _recipient(value: str) -> Dict[str, str]:
    data = _load_json(value)
    if isinstance(data, dict) and "private_key" in data:
        return Wallet.from_dict(data).authority
    if isinstance(data, dict) and "x" in data and "y" in data:
        return {"x": str(data["x"]), "y": str(data["y"])}
    raise SystemExit("Expected a wallet file or a public key object")


def cmd_create_wallet(args: argparse.Namespace) -> None:
    wallet = Wallet.create()
    path = args.wallet
    dir_name = os.path.dirname(path)
    if dir_name:
        os.makedirs(dir_name, exist_ok=True)
    wallet.save(path)
    print("Wallet created")
    print("Public key:", json.dumps(wallet.authority))


def cmd_address(args: argparse.Namespace) -> None:
    wallet = Wallet.load(args.wallet)
    print(json.dumps(wallet.authority))


def cmd_genesis(args: argparse.Namespace) -> None:
    wallet = Wallet.load(args.wallet)
    if args.outputs <= 0:
        raise SystemExit("--outputs must be > 0")
    amount = parse_amount(args.amount)
    pool = UTXOPool.genesis([TxOutput(amount, wallet.authority) for _ in range(args.outputs)])
    path = _pool_path(args)
    _save_json(path, pool.to_dict())
    print("Genesis pool created:", path)
    for ref in pool.refs():
        print(ref.key, format_amount(pool.get(ref).value))


def cmd_pay(args: argparse.Namespace) -> None:
    wallet = Wallet.load(args.wallet)
    pool = _load_pool(_pool_path(args))
    try:
        refs = [OutputRef.parse(r) for r in args.ref]
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    missing = [r.key for r in refs if not pool.contains(r)]
    if missing:
        raise SystemExit(f"Unknown outputs: {', '.join(missing)}")
    amount = parse_amount(args.amount)
    fee = parse_amount(args.fee, allow_zero=True)
    total_in = sum(pool.get(r).value for r in refs)
    change = total_in - amount - fee
    if change < 0:
        raise SystemExit("Insufficient funds")

    outputs = [TxOutput(amount, _recipient(args.to))]
    if change > 0:
        outputs.append(TxOutput(change, wallet.authority))
    tx = Transaction(inputs=[TxInput(r.txid, r.index) for r in refs], outputs=outputs)
    tx.sign(wallet.priv)
    if args.out:
        _save_json(args.out, tx.to_dict())
    print(json.dumps(tx.to_dict(), indent=2, sort_keys=True))
    print("TXID:", tx.txid)


def cmd_validate(args: argparse.Namespace) -> None:
    pool = _load_pool(_pool_path(args))
    for tx in _load_batch(args.tx):
        reason = check_tx(tx, pool)
        print(tx.txid, "valid" if reason is None else reason)


def cmd_commit(args: argparse.Namespace) -> None:
    pool = _load_pool(_pool_path(args))
    batch = _load_batch(args.batch)
    policy = args.policy or config.get_policy()
    if policy == "maxfee":
        handler: TxHandler = MaxFeeTxHandler(pool)
    else:
        handler = TxHandler(pool)
    accepted = handler.handle_txs(batch)
    _pool, selected = replay(pool, accepted)
    print(json.dumps({
        "policy": policy,
        "accepted": [tx.txid for tx in accepted],
        "fees": format_amount(sum(s.fee for s in selected)),
        "rejected": handler.rejected,
    }, indent=2, sort_keys=True))
    if not args.dry_run:
        out = args.out or _pool_path(args)
        _save_json(out, handler.pool.to_dict())


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="utxobatch")
    p.add_argument("--data-dir", default=config.DATA_DIR)
    p.add_argument("--pool", help="pool file (default: <data-dir>/pool.json)")
    p.add_argument("--log-level", default="")
    sub = p.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("create-wallet")
    s.add_argument("--wallet", required=True)
    s.set_defaults(func=cmd_create_wallet)

    s = sub.add_parser("address", help="print the wallet public key")
    s.add_argument("--wallet", required=True)
    s.set_defaults(func=cmd_address)

    s = sub.add_parser("genesis", help="create a pool owned by a wallet")
    s.add_argument("--wallet", required=True)
    s.add_argument("--amount", required=True)
    s.add_argument("--outputs", type=int, default=1)
    s.set_defaults(func=cmd_genesis)

    s = sub.add_parser("pay", help="build and sign a transaction")
    s.add_argument("--wallet", required=True)
    s.add_argument("--ref", action="append", required=True, help="TXID:INDEX of an output to spend")
    s.add_argument("--to", required=True, help="wallet file or public key JSON")
    s.add_argument("--amount", required=True)
    s.add_argument("--fee", default="0")
    s.add_argument("--out")
    s.set_defaults(func=cmd_pay)

    s = sub.add_parser("validate")
    s.add_argument("--tx", required=True, help="JSON transaction(s) or file path")
    s.set_defaults(func=cmd_validate)

    s = sub.add_parser("commit", help="commit a batch against the pool")
    s.add_argument("--batch", required=True, help="JSON list or file path")
    s.add_argument("--policy", choices=list(config.POLICIES))
    s.add_argument("--out", help="write the resulting pool here instead of --pool")
    s.add_argument("--dry-run", action="store_true")
    s.set_defaults(func=cmd_commit)

    return p


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    config.configure_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
