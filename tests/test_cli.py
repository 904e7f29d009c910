import json

import pytest

from utxobatch import cli, config
from utxobatch.pool import UTXOPool


def _run(capsys, *argv):
    cli.main(list(argv))
    return capsys.readouterr().out


def test_cli_commit_flow(tmp_path, capsys):
    payer = str(tmp_path / "payer.json")
    payee = str(tmp_path / "payee.json")
    pool_path = str(tmp_path / "pool.json")
    _run(capsys, "create-wallet", "--wallet", payer)
    _run(capsys, "create-wallet", "--wallet", payee)
    _run(capsys, "--pool", pool_path, "genesis", "--wallet", payer, "--amount", "1")

    with open(pool_path, "r", encoding="utf-8") as f:
        ref = next(iter(json.load(f)))

    low = str(tmp_path / "low.json")
    high = str(tmp_path / "high.json")
    _run(capsys, "--pool", pool_path, "pay", "--wallet", payer, "--ref", ref,
         "--to", payee, "--amount", "0.5", "--fee", "0.01", "--out", low)
    _run(capsys, "--pool", pool_path, "pay", "--wallet", payer, "--ref", ref,
         "--to", payee, "--amount", "0.5", "--fee", "0.1", "--out", high)

    out = _run(capsys, "--pool", pool_path, "validate", "--tx", low)
    assert out.strip().endswith("valid")

    batch = str(tmp_path / "batch.json")
    with open(low, "r", encoding="utf-8") as f_low, open(high, "r", encoding="utf-8") as f_high:
        txs = [json.load(f_low), json.load(f_high)]
    with open(batch, "w", encoding="utf-8") as f:
        json.dump(txs, f)

    result_path = str(tmp_path / "after.json")
    out = _run(capsys, "--pool", pool_path, "commit", "--batch", batch,
               "--policy", "maxfee", "--out", result_path)
    report = json.loads(out)
    assert report["fees"] == "0.10000000"
    assert len(report["accepted"]) == 1
    assert list(report["rejected"].values()) == ["cross-double-spend"]

    with open(result_path, "r", encoding="utf-8") as f:
        after = UTXOPool.from_dict(json.load(f))
    assert len(after) == 2
    assert after.total_value() == 90_000_000

    out = _run(capsys, "--pool", pool_path, "commit", "--batch", batch,
               "--policy", "baseline", "--dry-run")
    assert json.loads(out)["fees"] == "0.01000000"


def test_policy_from_env(monkeypatch):
    monkeypatch.setenv("UTXOBATCH_POLICY", "baseline")
    assert config.get_policy() == "baseline"
    monkeypatch.setenv("UTXOBATCH_POLICY", "bogus")
    assert config.get_policy() == "maxfee"


def test_missing_pool(tmp_path):
    with pytest.raises(SystemExit):
        cli.main(["--pool", str(tmp_path / "nope.json"), "commit", "--batch", "[]"])


def test_insufficient_funds(tmp_path, capsys):
    payer = str(tmp_path / "payer.json")
    pool_path = str(tmp_path / "pool.json")
    _run(capsys, "create-wallet", "--wallet", payer)
    _run(capsys, "--pool", pool_path, "genesis", "--wallet", payer, "--amount", "1")
    with open(pool_path, "r", encoding="utf-8") as f:
        ref = next(iter(json.load(f)))
    with pytest.raises(SystemExit):
        cli.main(["--pool", pool_path, "pay", "--wallet", payer, "--ref", ref,
                  "--to", payer, "--amount", "2"])
