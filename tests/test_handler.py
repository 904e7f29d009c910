from utxobatch.handler import TxHandler, apply_tx, replay
from utxobatch.pool import OutputRef
from utxobatch.validator import BAD_SIGNATURE, CROSS_DOUBLE_SPEND, input_refs


def _assert_conserved(pool, accepted):
    spent = [ref for tx in accepted for ref in input_refs(tx)]
    assert len(spent) == len(set(spent))
    created = {OutputRef(tx.txid, i): out for tx in accepted for i, out in enumerate(tx.outputs)}
    for ref in spent:
        if ref not in created:
            assert not pool.contains(ref)
    for ref, out in created.items():
        if ref not in spent:
            assert pool.get(ref) == out


def test_bad_signature_dropped(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 10))
    t1 = make_tx(pool.refs(), [(bob, 7)], signer=alice)
    t2 = make_tx(pool.refs(), [(bob, 7)], signer=bob)
    handler = TxHandler(pool)
    assert handler.handle_txs([t1, t2]) == [t1]
    assert handler.rejected[t2.txid] in (BAD_SIGNATURE, CROSS_DOUBLE_SPEND)
    _assert_conserved(handler.pool, [t1])


def test_first_valid_wins(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 5))
    t1 = make_tx(pool.refs(), [(bob, 1)], signer=alice)
    t2 = make_tx(pool.refs(), [(bob, 3)], signer=alice)
    assert TxHandler(pool).commit([t1, t2]) == [t1]
    assert TxHandler(pool).commit([t2, t1]) == [t2]


def test_caller_pool_untouched(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 5))
    before = pool.copy()
    t1 = make_tx(pool.refs(), [(bob, 5)], signer=alice)
    handler = TxHandler(pool)
    handler.handle_txs([t1])
    assert pool == before
    assert not handler.pool.contains(pool.refs()[0])
    assert handler.pool.contains(OutputRef(t1.txid, 0))


def test_fixpoint_picks_up_child(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 10))
    parent = make_tx(pool.refs(), [(bob, 9)], signer=alice)
    child = make_tx([OutputRef(parent.txid, 0)], [(alice, 8)], signer=bob)
    grandchild = make_tx([OutputRef(child.txid, 0)], [(bob, 8)], signer=alice)
    handler = TxHandler(pool)
    accepted = handler.handle_txs([grandchild, child, parent])
    # acceptance order, one generation per pass
    assert accepted == [parent, child, grandchild]
    assert handler.rejected == {}
    _assert_conserved(handler.pool, accepted)
    assert handler.pool.total_value() == 8


def test_no_double_commit_across_passes(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 10))
    parent = make_tx(pool.refs(), [(bob, 10)], signer=alice)
    ref = OutputRef(parent.txid, 0)
    child_a = make_tx([ref], [(alice, 9)], signer=bob)
    child_b = make_tx([ref], [(alice, 2)], signer=bob)
    handler = TxHandler(pool)
    accepted = handler.handle_txs([child_a, child_b, parent])
    assert accepted == [parent, child_a]
    assert handler.rejected == {child_b.txid: CROSS_DOUBLE_SPEND}
    _assert_conserved(handler.pool, accepted)


def test_duplicate_candidate_committed_once(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 10))
    t1 = make_tx(pool.refs(), [(bob, 10)], signer=alice)
    assert TxHandler(pool).handle_txs([t1, t1]) == [t1]


def test_handler_is_valid_tracks_pool(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 10))
    t1 = make_tx(pool.refs(), [(bob, 10)], signer=alice)
    handler = TxHandler(pool)
    assert handler.is_valid_tx(t1)
    handler.handle_txs([t1])
    assert not handler.is_valid_tx(t1)


def test_replay_drops_orphaned_spends(alice, bob, make_pool, make_tx):
    pool = make_pool((alice, 10))
    parent = make_tx(pool.refs(), [(bob, 9)], signer=alice)
    child = make_tx([OutputRef(parent.txid, 0)], [(alice, 5)], signer=bob)
    replayed, kept = replay(pool, [child])
    assert kept == []
    assert replayed == pool
    replayed, kept = replay(pool, [parent, child])
    assert [(s.tx, s.fee) for s in kept] == [(parent, 1), (child, 4)]
    expected = pool.copy()
    apply_tx(parent, expected)
    apply_tx(child, expected)
    assert replayed == expected
