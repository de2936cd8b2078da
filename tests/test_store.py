"""Tests for the run-scoped snapshot store."""

from wallet_portfolio.core import Holding, HoldingPatch, HistorySource, LoadStage, SnapshotStore

WALLET = "0x1111111111111111111111111111111111111111"


def holding(token_id: str, balance: float = 1.0, price: float = 0.0) -> Holding:
    return Holding(
        id=token_id,
        symbol=token_id.upper(),
        name=token_id,
        address=f"0x{token_id}",
        balance=balance,
        price=price,
    )


def test_begin_run_supersedes():
    """Test a new run makes the previous one stale."""
    store = SnapshotStore()

    first = store.begin_run()
    second = store.begin_run()

    assert not store.is_active(first)
    assert store.is_active(second)
    assert store.active_run == second


def test_stale_writes_discarded():
    """Test writes from a superseded run leave the state untouched."""
    store = SnapshotStore()
    stale = store.begin_run()
    current = store.begin_run()
    store.reset(current, WALLET, [holding("a")])

    assert not store.reset(stale, WALLET, [holding("b")])
    assert not store.apply(stale, [HoldingPatch(id="a", price=99.0)])
    assert not store.sort_by_value(stale)
    assert not store.fail(stale, WALLET, "boom")
    assert store.publish(stale, LoadStage.PRICES) is None

    snapshot = store.snapshot()
    assert [h.id for h in snapshot.holdings] == ["a"]
    assert snapshot.holdings[0].price == 0.0
    assert snapshot.error is None


def test_apply_patches_by_id():
    """Test patches update matching holdings and ignore unknown ids."""
    store = SnapshotStore()
    run = store.begin_run()
    store.reset(run, WALLET, [holding("a", balance=2.0)])

    store.apply(
        run,
        [
            HoldingPatch(id="a", price=3.0, change_24h=1.5, history=[2.9, 3.0], history_source=HistorySource.MARKET),
            HoldingPatch(id="missing", price=10.0),
        ],
    )

    snapshot = store.snapshot()
    assert len(snapshot.holdings) == 1
    updated = snapshot.holdings[0]
    assert updated.price == 3.0
    assert updated.change_24h == 1.5
    assert updated.history == [2.9, 3.0]
    assert updated.history_source == HistorySource.MARKET
    assert snapshot.total_value == 6.0


def test_history_patch_leaves_price():
    """Test a history-only patch does not change price or change."""
    store = SnapshotStore()
    run = store.begin_run()
    store.reset(run, WALLET, [holding("a", price=5.0)])

    store.apply(run, [HoldingPatch(id="a", history=[4.0, 5.0], history_source=HistorySource.CHART)])

    updated = store.snapshot().holdings[0]
    assert updated.price == 5.0
    assert updated.change_24h == 0.0
    assert updated.history_source == HistorySource.CHART


def test_sort_by_value_is_stable():
    """Test equal values keep their relative order."""
    store = SnapshotStore()
    run = store.begin_run()
    store.reset(
        run,
        WALLET,
        [
            holding("a", balance=1.0, price=10.0),
            holding("b", balance=2.0, price=5.0),
            holding("c", balance=3.0, price=10.0),
        ],
    )

    store.sort_by_value(run)

    assert [h.id for h in store.snapshot().holdings] == ["c", "a", "b"]


def test_zero_balances_hidden_when_connected():
    """Test holdings without balance are hidden for a connected address."""
    store = SnapshotStore()
    run = store.begin_run()
    store.reset(run, WALLET, [holding("a", balance=0.0, price=10.0), holding("b", balance=1.0, price=2.0)])

    snapshot = store.snapshot()

    assert [h.id for h in snapshot.holdings] == ["b"]
    assert snapshot.total_value == 2.0


def test_market_view_shows_all():
    """Test every holding is visible without an address."""
    store = SnapshotStore()
    run = store.begin_run()
    store.reset(run, None, [holding("a", balance=0.0), holding("b", balance=0.0)])

    snapshot = store.snapshot()

    assert [h.id for h in snapshot.holdings] == ["a", "b"]
    assert snapshot.total_value == 0.0


def test_publish_notifies_listener():
    """Test the listener receives detached copies."""
    received = []
    store = SnapshotStore(listener=received.append)
    run = store.begin_run()
    store.reset(run, WALLET, [holding("a", price=1.0)])

    published = store.publish(run, LoadStage.BALANCES)
    store.apply(run, [HoldingPatch(id="a", price=2.0)])

    assert received == [published]
    assert published.stage == LoadStage.BALANCES
    assert published.holdings[0].price == 1.0


def test_fail_clears_holdings():
    """Test a failed run exposes only the error."""
    store = SnapshotStore()
    run = store.begin_run()
    store.reset(run, WALLET, [holding("a", price=1.0)])

    store.fail(run, WALLET, "Failed to load data. Please try again.")
    snapshot = store.publish(run, LoadStage.FAILED)

    assert snapshot.stage == LoadStage.FAILED
    assert snapshot.holdings == []
    assert snapshot.total_value == 0.0
    assert snapshot.error == "Failed to load data. Please try again."
