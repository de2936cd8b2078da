"""In-memory portfolio state shared by the pipeline stages of one run."""

import logging
from collections.abc import Callable, Iterable

from wallet_portfolio.core.models import Holding, HoldingPatch, LoadStage, PortfolioSnapshot

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[PortfolioSnapshot], None]


class SnapshotStore:
    """
    Holds the single token list and total value for the active run.

    Every mutation carries the id of the run that produced it. Only the most
    recently started run may mutate the state; writes tagged with a
    superseded run id are discarded and reported as False.

    Parameters
    ----------
    listener : SnapshotListener | None
        Called with a copy of the snapshot each time a stage publishes

    """

    def __init__(self, listener: SnapshotListener | None = None) -> None:
        self.listener = listener
        self._active_run = 0
        self._address: str | None = None
        self._holdings: list[Holding] = []
        self._stage = LoadStage.BALANCES
        self._error: str | None = None

    @property
    def active_run(self) -> int:
        """Id of the run currently allowed to write."""
        return self._active_run

    def begin_run(self) -> int:
        """
        Start a new run, superseding any run in flight.

        Returns
        -------
        int
            Id of the new run

        """
        self._active_run += 1
        logger.debug("Started run %d", self._active_run)
        return self._active_run

    def is_active(self, run_id: int) -> bool:
        """Check whether ``run_id`` is the active run."""
        return run_id == self._active_run

    def reset(self, run_id: int, address: str | None, holdings: list[Holding]) -> bool:
        """
        Replace the token list with a fresh balance-stage result.

        Parameters
        ----------
        run_id : int
            Run producing the holdings
        address : str | None
            Wallet address, None for the market view
        holdings : list[Holding]
            Balance-stage holdings in display order

        Returns
        -------
        bool
            False if the run has been superseded

        """
        if not self._accept(run_id, "reset"):
            return False

        self._address = address
        self._holdings = list(holdings)
        self._stage = LoadStage.BALANCES
        self._error = None
        return True

    def apply(self, run_id: int, patches: Iterable[HoldingPatch]) -> bool:
        """
        Apply field patches to holdings in place, matched by token id.

        Patches for ids not in the current list are ignored.

        Parameters
        ----------
        run_id : int
            Run producing the patches
        patches : Iterable[HoldingPatch]
            Field updates

        Returns
        -------
        bool
            False if the run has been superseded

        """
        if not self._accept(run_id, "patch"):
            return False

        by_id = {holding.id: holding for holding in self._holdings}
        for patch in patches:
            holding = by_id.get(patch.id)
            if holding is None:
                continue
            if patch.price is not None:
                holding.price = patch.price
            if patch.change_24h is not None:
                holding.change_24h = patch.change_24h
            if patch.history is not None:
                holding.history = list(patch.history)
                holding.history_source = patch.history_source
        return True

    def sort_by_value(self, run_id: int) -> bool:
        """
        Order holdings by descending USD value.

        The sort is stable: holdings with equal value keep their relative
        order.

        """
        if not self._accept(run_id, "sort"):
            return False

        self._holdings.sort(key=lambda holding: holding.value, reverse=True)
        return True

    def fail(self, run_id: int, address: str | None, message: str) -> bool:
        """Mark the run as failed with a user-facing message."""
        if not self._accept(run_id, "failure"):
            return False

        self._address = address
        self._holdings = []
        self._stage = LoadStage.FAILED
        self._error = message
        return True

    def publish(self, run_id: int, stage: LoadStage) -> PortfolioSnapshot | None:
        """
        Record the completed stage and notify the listener.

        Parameters
        ----------
        run_id : int
            Run publishing the stage
        stage : LoadStage
            Stage just completed

        Returns
        -------
        PortfolioSnapshot | None
            Copy of the published snapshot, or None if the run was superseded

        """
        if not self._accept(run_id, f"{stage} publish"):
            return None

        self._stage = stage
        snapshot = self.snapshot()
        if self.listener:
            self.listener(snapshot)
        return snapshot

    def snapshot(self) -> PortfolioSnapshot:
        """
        Build a detached copy of the current state.

        With a connected address only holdings with a positive balance are
        visible. The total is recomputed from the visible holdings.

        """
        visible = [
            holding.model_copy(deep=True)
            for holding in self._holdings
            if self._address is None or holding.balance > 0
        ]
        return PortfolioSnapshot(
            run_id=self._active_run,
            address=self._address,
            stage=self._stage,
            holdings=visible,
            total_value=sum((holding.value for holding in visible), 0.0),
            error=self._error,
        )

    def _accept(self, run_id: int, action: str) -> bool:
        if run_id != self._active_run:
            logger.debug("Discarding %s from superseded run %d (active: %d)", action, run_id, self._active_run)
            return False
        return True
