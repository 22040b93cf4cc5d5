"""Running cart totals with change subscriptions."""

import math
import threading
from dataclasses import dataclass
from typing import Callable, List


@dataclass(frozen=True)
class CartTotals:
    units: float = 0
    cases: int = 0
    subtotal: float = 0.0


Listener = Callable[[CartTotals], None]


class CartTotalsStore:
    """Explicit totals container owned by the presentation layer.

    ``add`` only ever increases the totals; ``reset`` clears them. Listeners
    receive the new snapshot after every change.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._totals = CartTotals()
        self._listeners: List[Listener] = []

    def add(self, units: float, unit_price: float, case_size: float) -> CartTotals:
        whole_units = max(0, math.floor(units))
        case_size = max(1, math.floor(case_size))
        with self._lock:
            self._totals = CartTotals(
                units=self._totals.units + whole_units,
                cases=self._totals.cases + whole_units // case_size,
                subtotal=self._totals.subtotal + whole_units * unit_price,
            )
            snapshot = self._totals
        self._emit(snapshot)
        return snapshot

    def reset(self) -> None:
        with self._lock:
            self._totals = CartTotals()
            snapshot = self._totals
        self._emit(snapshot)

    def totals(self) -> CartTotals:
        return self._totals

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, snapshot: CartTotals) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            listener(snapshot)
