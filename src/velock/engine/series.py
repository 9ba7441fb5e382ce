"""Sparse epoch-indexed series."""

from typing import Dict, List, Tuple


class SparseSeries:
    """Map from epoch index to integer value, defaulting to zero.

    Range queries look up each epoch of the half-open range individually, so
    their cost is bounded by the width of the range and not by how much
    history has been stored.
    """

    def __init__(self):
        self._values: Dict[int, int] = {}

    def __getitem__(self, epoch: int) -> int:
        return self._values.get(epoch, 0)

    def __len__(self) -> int:
        return len(self._values)

    def add(self, epoch: int, delta: int) -> int:
        """Add `delta` at `epoch` and return the new value."""
        value = self._values.get(epoch, 0) + delta
        self._values[epoch] = value
        return value

    def items_between(self, start: int, stop: int) -> List[Tuple[int, int]]:
        """Non-zero (epoch, value) pairs with start <= epoch < stop, ascending."""
        items = []
        for epoch in range(start, stop):
            value = self[epoch]
            if value != 0:
                items.append((epoch, value))
        return items

    def sum_between(self, start: int, stop: int) -> int:
        return sum(self[epoch] for epoch in range(start, stop))

    def to_dict(self) -> Dict[int, int]:
        return dict(sorted(self._values.items()))
