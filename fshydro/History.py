"""Rolling history buffers for the convolution force evaluator."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class HistoryBuffer:
    """
    Fixed-capacity rolling storage of per-step samples.

    Samples are stored channel-major, shape (channels, capacity). The sample
    written at step n lives in slot n % capacity. Slots never written read as
    zero, which gives the cold-start behaviour of the convolution sums.

    Args:
        channels: Number of values per sample (6 for accelerations, 1 for
                  wave elevation)
        capacity: Number of samples retained
    """

    def __init__(self, channels: int, capacity: int):
        if channels < 1:
            raise ValueError("channels must be at least 1")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.channels = int(channels)
        self._data = np.zeros((self.channels, int(capacity)))
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._data.shape[1]

    @property
    def count(self) -> int:
        """Number of samples pushed since the last clear."""
        return self._count

    @property
    def head(self) -> int:
        """Slot of the most recent sample (capacity - 1 when empty)."""
        return (self._count - 1) % self.capacity

    @property
    def data(self) -> NDArray[np.floating]:
        """Read-only view of the raw slots."""
        view = self._data.view()
        view.setflags(write=False)
        return view

    def __len__(self) -> int:
        return min(self._count, self.capacity)

    def push(self, values) -> None:
        """Write one sample and advance the cursor."""
        values = np.asarray(values, dtype=float).reshape(-1)
        if values.size != self.channels:
            raise ValueError(f"Expected {self.channels} values, got {values.size}")
        self._data[:, self._count % self.capacity] = values
        self._count += 1

    def lag(self, k: int) -> NDArray[np.floating]:
        """
        Sample written k steps before the most recent one.

        Returns zeros for lags that were never written or have been
        overwritten.
        """
        if k < 0:
            raise ValueError("lag must be non-negative")
        if k >= len(self):
            return np.zeros(self.channels)
        return self._data[:, (self._count - 1 - k) % self.capacity].copy()

    def latest(self) -> NDArray[np.floating]:
        return self.lag(0)

    def clear(self) -> None:
        self._data[:] = 0.0
        self._count = 0

    def resize(self, capacity: int) -> None:
        """Change the capacity. History is cleared."""
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._data = np.zeros((self.channels, int(capacity)))
        self._count = 0

    def __repr__(self) -> str:
        return f"HistoryBuffer(channels={self.channels}, capacity={self.capacity}, count={self._count})"


__all__ = ["HistoryBuffer"]
