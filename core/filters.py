from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

import numpy as np
from scipy import signal


@dataclass(frozen=True)
class FilterState:
    """Previous input/output pair of a primed single-pole filter."""

    previous_input: float
    previous_output: float


class _RecursiveFilter:
    """Single-pole recursive filter with explicit priming state.

    Subclasses supply the numerator taps of ``y[n] = a*(x[n] +/- x[n-1]) +
    b*y[n-1]``. ``state`` is ``None`` until the first sample after
    construction or :meth:`reset`; that sample primes the filter with
    ``previous_input = x`` and ``previous_output = 0``.
    """

    def __init__(self, a: float, b: float) -> None:
        self._a = float(a)
        self._b = float(b)
        self._state: Optional[FilterState] = None

    @property
    def coefficients(self) -> tuple[float, float]:
        return self._a, self._b

    @property
    def state(self) -> Optional[FilterState]:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._state is not None

    def reset(self) -> None:
        self._state = None

    def set(self, y: float) -> None:
        """Force the previous output, used when re-priming after a break."""
        previous_input = self._state.previous_input if self._state is not None else 0.0
        self._state = FilterState(previous_input, float(y))

    def sample(self, x: float) -> float:
        x = float(x)
        state = self._state or FilterState(x, 0.0)
        y = self._step(x, state)
        self._state = FilterState(x, y)
        return y

    def apply(self, samples: Union[Sequence[float], np.ndarray]) -> np.ndarray:
        """Filter a 1D block, continuing from (and updating) the current state."""
        x = np.asarray(samples, dtype=np.float64)
        if x.ndim != 1:
            raise ValueError("samples must be 1D")
        if x.size == 0:
            return x.copy()

        state = self._state or FilterState(float(x[0]), 0.0)
        zi = np.array([self._initial_condition(state)], dtype=np.float64)
        y, _ = signal.lfilter(self._numerator(), self._denominator(), x, zi=zi)
        self._state = FilterState(float(x[-1]), float(y[-1]))
        return y

    def _denominator(self) -> np.ndarray:
        return np.array([1.0, -self._b], dtype=np.float64)

    def _numerator(self) -> np.ndarray:
        raise NotImplementedError

    def _step(self, x: float, state: FilterState) -> float:
        raise NotImplementedError

    def _initial_condition(self, state: FilterState) -> float:
        # transposed direct form II delay for a first-order section
        b = self._numerator()
        return float(b[1] * state.previous_input + self._b * state.previous_output)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(a={self._a!r}, b={self._b!r}, state={self._state!r})"


class HighPass(_RecursiveFilter):
    """First-order high-pass filter scaled by the stream gain."""

    def __init__(self, gain: float, q: float) -> None:
        if not gain > 0:
            raise ValueError("gain must be positive")
        super().__init__((1.0 + q) / (2.0 * gain), q)

    def _numerator(self) -> np.ndarray:
        return np.array([self._a, -self._a], dtype=np.float64)

    def _step(self, x: float, state: FilterState) -> float:
        return self._a * (x - state.previous_input) + self._b * state.previous_output


class Integrator(_RecursiveFilter):
    """Leaky trapezoidal integrator, converts acceleration into velocity."""

    def __init__(self, gain: float, dt: float, q: float) -> None:
        if not gain > 0:
            raise ValueError("gain must be positive")
        super().__init__((1.0 + q) * dt / (4.0 * gain), q)

    def _numerator(self) -> np.ndarray:
        return np.array([self._a, self._a], dtype=np.float64)

    def _step(self, x: float, state: FilterState) -> float:
        return self._a * (x + state.previous_input) + self._b * state.previous_output


__all__ = ["FilterState", "HighPass", "Integrator"]
