"""
Incident wave models.

Elevation follows eta(t, x, y) = sum_n a_n cos(w_n t - k_n (x cos b + y sin b) + phi_n),
so a unit-amplitude component at the origin is Re[exp(i w t)], matching the
exciting-force transfer functions X(w) of the coefficient store.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import numpy as np
from numpy.typing import NDArray

from .params import Wave


class IncidentWave(ABC):
    """Wave field queried for elevation at a point."""

    heading: float = 0.0  # propagation direction [deg]

    @abstractmethod
    def eta(self, t: float, x: float = 0.0, y: float = 0.0) -> float:
        """Free-surface elevation [m] at time t and horizontal position (x, y)."""

    def __call__(self, t: float, x: float = 0.0, y: float = 0.0) -> float:
        return self.eta(t, x, y)


@dataclass
class StillWater(IncidentWave):
    heading: float = 0.0

    def eta(self, t: float, x: float = 0.0, y: float = 0.0) -> float:
        return 0.0


@dataclass
class IrregularWave(IncidentWave):
    """Superposition of linear wave components."""
    amplitudes: NDArray[np.floating] = field(default_factory=lambda: np.zeros(0))
    omegas:     NDArray[np.floating] = field(default_factory=lambda: np.zeros(0))
    phases:     NDArray[np.floating] = field(default_factory=lambda: np.zeros(0))
    heading:    float = 0.0
    g:          float = 9.81

    def __post_init__(self):
        self.amplitudes = np.asarray(self.amplitudes, dtype=float).flatten()
        self.omegas = np.asarray(self.omegas, dtype=float).flatten()
        self.phases = np.asarray(self.phases, dtype=float).flatten()
        n = self.amplitudes.size
        if self.omegas.size != n or self.phases.size != n:
            raise ValueError("amplitudes, omegas and phases must have equal length")
        # deep water dispersion
        self.wavenumbers = self.omegas ** 2 / self.g

    def eta(self, t: float, x: float = 0.0, y: float = 0.0) -> float:
        if self.amplitudes.size == 0:
            return 0.0
        beta = np.deg2rad(self.heading)
        kx = self.wavenumbers * (x * np.cos(beta) + y * np.sin(beta))
        return float(np.sum(self.amplitudes * np.cos(self.omegas * t - kx + self.phases)))


@dataclass
class RegularWave(IrregularWave):
    """Single Airy wave of amplitude `amplitude` and frequency `omega`."""
    amplitude: float = 0.0
    omega:     float = 1.0
    phase:     float = 0.0

    def __post_init__(self):
        if self.omega <= 0:
            raise ValueError("omega must be positive")
        self.amplitudes = np.array([self.amplitude])
        self.omegas = np.array([self.omega])
        self.phases = np.array([self.phase])
        super().__post_init__()


def make_wave(wave: Wave, g: float | None = None) -> IncidentWave:
    """
    Build an incident wave model from a `Wave` configuration.

    `g` sets the dispersion gravity, defaulting to the configuration's own.
    """
    if g is None:
        g = wave.g
    if wave.specType == "Still":
        return StillWater(heading=wave.propDir)
    if wave.specType == "Regular":
        return RegularWave(
            amplitude=float(wave.ZaCal[0]),
            omega=float(wave.omegaCal[0]),
            phase=float(wave.phaseCal[0]),
            heading=wave.propDir,
            g=g,
        )
    return IrregularWave(
        amplitudes=wave.ZaCal,
        omegas=wave.omegaCal,
        phases=wave.phaseCal,
        heading=wave.propDir,
        g=g,
    )


__all__ = ["IncidentWave", "StillWater", "IrregularWave", "RegularWave", "make_wave"]
