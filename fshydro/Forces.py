"""
Force terms acting on a floating body.

Static terms (hydrostatic restoring, buoyancy, gravity, viscous drag and
linear damping) share the `f(t, x)` interface of BaseForce.
ConvolutionForce owns the acceleration and wave-elevation histories and
evaluates the radiation and wave-exciting memory sums over them.
"""

#=============================================================================
#                               Import necessary modules
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable
import numpy as np
from numpy.typing import NDArray
from numba import njit

from .History import HistoryBuffer
from .IRF import HydroKernels
from .params import BodyConfig, Env




#=============================================================================
#                               Helper Functions
def hydrostatic_stiffness(
    rho: float,
    g: float,
    S: float,
    S11: float,
    S22: float,
    Vol: float,
    COB: NDArray[np.floating],
    mass: float,
    COG: NDArray[np.floating],
) -> NDArray[np.floating]:
    """
    Linear hydrostatic restoring matrix about the body reference point.

    WAMIT convention, with z_b and z_g measured positive up from the
    undisturbed waterplane.

    Args:
        rho: Fluid density [kg/m^3]
        g: Gravitational acceleration [m/s^2]
        S: Waterplane area [m^2]
        S11: Waterplane second moment about x [m^4]
        S22: Waterplane second moment about y [m^4]
        Vol: Submerged volume [m^3]
        COB: Centre of buoyancy (x_b, y_b, z_b) [m]
        mass: Body mass [kg]
        COG: Centre of gravity (x_g, y_g, z_g) [m]

    Returns:
        6x6 stiffness matrix c
    """
    xb, yb, zb = COB
    xg, yg, zg = COG
    rg = rho * g
    mg = mass * g

    c = np.zeros((6, 6))
    c[2, 2] = rg * S
    c[3, 3] = rg * (S11 + Vol * zb) - mg * zg
    c[4, 4] = rg * (S22 + Vol * zb) - mg * zg
    c[3, 5] = -rg * Vol * xb + mg * xg
    c[4, 5] = -rg * Vol * yb + mg * yg
    return c


@njit(cache=True)
def _radiation_sum(L, lengths, hist, head, dt):
    """-sum_j sum_k L[i,j,k] * a_j[head - k] * dt over a circular history."""
    cap = hist.shape[1]
    F = np.zeros(6)
    for i in range(6):
        acc = 0.0
        for j in range(6):
            for k in range(lengths[i, j]):
                idx = head - k
                if idx < 0:
                    idx += cap
                acc += L[i, j, k] * hist[j, idx]
        F[i] = -acc * dt
    return F


@njit(cache=True)
def _exciting_sum(K, lengths, hist, head, dt):
    """sum_k K[i,k] * eta[head - k] * dt over a circular history."""
    cap = hist.shape[1]
    F = np.zeros(6)
    for i in range(6):
        acc = 0.0
        for k in range(lengths[i]):
            idx = head - k
            if idx < 0:
                idx += cap
            acc += K[i, k] * hist[0, idx]
        F[i] = acc * dt
    return F




#=============================================================================
#                                 Forces Library - Base Class
class BaseForce(ABC):
    @abstractmethod
    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        ...

    def get_force_function(self) -> Callable[[float, NDArray], NDArray]:
        """Get a force function f(t, x) for an ODE solver."""
        def force_func(t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
            return self(t, x)
        return force_func


def _split_state(x: NDArray[np.floating]) -> tuple[NDArray, NDArray]:
    x = np.asarray(x, dtype=float)
    if x.shape[0] == 12:
        return x[:6], x[6:]
    if x.shape[0] == 6:
        return x, np.zeros(6)
    raise ValueError(f"State must have 6 or 12 components, got {x.shape[0]}")


#=============================================================================
#                                 Static Forces

@dataclass
class HydrostaticForce(BaseForce):
    """
    Restoring force F = -c x.

    c is only replaced through `update`; nothing here tracks changes to the
    geometry it was built from.
    """
    c: NDArray[np.floating] = field(default_factory=lambda: np.zeros((6, 6)))

    def __post_init__(self):
        self.c = np.asarray(self.c, dtype=float)
        if self.c.shape != (6, 6):
            raise ValueError("Stiffness matrix must be 6x6")

    @classmethod
    def from_config(cls, body: BodyConfig, env: Env) -> "HydrostaticForce":
        return cls(c=hydrostatic_stiffness(
            env.rho, env.g, body.S, body.S11, body.S22,
            body.Vol, body.COB, body.mass, body.COG,
        ))

    def update(self, c: NDArray[np.floating]) -> None:
        c = np.asarray(c, dtype=float)
        if c.shape != (6, 6):
            raise ValueError("Stiffness matrix must be 6x6")
        self.c = c

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        pos, _ = _split_state(x)
        return -self.c @ pos


@dataclass
class BuoyancyForce(BaseForce):
    """Buoyancy rho g V acting upward at the centre of buoyancy."""
    rho: float = 1025.0
    g:   float = 9.81
    Vol: float = 0.0
    COB: NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        Fb = self.rho * self.g * self.Vol
        return np.array([0.0, 0.0, Fb, Fb * self.COB[1], -Fb * self.COB[0], 0.0])


@dataclass
class GravityForce(BaseForce):
    """Weight m g acting downward at the centre of gravity."""
    mass: float = 0.0
    g:    float = 9.81
    COG:  NDArray[np.floating] = field(default_factory=lambda: np.zeros(3))

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        W = self.mass * self.g
        return np.array([0.0, 0.0, -W, -W * self.COG[1], W * self.COG[0], 0.0])


@dataclass
class ViscousDragForce(BaseForce):
    """Quadratic drag -0.5 rho Cd A |v| v, each DOF independent."""
    rho:  float = 1025.0
    Cd:   NDArray[np.floating] = field(default_factory=lambda: np.zeros(6))
    Area: NDArray[np.floating] = field(default_factory=lambda: np.zeros(6))

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        _, vel = _split_state(x)
        return -0.5 * self.rho * self.Cd * self.Area * np.abs(vel) * vel


@dataclass
class LinearDampingForce(BaseForce):
    """Per-DOF linear damping -b v."""
    b: NDArray[np.floating] = field(default_factory=lambda: np.zeros(6))

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        _, vel = _split_state(x)
        return -self.b * vel


#=============================================================================
#                                 Convolution Forces

class ConvolutionForce(BaseForce):
    """
    Radiation and wave-exciting forces from discrete convolutions.

    Holds one acceleration history (6 channels) and one wave-elevation
    history (1 channel), both sized to the longest kernel. Evaluation only
    reads history; `push` is the only writer, and is meant to be called once
    per accepted integrator step.

    Missing history at the start of a run reads as zero. For radiation
    kernels with a large L(0) this start-up transient can be noticeable.

    Args:
        kernels: Prebuilt kernels, may be shared between bodies
    """

    def __init__(self, kernels: HydroKernels):
        self.kernels = kernels
        self.accel_history = HistoryBuffer(6, kernels.capacity)
        self.eta_history = HistoryBuffer(1, kernels.capacity)

    @property
    def dt(self) -> float:
        return self.kernels.dt

    @property
    def steps(self) -> int:
        """Number of accepted steps recorded."""
        return self.accel_history.count

    def set_kernels(self, kernels: HydroKernels) -> None:
        """Swap kernels; history is resized and cleared."""
        self.kernels = kernels
        self.accel_history.resize(kernels.capacity)
        self.eta_history.resize(kernels.capacity)

    def push(self, accel: NDArray[np.floating], eta: float) -> None:
        """Record the accepted acceleration and wave elevation."""
        accel = np.asarray(accel, dtype=float)
        if accel.shape != (6,):
            raise ValueError("Acceleration must have 6 components")
        self.accel_history.push(accel)
        self.eta_history.push([eta])

    def reset(self) -> None:
        self.accel_history.clear()
        self.eta_history.clear()

    def radiation(self) -> NDArray[np.floating]:
        """Radiation force from the acceleration history."""
        rad = self.kernels.radiation
        hist = self.accel_history
        return _radiation_sum(rad.L, rad.lengths, hist.data, hist.head, rad.dt)

    def exciting(self) -> NDArray[np.floating]:
        """Wave-exciting force from the elevation history."""
        exc = self.kernels.exciting
        hist = self.eta_history
        return _exciting_sum(exc.K, exc.lengths, hist.data, hist.head, exc.dt)

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        return self.radiation() + self.exciting()


#=============================================================================
#                                 Exports
__all__ = [
    # Base
    "BaseForce",
    # Helper functions
    "hydrostatic_stiffness",
    # Static forces
    "HydrostaticForce",
    "BuoyancyForce",
    "GravityForce",
    "ViscousDragForce",
    "LinearDampingForce",
    # Convolution forces
    "ConvolutionForce",
]
