"""
Impulse-response functions for radiation and wave-exciting forces.

Radiation kernels follow Cummins' equation. The velocity-memory kernel

    K(t) = (2/pi) int_0^W [B(w) - B_inf] cos(w t) dw

is built from the damping curve. Its time integral, the acceleration-memory
kernel

    L(t) = (2/pi) int_0^W [B(w) - B_inf] / w sin(w t) dw,

is the form convolved against accelerations. Both are also recovered from the
added-mass curve (K_alt, L_alt) for the Kramers-Kronig consistency check.
"""

#=============================================================================
#                               Import necessary modules
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import warnings
import numpy as np
from numpy.typing import NDArray
from scipy.integrate import trapezoid
from scipy.special import sici

from .Coeffs import CoefficientStore


#=============================================================================
#                               Kernel Containers
@dataclass(frozen=True, eq=False)
class RadiationKernels:
    """
    Radiation impulse-response kernels on the lag grid tau_k = k*dt.

    Attributes:
        dt: Lag spacing [s]
        tau: Lag grid, shape (N,)
        K: Velocity-memory kernel from damping, shape (6, 6, N)
        K_alt: Velocity-memory kernel from added mass, shape (6, 6, N)
        L: Acceleration-memory kernel from damping, shape (6, 6, N)
        L_alt: Acceleration-memory kernel from added mass, shape (6, 6, N)
        lengths: Per-pair kernel length N_ij <= N, shape (6, 6)
    """
    dt:      float
    tau:     NDArray[np.floating]
    K:       NDArray[np.floating]
    K_alt:   NDArray[np.floating]
    L:       NDArray[np.floating]
    L_alt:   NDArray[np.floating]
    lengths: NDArray[np.integer]

    @property
    def n_lags(self) -> int:
        return self.tau.size


@dataclass(frozen=True, eq=False)
class ExcitingKernels:
    """
    Wave-exciting impulse-response kernels on tau_k = k*dt - t_lead.

    Attributes:
        dt: Lag spacing [s]
        t_lead: Look-ahead of the kernel [s]
        heading: Tabulated heading the kernels were built for [deg]
        tau: Lag grid, shape (N_e,)
        K: Kernel per DOF, shape (6, N_e)
        lengths: Per-DOF kernel length, shape (6,)
    """
    dt:      float
    t_lead:  float
    heading: float
    tau:     NDArray[np.floating]
    K:       NDArray[np.floating]
    lengths: NDArray[np.integer]

    @property
    def n_lags(self) -> int:
        return self.tau.size


@dataclass(frozen=True, eq=False)
class ConsistencyReport:
    """Relative disagreement between damping- and added-mass-derived kernels."""
    err_K:  NDArray[np.floating]
    err_L:  NDArray[np.floating]
    tol:    float
    failed: tuple[tuple[int, int], ...]

    @property
    def passed(self) -> bool:
        return len(self.failed) == 0

    @property
    def max_error(self) -> float:
        return float(max(self.err_K.max(), self.err_L.max()))


@dataclass(frozen=True, eq=False)
class HydroKernels:
    """
    Everything the convolution evaluator needs for one timestep setting.

    Immutable; may be shared between bodies using the same coefficients.
    """
    radiation:   RadiationKernels
    exciting:    ExcitingKernels
    A_inf:       NDArray[np.floating]
    consistency: ConsistencyReport | None = None

    @property
    def dt(self) -> float:
        return self.radiation.dt

    @property
    def t_lead(self) -> float:
        return self.exciting.t_lead

    @property
    def capacity(self) -> int:
        """History length needed to cover the longest kernel."""
        n = max(int(self.radiation.lengths.max()), int(self.exciting.lengths.max()))
        return max(n, 1)


#=============================================================================
#                               Helper Functions
def _readonly(arr: NDArray) -> NDArray:
    arr = np.ascontiguousarray(arr)
    arr.setflags(write=False)
    return arr


def lag_count(span: float, dt: float) -> int:
    """Number of lag samples covering [0, span] at spacing dt."""
    return int(np.floor(span / dt + 1e-9)) + 1


def _validate_timing(dt: float, tau_max: float) -> None:
    if not np.isfinite(dt) or dt <= 0:
        raise ValueError(f"Timestep must be positive, got {dt}")
    if not np.isfinite(tau_max) or tau_max < dt:
        raise ValueError(f"tau_max ({tau_max}) must be at least one timestep ({dt})")


def _grid_from_zero(omega: NDArray[np.floating], name: str) -> NDArray[np.floating]:
    """Return a copy of the grid with its first sample moved to w = 0."""
    omega = np.array(omega, dtype=float)
    if omega[0] > 0:
        warnings.warn(
            f"{name} starts at {omega[0]:.4g} rad/s, not 0; "
            f"the first sample is used as the w = 0 value",
            RuntimeWarning,
            stacklevel=3,
        )
        omega[0] = 0.0
    return omega


def _check_kernel(arr: NDArray, name: str) -> None:
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} kernel contains non-finite values")


def truncated_length(kernel: NDArray[np.floating], trunc_tol: float) -> int:
    """
    Number of leading samples to keep from a 1-D kernel.

    Trailing samples with |kernel| <= trunc_tol * max|kernel| are dropped.
    trunc_tol = 0 keeps every sample.
    """
    n = kernel.size
    if trunc_tol <= 0:
        return n
    mag = np.abs(kernel)
    above = np.nonzero(mag > trunc_tol * mag.max())[0]
    if above.size == 0:
        return 0
    return int(above[-1]) + 1


#=============================================================================
#                               Radiation Kernels
def radiation_from_damping(
    omega: NDArray[np.floating],
    B: NDArray[np.floating],
    B_inf: NDArray[np.floating],
    tau: NDArray[np.floating],
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Cosine and sine transforms of the damping curve.

    Args:
        omega: Frequency grid starting at 0, shape (n_w,)
        B: Damping table, shape (n_w, 6, 6)
        B_inf: Infinite-frequency damping, shape (6, 6)
        tau: Lag grid, shape (N,)

    Returns:
        (K, L), each of shape (6, 6, N)
    """
    wt = np.outer(tau, omega)
    cos_wt = np.cos(wt)
    # sin(w t)/w including its w -> 0 limit t
    sin_over_w = tau[:, None] * np.sinc(wt / np.pi)

    dB = B - B_inf
    K = np.zeros((6, 6, tau.size))
    L = np.zeros((6, 6, tau.size))
    for i in range(6):
        for j in range(6):
            if not np.any(dB[:, i, j]):
                continue
            K[i, j] = trapezoid(cos_wt * dB[:, i, j], omega, axis=1)
            L[i, j] = trapezoid(sin_over_w * dB[:, i, j], omega, axis=1)
    return (2 / np.pi) * K, (2 / np.pi) * L


def radiation_from_added_mass(
    omega: NDArray[np.floating],
    A: NDArray[np.floating],
    A_inf: NDArray[np.floating],
    tau: NDArray[np.floating],
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Radiation kernels recovered from the added-mass curve.

    Beyond the top frequency W the curve is continued with its asymptote
    A - A_inf ~ a / w^2, a = W^2 (A(W) - A_inf), whose contribution is
    closed-form in terms of the sine integral Si.

    Returns:
        (K_alt, L_alt), each of shape (6, 6, N)
    """
    W = omega[-1]
    wt = np.outer(tau, omega)
    cos_wt = np.cos(wt)
    sin_wt = np.sin(wt)

    si, _ = sici(W * tau)
    si_tail = np.pi / 2 - si
    K_tail = si_tail
    L_tail = np.cos(W * tau) / W - tau * si_tail

    dA = A - A_inf
    a = W ** 2 * dA[-1]
    K = np.zeros((6, 6, tau.size))
    L = np.zeros((6, 6, tau.size))
    for i in range(6):
        for j in range(6):
            if not np.any(dA[:, i, j]):
                continue
            K[i, j] = -(trapezoid(sin_wt * (omega * dA[:, i, j]), omega, axis=1) + a[i, j] * K_tail)
            L[i, j] = trapezoid(cos_wt * dA[:, i, j], omega, axis=1) + a[i, j] * L_tail
    return (2 / np.pi) * K, (2 / np.pi) * L


def radiation_kernels(
    store: CoefficientStore,
    dt: float,
    tau_max: float = 20.0,
    trunc_tol: float = 0.0,
) -> RadiationKernels:
    """
    Build all 36 radiation kernels for timestep dt.

    Args:
        store: Frequency-domain coefficients
        dt: Simulation timestep [s]
        tau_max: Memory length [s]
        trunc_tol: Relative tail truncation threshold for the per-pair lengths

    Returns:
        RadiationKernels

    Raises:
        ValueError: On invalid timing or non-finite kernels
    """
    _validate_timing(dt, tau_max)
    tau = np.arange(lag_count(tau_max, dt)) * dt
    omega = _grid_from_zero(store.omega, "Radiation frequency grid")

    K, L = radiation_from_damping(omega, store.B, store.B_inf, tau)
    K_alt, L_alt = radiation_from_added_mass(omega, store.A, store.A_inf, tau)
    for name, arr in (("K", K), ("K_alt", K_alt), ("L", L), ("L_alt", L_alt)):
        _check_kernel(arr, f"Radiation {name}")

    lengths = np.array(
        [[truncated_length(L[i, j], trunc_tol) for j in range(6)] for i in range(6)],
        dtype=np.int64,
    )

    return RadiationKernels(
        dt=float(dt),
        tau=_readonly(tau),
        K=_readonly(K),
        K_alt=_readonly(K_alt),
        L=_readonly(L),
        L_alt=_readonly(L_alt),
        lengths=_readonly(lengths),
    )


#=============================================================================
#                               Exciting Kernels
def exciting_kernels(
    store: CoefficientStore,
    dt: float,
    tau_max: float = 20.0,
    heading: float = 0.0,
    t_lead: float = 0.0,
    trunc_tol: float = 0.0,
) -> ExcitingKernels:
    """
    Build the wave-exciting kernels for one heading.

    K_e(t) = (1/pi) int_0^W Re[X(w) exp(i w t)] dw on t_k = k*dt - t_lead,
    which is the inverse Fourier transform of X with its conjugate-symmetric
    extension to negative frequencies.

    Args:
        store: Frequency-domain coefficients
        dt: Simulation timestep [s]
        tau_max: Memory length [s]
        heading: Wave heading [deg], nearest tabulated heading is used
        t_lead: Look-ahead [s] for non-causal exciting kernels
        trunc_tol: Relative tail truncation threshold

    Returns:
        ExcitingKernels
    """
    _validate_timing(dt, tau_max)
    if not np.isfinite(t_lead) or t_lead < 0:
        raise ValueError(f"t_lead must be non-negative, got {t_lead}")

    ib = store.heading_index(heading)
    X = store.X[ib]
    omega = _grid_from_zero(store.exc_omega, "Exciting frequency grid")

    tau = np.arange(lag_count(tau_max + t_lead, dt)) * dt - t_lead
    wt = np.outer(tau, omega)
    cos_wt = np.cos(wt)
    sin_wt = np.sin(wt)

    K = np.zeros((6, tau.size))
    for j in range(6):
        if not np.any(X[:, j]):
            continue
        K[j] = trapezoid(cos_wt * X[:, j].real - sin_wt * X[:, j].imag, omega, axis=1)
    K /= np.pi
    _check_kernel(K, "Exciting")

    lengths = np.array([truncated_length(K[j], trunc_tol) for j in range(6)], dtype=np.int64)

    return ExcitingKernels(
        dt=float(dt),
        t_lead=float(t_lead),
        heading=float(store.headings[ib]),
        tau=_readonly(tau),
        K=_readonly(K),
        lengths=_readonly(lengths),
    )


#=============================================================================
#                               Consistency Check
def check_consistency(
    kernels: RadiationKernels,
    tol: float = 0.05,
    floor: float = 1e-3,
    warn: bool = True,
) -> ConsistencyReport:
    """
    Compare damping- and added-mass-derived radiation kernels.

    For each pair the error is max|K - K_alt| / max(max|K|, floor * peak),
    where peak is the largest |K| over all pairs, and likewise for L.
    Failing pairs are reported with a single RuntimeWarning. Nothing is
    corrected.

    Args:
        kernels: Radiation kernels
        tol: Relative error tolerance
        floor: Scale floor relative to the global peak, for near-zero pairs
        warn: Issue the warning for failing pairs

    Returns:
        ConsistencyReport
    """
    def rel_err(a, b):
        peak = np.abs(a).max()
        scale = np.maximum(np.abs(a).max(axis=-1), floor * peak)
        diff = np.abs(a - b).max(axis=-1)
        with np.errstate(invalid="ignore", divide="ignore"):
            err = np.where(scale > 0, diff / np.where(scale > 0, scale, 1.0), 0.0)
        return err

    err_K = rel_err(kernels.K, kernels.K_alt)
    err_L = rel_err(kernels.L, kernels.L_alt)
    bad = np.argwhere((err_K > tol) | (err_L > tol))
    failed = tuple((int(i), int(j)) for i, j in bad)

    if failed and warn:
        pairs = ", ".join(f"({i},{j})" for i, j in failed)
        warnings.warn(
            f"Radiation kernels from damping and added mass disagree by more "
            f"than {tol:.1%} for DOF pairs {pairs}; check the coefficient data",
            RuntimeWarning,
            stacklevel=2,
        )

    return ConsistencyReport(
        err_K=_readonly(err_K),
        err_L=_readonly(err_L),
        tol=float(tol),
        failed=failed,
    )


#=============================================================================
#                               Builder
def build_kernels(
    store: CoefficientStore,
    dt: float,
    tau_max: float = 20.0,
    heading: float = 0.0,
    t_lead: float = 0.0,
    trunc_tol: float = 0.0,
    check: bool = True,
    consistency_tol: float = 0.05,
) -> HydroKernels:
    """
    Build radiation and exciting kernels for timestep dt.

    Identical inputs give bit-identical kernels.

    Args:
        store: Frequency-domain coefficients
        dt: Simulation timestep [s]
        tau_max: Memory length [s]
        heading: Incident wave heading [deg]
        t_lead: Exciting kernel look-ahead [s]
        trunc_tol: Relative tail truncation threshold
        check: Run the damping/added-mass consistency check
        consistency_tol: Tolerance of the consistency check

    Returns:
        HydroKernels
    """
    rad = radiation_kernels(store, dt, tau_max, trunc_tol)
    exc = exciting_kernels(store, dt, tau_max, heading, t_lead, trunc_tol)
    report = check_consistency(rad, consistency_tol) if check else None
    return HydroKernels(
        radiation=rad,
        exciting=exc,
        A_inf=store.A_inf,
        consistency=report,
    )


def save_kernels(kernels: HydroKernels, path: Path | str) -> None:
    """Export kernels to an .npz archive."""
    rad, exc = kernels.radiation, kernels.exciting
    np.savez(
        path,
        dt=rad.dt,
        tau=rad.tau,
        K=rad.K,
        K_alt=rad.K_alt,
        L=rad.L,
        L_alt=rad.L_alt,
        lengths=rad.lengths,
        exc_tau=exc.tau,
        exc_K=exc.K,
        exc_lengths=exc.lengths,
        heading=exc.heading,
        t_lead=exc.t_lead,
        A_inf=kernels.A_inf,
    )


__all__ = [
    "RadiationKernels",
    "ExcitingKernels",
    "ConsistencyReport",
    "HydroKernels",
    "lag_count",
    "truncated_length",
    "radiation_from_damping",
    "radiation_from_added_mass",
    "radiation_kernels",
    "exciting_kernels",
    "check_consistency",
    "build_kernels",
    "save_kernels",
]
