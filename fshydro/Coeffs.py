"""
Frequency-domain hydrodynamic coefficient tables.

A CoefficientStore holds the already-parsed output of a panel-method solver:
added mass A(w) and radiation damping B(w) on a radiation frequency grid,
and the complex wave-exciting force X(w, beta) on an exciting frequency grid
for one or more headings. Tables are copied on construction and marked
read-only, so a store can be shared by several bodies.
"""

#=============================================================================
#                               Import necessary modules
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
import json
import warnings
import numpy as np
from numpy.typing import NDArray
from scipy.interpolate import interp1d


#=============================================================================
#                               Helper Functions
def _readonly(arr: NDArray, dtype=float) -> NDArray:
    out = np.array(arr, dtype=dtype, copy=True)
    out.setflags(write=False)
    return out


def _check_grid(grid: NDArray[np.floating], name: str) -> None:
    if grid.ndim != 1 or grid.size < 2:
        raise ValueError(f"{name} must be a 1-D grid with at least 2 samples")
    if not np.all(np.isfinite(grid)):
        raise ValueError(f"{name} must be finite")
    if np.any(np.diff(grid) <= 0):
        raise ValueError(f"{name} must be strictly increasing")


def _check_finite(arr: NDArray, name: str) -> None:
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} contains non-finite values")


def infinite_frequency_limit(
    omega: NDArray[np.floating],
    table: NDArray[np.floating],
    tail_fraction: float = 0.3,
) -> NDArray[np.floating]:
    """
    Estimate the w -> infinity limit of a (n_w, 6, 6) table.

    Each entry is fitted with table(w) ~ limit + a / w^2 by least squares
    over the top `tail_fraction` of the grid. At least the last two positive
    frequencies are used.

    Args:
        omega: Frequency grid [rad/s], shape (n_w,)
        table: Coefficient table, frequency along axis 0
        tail_fraction: Fraction of the highest frequencies used in the fit

    Returns:
        6x6 limit matrix
    """
    if not 0 < tail_fraction <= 1:
        raise ValueError("tail_fraction must be in (0, 1]")
    omega = np.asarray(omega, dtype=float)
    n = omega.size
    i0 = min(int((1.0 - tail_fraction) * n), n - 2)
    w = omega[i0:]
    y = table[i0:]
    pos = w > 0
    w, y = w[pos], y[pos]
    if w.size < 2:
        raise ValueError("Tail fit needs at least two positive frequencies")

    design = np.column_stack([np.ones_like(w), w ** -2])
    coef, *_ = np.linalg.lstsq(design, y.reshape(w.size, -1), rcond=None)
    return coef[0].reshape(table.shape[1:])


def dof_length_exponent(i: int, j: int) -> int:
    """WAMIT length exponent for added mass/damping of pair (i, j)."""
    return 3 + int(i >= 3) + int(j >= 3)


#=============================================================================
#                               Coefficient Store
@dataclass(frozen=True, eq=False)
class CoefficientStore:
    """
    Immutable frequency-domain coefficient tables for one rigid body.

    Attributes:
        omega: Radiation frequency grid [rad/s], shape (n_w,)
        A: Added mass, shape (n_w, 6, 6)
        B: Radiation damping, shape (n_w, 6, 6)
        exc_omega: Exciting-force frequency grid [rad/s], shape (n_e,)
        headings: Wave headings [deg], shape (n_b,)
        X: Complex exciting force per unit wave amplitude, shape (n_b, n_e, 6)
        A_inf: Infinite-frequency added mass (derived if not given)
        B_inf: Infinite-frequency damping (derived if not given)
        inf_tail_fraction: Top fraction of the grid fitted for derived limits
    """
    omega:     NDArray[np.floating]
    A:         NDArray[np.floating]
    B:         NDArray[np.floating]
    exc_omega: NDArray[np.floating] | None = None
    headings:  NDArray[np.floating] | None = None
    X:         NDArray[np.complexfloating] | None = None
    A_inf:     NDArray[np.floating] | None = None
    B_inf:     NDArray[np.floating] | None = None
    inf_tail_fraction: float = 0.3

    _A_interp: Any = field(init=False, repr=False, compare=False)
    _B_interp: Any = field(init=False, repr=False, compare=False)
    _X_interp: Any = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        omega = np.asarray(self.omega, dtype=float).flatten()
        _check_grid(omega, "omega")
        n_w = omega.size

        A = np.asarray(self.A, dtype=float)
        B = np.asarray(self.B, dtype=float)
        for name, table in (("A", A), ("B", B)):
            if table.shape != (n_w, 6, 6):
                raise ValueError(f"{name} must have shape ({n_w}, 6, 6), got {table.shape}")
            _check_finite(table, name)

        exc_omega = omega if self.exc_omega is None else np.asarray(self.exc_omega, dtype=float).flatten()
        _check_grid(exc_omega, "exc_omega")
        n_e = exc_omega.size

        headings = np.zeros(1) if self.headings is None else np.asarray(self.headings, dtype=float).flatten()
        if headings.size == 0 or not np.all(np.isfinite(headings)):
            raise ValueError("headings must be a non-empty finite array")
        if np.any(np.diff(headings) <= 0):
            raise ValueError("headings must be strictly increasing")
        n_b = headings.size

        if self.X is None:
            X = np.zeros((n_b, n_e, 6), dtype=complex)
        else:
            X = np.asarray(self.X, dtype=complex)
            # a single heading may be given without its leading axis
            if X.ndim == 2 and n_b == 1:
                X = X[np.newaxis]
        if X.shape != (n_b, n_e, 6):
            raise ValueError(f"X must have shape ({n_b}, {n_e}, 6), got {X.shape}")
        _check_finite(X, "X")

        if self.A_inf is None:
            A_inf = infinite_frequency_limit(omega, A, self.inf_tail_fraction)
        else:
            A_inf = np.asarray(self.A_inf, dtype=float)
        if self.B_inf is None:
            B_inf = infinite_frequency_limit(omega, B, self.inf_tail_fraction)
        else:
            B_inf = np.asarray(self.B_inf, dtype=float)
        for name, mat in (("A_inf", A_inf), ("B_inf", B_inf)):
            if mat.shape != (6, 6):
                raise ValueError(f"{name} must be 6x6, got {mat.shape}")
            _check_finite(mat, name)

        set_ = object.__setattr__
        set_(self, "omega", _readonly(omega))
        set_(self, "A", _readonly(A))
        set_(self, "B", _readonly(B))
        set_(self, "exc_omega", _readonly(exc_omega))
        set_(self, "headings", _readonly(headings))
        set_(self, "X", _readonly(X, complex))
        set_(self, "A_inf", _readonly(A_inf))
        set_(self, "B_inf", _readonly(B_inf))

        # Linear interpolants, held constant beyond the grid ends
        set_(self, "_A_interp", interp1d(
            omega, A, axis=0, bounds_error=False, fill_value=(A[0], A[-1]),
        ))
        set_(self, "_B_interp", interp1d(
            omega, B, axis=0, bounds_error=False, fill_value=(B[0], B[-1]),
        ))
        Xs = np.concatenate([X.real, X.imag], axis=-1)
        set_(self, "_X_interp", interp1d(
            exc_omega, Xs, axis=1, bounds_error=False, fill_value=(Xs[:, 0], Xs[:, -1]),
        ))

    #-------------------------------------------------------------------------
    @property
    def n_freq(self) -> int:
        return self.omega.size

    @property
    def omega_max(self) -> float:
        return float(self.omega[-1])

    def heading_index(self, heading: float) -> int:
        """Index of the tabulated heading nearest to `heading` [deg]."""
        if heading < self.headings[0] - 1e-9 or heading > self.headings[-1] + 1e-9:
            warnings.warn(
                f"Heading {heading} deg lies outside the tabulated range "
                f"[{self.headings[0]}, {self.headings[-1]}]; using the nearest one",
                RuntimeWarning,
                stacklevel=2,
            )
        return int(np.argmin(np.abs(self.headings - heading)))

    def added_mass(self, omega: float, i: int | None = None, j: int | None = None):
        """
        Added mass at frequency omega.

        Returns the full 6x6 matrix, or element (i, j) when both are given.
        """
        A = np.asarray(self._A_interp(omega))
        if i is None and j is None:
            return A
        return float(A[i, j])

    def radiation_damping(self, omega: float, i: int | None = None, j: int | None = None):
        """
        Radiation damping at frequency omega.

        Returns the full 6x6 matrix, or element (i, j) when both are given.
        """
        B = np.asarray(self._B_interp(omega))
        if i is None and j is None:
            return B
        return float(B[i, j])

    def exciting_force_components(
        self,
        omega: float,
        j: int | None = None,
        heading: float = 0.0,
    ):
        """
        Complex wave-exciting force per unit wave amplitude.

        Args:
            omega: Wave frequency [rad/s]
            j: DOF index, or None for all six
            heading: Wave heading [deg], nearest tabulated heading is used

        Returns:
            Complex 6-vector, or a complex scalar when j is given
        """
        ib = self.heading_index(heading)
        Xs = np.asarray(self._X_interp(omega))[ib]
        X = Xs[:6] + 1j * Xs[6:]
        if j is None:
            return X
        return complex(X[j])

    def exciting_table(self, heading: float = 0.0) -> NDArray[np.complexfloating]:
        """Exciting force table (n_e, 6) at the nearest tabulated heading."""
        return self.X[self.heading_index(heading)]

    #-------------------------------------------------------------------------
    def dimensionalize(self, rho: float, g: float, L: float = 1.0) -> "CoefficientStore":
        """
        Convert WAMIT non-dimensional tables to dimensional ones.

        A = A' rho L^k, B = B' rho L^k w, X = X' rho g L^m with k = 3, 4, 5
        for translation, mixed and rotation pairs and m = 2 (forces) or 3
        (moments).

        Returns:
            A new CoefficientStore
        """
        if not (rho > 0 and g > 0 and L > 0):
            raise ValueError("rho, g and L must be positive")

        k = np.array([[dof_length_exponent(i, j) for j in range(6)] for i in range(6)])
        scale_AB = rho * L ** k
        m = np.array([2, 2, 2, 3, 3, 3])
        scale_X = rho * g * L ** m

        return CoefficientStore(
            omega=self.omega,
            A=self.A * scale_AB,
            B=self.B * scale_AB * self.omega[:, None, None],
            exc_omega=self.exc_omega,
            headings=self.headings,
            X=self.X * scale_X,
            A_inf=self.A_inf * scale_AB,
            B_inf=self.B_inf * scale_AB * self.omega[-1],
            inf_tail_fraction=self.inf_tail_fraction,
        )

    #-------------------------------------------------------------------------
    @classmethod
    def from_dict(cls, data: dict, inf_tail_fraction: float | None = None) -> "CoefficientStore":
        """
        Create a store from a key/array mapping.

        Exciting force is read from 'X_re'/'X_im' or 'X_mod'/'X_phase'
        (phase in radians). Missing exciting data gives a zero table.
        """
        if "omega" not in data or "A" not in data or "B" not in data:
            raise ValueError("Coefficient data must provide 'omega', 'A' and 'B'")

        if "X_re" in data or "X_im" in data:
            X = np.asarray(data.get("X_re", 0.0), dtype=float) + 1j * np.asarray(data.get("X_im", 0.0), dtype=float)
        elif "X_mod" in data:
            X = np.asarray(data["X_mod"], dtype=float) * np.exp(1j * np.asarray(data.get("X_phase", 0.0), dtype=float))
        else:
            X = None

        def opt(key):
            val = data.get(key)
            return None if val is None else np.asarray(val, dtype=float)

        tail = data.get("inf_tail_fraction", 0.3) if inf_tail_fraction is None else inf_tail_fraction
        return cls(
            omega=data["omega"],
            A=data["A"],
            B=data["B"],
            exc_omega=opt("exc_omega"),
            headings=opt("headings"),
            X=X,
            A_inf=opt("A_inf"),
            B_inf=opt("B_inf"),
            inf_tail_fraction=float(tail),
        )

    def to_dict(self) -> dict[str, NDArray]:
        """Plain key/array mapping accepted by `from_dict`."""
        return {
            "omega": np.array(self.omega),
            "A": np.array(self.A),
            "B": np.array(self.B),
            "A_inf": np.array(self.A_inf),
            "B_inf": np.array(self.B_inf),
            "exc_omega": np.array(self.exc_omega),
            "headings": np.array(self.headings),
            "X_re": np.array(self.X.real),
            "X_im": np.array(self.X.imag),
        }


#=============================================================================
#                               Synthetic Coefficients
def resonant_coefficients(
    omega: NDArray[np.floating],
    strength,
    decay,
    freq,
    A_inf,
    X: NDArray[np.complexfloating] | None = None,
    exc_omega: NDArray[np.floating] | None = None,
) -> CoefficientStore:
    """
    Diagonal coefficients of a body with second-order radiation memory.

    Each DOF i has the acceleration-memory kernel
        L_ii(t) = (c_i / b_i) exp(-a_i t) sin(b_i t),
    whose transform G(w) = c_i / ((a_i + i w)^2 + b_i^2) gives
        A_ii(w) - A_inf,ii = Re G,   B_ii(w) = -w Im G.
    The tables are causal and consistent, so they make a useful reference
    set for checking the kernel builder and for example workspaces.

    Args:
        omega: Frequency grid [rad/s]
        strength: c_i per DOF (scalar or 6-vector); 0 disables the DOF
        decay: a_i per DOF, > 0
        freq: b_i per DOF, > 0
        A_inf: Infinite-frequency added mass per DOF
        X: Optional exciting force (n_e, 6) for heading 0
        exc_omega: Exciting frequency grid, defaults to omega

    Returns:
        CoefficientStore with B_inf = 0
    """
    omega = np.asarray(omega, dtype=float)
    c = np.broadcast_to(np.asarray(strength, dtype=float), (6,))
    a = np.broadcast_to(np.asarray(decay, dtype=float), (6,))
    b = np.broadcast_to(np.asarray(freq, dtype=float), (6,))
    if np.any(a <= 0) or np.any(b <= 0):
        raise ValueError("decay and freq must be positive")

    A = np.zeros((omega.size, 6, 6))
    B = np.zeros((omega.size, 6, 6))
    for i in range(6):
        G = c[i] / ((a[i] + 1j * omega) ** 2 + b[i] ** 2)
        A[:, i, i] = G.real
        B[:, i, i] = -omega * G.imag

    A_inf = np.diag(np.broadcast_to(np.asarray(A_inf, dtype=float), (6,)))
    A += A_inf
    return CoefficientStore(
        omega=omega,
        A=A,
        B=B,
        exc_omega=exc_omega,
        X=X,
        A_inf=A_inf,
        B_inf=np.zeros((6, 6)),
    )


#=============================================================================
#                               Loaders
def load_coefficients(
    path: Path | str,
    inf_tail_fraction: float | None = None,
) -> CoefficientStore:
    """
    Load coefficient tables from a .json or .npz file.

    Args:
        path: File path
        inf_tail_fraction: Override for the derived-limit fitting fraction

    Returns:
        CoefficientStore
    """
    path = Path(path)
    if path.suffix == ".npz":
        with np.load(path) as npz:
            data = {key: npz[key] for key in npz.files}
    elif path.suffix == ".json":
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    else:
        raise ValueError(f"Unsupported coefficient file type: {path.suffix}")
    return CoefficientStore.from_dict(data, inf_tail_fraction=inf_tail_fraction)


def save_coefficients(store: CoefficientStore, path: Path | str) -> None:
    """Write a store to .npz or .json."""
    path = Path(path)
    data = store.to_dict()
    if path.suffix == ".npz":
        np.savez(path, **data)
    elif path.suffix == ".json":
        with open(path, "w", encoding="utf-8") as f:
            json.dump({k: v.tolist() for k, v in data.items()}, f, indent=2)
    else:
        raise ValueError(f"Unsupported coefficient file type: {path.suffix}")


__all__ = [
    "CoefficientStore",
    "infinite_frequency_limit",
    "dof_length_exponent",
    "resonant_coefficients",
    "load_coefficients",
    "save_coefficients",
]
