"""
Floating body right-hand side for Cummins' equation.

    (M_RB + A_inf) xddot = F_hs + F_buoy + F_grav + F_drag + F_damp + F_rad + F_exc

`FloatingBody(t, x)` returns [xdot, xddot] for the state x = [eta(6), xdot(6)]
and never changes its history. The driving integrator reports every accepted
step through `accept_step`, which records the solved acceleration and the
wave elevation for the convolution terms.
"""

#=============================================================================
#                               Import necessary modules
from __future__ import annotations

from dataclasses import replace
import warnings
import numpy as np
from numpy.typing import NDArray
from scipy.linalg import lu_factor, lu_solve

from .Coeffs import CoefficientStore
from .Forces import (
    BuoyancyForce, ConvolutionForce, GravityForce, HydrostaticForce,
    LinearDampingForce, ViscousDragForce, hydrostatic_stiffness,
)
from .IRF import HydroKernels, build_kernels
from .params import BodyConfig, Env, HydroConfig
from .Waves import IncidentWave, StillWater


#=============================================================================
#                               Helper Functions
def getH(r: NDArray[np.floating]) -> NDArray[np.floating]:
    """Anti-symmetric tensor of r, H @ v = v x r."""
    H = np.zeros((3, 3))
    H[0, 1] = r[2]
    H[1, 0] = -r[2]
    H[0, 2] = -r[1]
    H[2, 0] = r[1]
    H[1, 2] = r[0]
    H[2, 1] = -r[0]
    return H


def rigid_body_mass_matrix(
    mass: float,
    COG: NDArray[np.floating],
    Ig: NDArray[np.floating],
) -> NDArray[np.floating]:
    """
    6x6 rigid-body mass matrix about the reference point.

    Args:
        mass: Body mass [kg]
        COG: Centre of gravity relative to the reference point [m]
        Ig: 3x3 inertia tensor about the centre of gravity [kg m^2]

    Returns:
        Mass matrix | m I    m H     |
                    | m H^T  Ig + m H^T H |
    """
    H = getH(np.asarray(COG, dtype=float))
    M = np.zeros((6, 6))
    M[:3, :3] = mass * np.eye(3)
    M[:3, 3:] = mass * H
    M[3:, :3] = mass * H.T
    M[3:, 3:] = np.asarray(Ig, dtype=float) + mass * H.T @ H
    return M


#=============================================================================
#                               Floating Body
class FloatingBody:
    """
    Rigid floating body force model.

    Args:
        store: Frequency-domain coefficients (dimensional)
        body: Body properties
        env: Fluid constants
        wave: Incident wave model, still water if None
        hydro: Kernel settings
        dt: Simulation timestep. Kernels are built when given.
        kernels: Prebuilt kernels to share; takes precedence over dt
    """

    def __init__(
        self,
        store: CoefficientStore,
        body: BodyConfig | None = None,
        env: Env | None = None,
        wave: IncidentWave | None = None,
        hydro: HydroConfig | None = None,
        dt: float | None = None,
        kernels: HydroKernels | None = None,
    ):
        self.store = store
        self.config = replace(body) if body is not None else BodyConfig()
        self.env = env if env is not None else Env()
        self.wave = wave if wave is not None else StillWater()
        self.hydro = hydro if hydro is not None else HydroConfig()

        self.hydrostatic = HydrostaticForce()
        self.buoyancy = BuoyancyForce()
        self.gravity = GravityForce()
        self.drag = ViscousDragForce()
        self.damping = LinearDampingForce()
        self._refresh_static_forces()
        self.compute_hydrostatics()

        self.conv: ConvolutionForce | None = None
        self._M_RB = None
        self._lu = None
        self._t_last: float | None = None

        if kernels is not None:
            self.set_kernels(kernels)
        elif dt is not None:
            self.set_timestep(dt)

    #-------------------------------------------------------------------------
    #   Configuration
    def _refresh_static_forces(self) -> None:
        cfg, env = self.config, self.env
        self.buoyancy = BuoyancyForce(rho=env.rho, g=env.g, Vol=cfg.Vol, COB=cfg.COB.copy())
        self.gravity = GravityForce(mass=cfg.mass, g=env.g, COG=cfg.COG.copy())
        self.drag = ViscousDragForce(rho=env.rho, Cd=cfg.Cd.copy(), Area=cfg.Area.copy())
        self.damping = LinearDampingForce(b=cfg.b_lin.copy())

    def _invalidate_mass(self) -> None:
        self._M_RB = None
        self._lu = None

    def _update_config(self, **changes) -> None:
        # BodyConfig re-validates on construction
        self.config = replace(self.config, **changes)
        self._refresh_static_forces()

    def set_timestep(self, dt: float) -> None:
        """Set the timestep; rebuilds all kernels and clears history."""
        kernels = build_kernels(
            self.store,
            dt,
            tau_max=self.hydro.tau_max,
            heading=self.wave.heading,
            t_lead=self.hydro.t_lead,
            trunc_tol=self.hydro.trunc_tol,
            check=self.hydro.check_consistency,
            consistency_tol=self.hydro.consistency_tol,
        )
        self.set_kernels(kernels)

    def set_kernels(self, kernels: HydroKernels) -> None:
        """Use prebuilt kernels; history is resized and cleared."""
        if self.conv is None:
            self.conv = ConvolutionForce(kernels)
        else:
            self.conv.set_kernels(kernels)
        self._t_last = None
        self._invalidate_mass()

    def get_timestep(self) -> float:
        return self.conv.dt if self.conv is not None else 0.0

    def set_damping_coeffs(self, b) -> None:
        self._update_config(b_lin=b)

    def set_drag_coeffs(self, Cd) -> None:
        self._update_config(Cd=Cd)

    def set_areas(self, Area) -> None:
        self._update_config(Area=Area)

    def set_waterplane(self, S: float, S11: float, S22: float) -> None:
        self._update_config(S=S, S11=S11, S22=S22)

    def set_cob(self, x: float, y: float, z: float) -> None:
        self._update_config(COB=[x, y, z])

    def set_cog(self, x: float, y: float, z: float) -> None:
        self._update_config(COG=[x, y, z])
        self._invalidate_mass()

    def set_volume(self, Vol: float) -> None:
        self._update_config(Vol=Vol)

    def set_mass(self, mass: float) -> None:
        self._update_config(mass=mass)
        self._invalidate_mass()

    def set_inertia(self, Ig) -> None:
        self._update_config(Ig=Ig)
        self._invalidate_mass()

    def compute_hydrostatics(self) -> NDArray[np.floating]:
        """
        Rebuild the hydrostatic stiffness from the current configuration.

        Setters never do this on their own.
        """
        cfg, env = self.config, self.env
        c = hydrostatic_stiffness(
            env.rho, env.g, cfg.S, cfg.S11, cfg.S22,
            cfg.Vol, cfg.COB, cfg.mass, cfg.COG,
        )
        self.hydrostatic.update(c)
        return c

    @property
    def c(self) -> NDArray[np.floating]:
        return self.hydrostatic.c

    @property
    def M_RB(self) -> NDArray[np.floating]:
        if self._M_RB is None:
            cfg = self.config
            self._M_RB = rigid_body_mass_matrix(cfg.mass, cfg.COG, cfg.Ig)
        return self._M_RB

    @property
    def effective_mass(self) -> NDArray[np.floating]:
        return self.M_RB + self.store.A_inf

    def _mass_lu(self):
        if self._lu is None:
            M = self.effective_mass
            if np.linalg.matrix_rank(M) < 6:
                raise ValueError("Effective mass matrix M_RB + A_inf is singular")
            self._lu = lu_factor(M)
        return self._lu

    #-------------------------------------------------------------------------
    #   Forces
    def _require_kernels(self) -> ConvolutionForce:
        if self.conv is None:
            raise ValueError("Timestep not set; call set_timestep() before evaluating forces")
        return self.conv

    def gravity_force(self, x) -> NDArray[np.floating]:
        return self.gravity(0.0, x)

    def buoyancy_force(self, x) -> NDArray[np.floating]:
        return self.buoyancy(0.0, x)

    def hydrostatic_force(self, x) -> NDArray[np.floating]:
        return self.hydrostatic(0.0, x)

    def viscous_drag_force(self, xdot) -> NDArray[np.floating]:
        return self.drag(0.0, np.concatenate([np.zeros(6), np.asarray(xdot, dtype=float)]))

    def linear_damping_force(self, xdot) -> NDArray[np.floating]:
        return self.damping(0.0, np.concatenate([np.zeros(6), np.asarray(xdot, dtype=float)]))

    def radiation_force(self) -> NDArray[np.floating]:
        return self._require_kernels().radiation()

    def exciting_force(self) -> NDArray[np.floating]:
        return self._require_kernels().exciting()

    def total_force(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """Sum of all force contributions at state x."""
        conv = self._require_kernels()
        x = np.asarray(x, dtype=float)
        return (
            self.hydrostatic(t, x)
            + self.buoyancy(t, x)
            + self.gravity(t, x)
            + self.drag(t, x)
            + self.damping(t, x)
            + conv(t, x)
        )

    def acceleration(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """Solve (M_RB + A_inf) xddot = F for xddot."""
        return lu_solve(self._mass_lu(), self.total_force(t, x))

    def __call__(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        x = np.asarray(x, dtype=float)
        if x.shape != (12,):
            raise ValueError(f"State must have 12 components, got {x.shape}")
        return np.concatenate([x[6:], self.acceleration(t, x)])

    #-------------------------------------------------------------------------
    #   Accepted-step bookkeeping
    def accept_step(self, t: float, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """
        Record an accepted integrator step.

        Solves the acceleration at (t, x) with the current history, then
        pushes it together with the wave elevation at t + t_lead.

        Returns:
            The recorded acceleration
        """
        conv = self._require_kernels()
        if self._t_last is not None:
            gap = t - self._t_last
            if abs(gap - conv.dt) > 1e-6 * max(conv.dt, abs(t)):
                warnings.warn(
                    f"Accepted step at t={t:.6g} is {gap:.6g} s after the previous "
                    f"one, expected dt={conv.dt:.6g} s",
                    RuntimeWarning,
                    stacklevel=2,
                )
        accel = self.acceleration(t, x)
        conv.push(accel, self.wave.eta(t + conv.kernels.t_lead))
        self._t_last = float(t)
        return accel

    def reset(self, t0: float, x0: NDArray[np.floating]) -> NDArray[np.floating]:
        """Clear history and record the initial state as the first step."""
        conv = self._require_kernels()
        conv.reset()
        self._t_last = None
        return self.accept_step(t0, x0)

    #-------------------------------------------------------------------------
    #   Frequency domain
    def complex_amplitude(self, omega: float, mode: int | None = None):
        """
        Linear response amplitude per unit wave amplitude.

        Z = -w^2 (M_RB + A(w)) + i w (B(w) + diag(b)) + c, response = Z^-1 X.

        Args:
            omega: Wave frequency [rad/s]
            mode: DOF index, or None for all six

        Returns:
            Complex 6-vector, or a complex scalar when mode is given

        Raises:
            ValueError: If omega is not positive
        """
        if not omega > 0:
            raise ValueError("omega must be positive")
        Z = (
            -omega ** 2 * (self.M_RB + self.store.added_mass(omega))
            + 1j * omega * (self.store.radiation_damping(omega) + np.diag(self.config.b_lin))
            + self.c
        )
        X = self.store.exciting_force_components(omega, heading=self.wave.heading)
        xi = np.linalg.solve(Z, X)
        if mode is None:
            return xi
        return complex(xi[mode])

    def __repr__(self) -> str:
        dt = self.get_timestep()
        return f"FloatingBody(name={self.config.name!r}, dt={dt}, mass={self.config.mass})"


__all__ = ["FloatingBody", "getH", "rigid_body_mass_matrix"]
