"""Time integration solvers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np
from numpy.typing import NDArray
from scipy.integrate import solve_ivp
from scipy.optimize import root
from tqdm import tqdm


class SteppedSystem(Protocol):
    """Right-hand side that must be told about accepted steps."""

    def __call__(self, t: float, x: NDArray) -> NDArray: ...

    def accept_step(self, t: float, x: NDArray) -> NDArray: ...

    def reset(self, t0: float, x0: NDArray) -> NDArray: ...


def time_grid(t_start: float, t_end: float, dt: float) -> NDArray[np.floating]:
    """Uniform output grid t_start + n*dt up to and including t_end."""
    if dt <= 0:
        raise ValueError("dt must be positive")
    n_steps = int(np.floor((t_end - t_start) / dt + 1e-9))
    return t_start + dt * np.arange(n_steps + 1)


def rk4_step(
    f: Callable[[float, NDArray], NDArray],
    t: float,
    x: NDArray[np.floating],
    dt: float,
) -> NDArray[np.floating]:
    """One classical fourth-order Runge-Kutta step."""
    k1 = f(t, x)
    k2 = f(t + dt / 2, x + dt / 2 * k1)
    k3 = f(t + dt / 2, x + dt / 2 * k2)
    k4 = f(t + dt, x + dt * k3)
    return x + dt / 6 * (k1 + 2 * k2 + 2 * k3 + k4)


@dataclass
class StepResult:
    """Integration output on the accepted-step grid."""
    t:       NDArray[np.floating]
    x:       NDArray[np.floating]
    xddot:   NDArray[np.floating]
    success: bool = True
    message: str = ""


def solve_dynamics_rk4(
    system: SteppedSystem,
    x0: NDArray[np.floating],
    t_span: tuple[float, float],
    dt: float,
    show_progress: bool = False,
    desc: str = "Simulating",
) -> StepResult:
    """
    Fixed-step RK4 integration with accepted-step reporting.

    The four stage evaluations of each step are trial calls; only the state
    at the end of the step is passed to `system.accept_step`.

    Args:
        system: Right-hand side with accept_step/reset (e.g. FloatingBody)
        x0: Initial state
        t_span: (t_start, t_end)
        dt: Time step, must match the system's kernel timestep
        show_progress: Show a tqdm progress bar
        desc: Progress bar description

    Returns:
        StepResult on the uniform grid
    """
    t_eval = time_grid(t_span[0], t_span[1], dt)
    n_steps = len(t_eval)

    x_out = np.zeros((n_steps, len(x0)))
    a_out = np.zeros((n_steps, len(x0) // 2))
    x_out[0] = x0
    a_out[0] = system.reset(t_eval[0], np.asarray(x0, dtype=float))

    pbar = tqdm(total=n_steps - 1, desc=desc, unit="step", disable=not show_progress)
    try:
        for i in range(n_steps - 1):
            x_out[i + 1] = rk4_step(system, t_eval[i], x_out[i], dt)
            a_out[i + 1] = system.accept_step(t_eval[i + 1], x_out[i + 1])
            pbar.update(1)
    finally:
        pbar.close()

    return StepResult(t=t_eval, x=x_out, xddot=a_out)


def solve_dynamics_stepwise(
    system: SteppedSystem,
    x0: NDArray[np.floating],
    t_span: tuple[float, float],
    dt: float,
    method: str = "RK45",
    rtol: float = 1e-6,
    atol: float = 1e-9,
    show_progress: bool = False,
    desc: str = "Simulating",
) -> StepResult:
    """
    Step-by-step solve_ivp integration with accepted-step reporting.

    solve_ivp is restarted on every output interval [t_n, t_n + dt], so the
    convolution history advances exactly once per dt while the adaptive
    solver is free to take sub-steps inside the interval.

    Args:
        system: Right-hand side with accept_step/reset
        x0: Initial state
        t_span: (t_start, t_end)
        dt: Output and history step
        method: solve_ivp method
        rtol: Relative tolerance
        atol: Absolute tolerance
        show_progress: Show a tqdm progress bar
        desc: Progress bar description

    Returns:
        StepResult on the uniform grid. Integration stops at the first failed
        interval; remaining rows are left as NaN.
    """
    t_eval = time_grid(t_span[0], t_span[1], dt)
    n_steps = len(t_eval)

    x_out = np.full((n_steps, len(x0)), np.nan)
    a_out = np.full((n_steps, len(x0) // 2), np.nan)
    x_out[0] = x0
    a_out[0] = system.reset(t_eval[0], np.asarray(x0, dtype=float))

    success, message = True, ""
    pbar = tqdm(total=n_steps - 1, desc=desc, unit="step", disable=not show_progress)
    try:
        for i in range(n_steps - 1):
            result = solve_ivp(
                system,
                [t_eval[i], t_eval[i + 1]],
                x_out[i],
                method=method,
                t_eval=[t_eval[i + 1]],
                rtol=rtol,
                atol=atol,
            )
            if not result.success:
                success = False
                message = f"Integration failed at t={t_eval[i]:.2f}: {result.message}"
                print(f"\nWarning: {message}")
                break

            x_out[i + 1] = result.y[:, -1]
            a_out[i + 1] = system.accept_step(t_eval[i + 1], x_out[i + 1])
            pbar.update(1)
    finally:
        pbar.close()

    return StepResult(t=t_eval, x=x_out, xddot=a_out, success=success, message=message)


def solve_dynamics(
    system: SteppedSystem,
    x0: NDArray[np.floating],
    t_span: tuple[float, float],
    dt: float,
    solver: str = "RK4",
    rtol: float = 1e-6,
    atol: float = 1e-9,
    show_progress: bool = False,
) -> StepResult:
    """Dispatch to the fixed-step RK4 driver or a stepwise solve_ivp method."""
    if solver.upper() == "RK4":
        return solve_dynamics_rk4(system, x0, t_span, dt, show_progress=show_progress)
    return solve_dynamics_stepwise(
        system, x0, t_span, dt, method=solver, rtol=rtol, atol=atol,
        show_progress=show_progress,
    )


def solve_static(
    force_func: Callable[[NDArray], NDArray],
    x0: NDArray[np.floating],
    tol: float = 1e-6,
    max_iter: int = 1000,
    method: str = "hybr",
    verbose: bool = True,
) -> NDArray[np.floating]:
    """
    Solve for static equilibrium.

    Finds x such that force_func(x) = 0 using scipy.optimize.root.

    Args:
        force_func: Function F(x) returning the residual force vector
        x0: Initial guess
        tol: Convergence tolerance
        max_iter: Maximum iterations
        method: Root finder method - 'hybr' (Powell hybrid), 'lm'
                (Levenberg-Marquardt), 'broyden1' or 'krylov'
        verbose: Print convergence info

    Returns:
        Equilibrium state
    """
    options = {"maxfev": max_iter} if method == "hybr" else {"maxiter": max_iter}
    result = root(force_func, x0, method=method, tol=tol, options=options)
    x_eq = result.x
    residual = np.linalg.norm(result.fun)

    if verbose and not result.success:
        print(f"  Root finder message: {result.message}")
    if verbose and residual > tol:
        print(f"Warning: Static solution may not have converged. Residual: {residual:.6e}")

    return x_eq


__all__ = [
    "SteppedSystem",
    "StepResult",
    "time_grid",
    "rk4_step",
    "solve_dynamics_rk4",
    "solve_dynamics_stepwise",
    "solve_dynamics",
    "solve_static",
]
