import numpy as np
import pytest

from fshydro.Body import FloatingBody
from fshydro.integrator import (
    rk4_step,
    solve_dynamics,
    solve_dynamics_rk4,
    solve_static,
    time_grid,
)
from fshydro.params import BodyConfig, HydroConfig


DT = 0.05


def test_time_grid_includes_end():
    t = time_grid(0.0, 1.0, 0.1)
    assert t.size == 11
    assert np.isclose(t[-1], 1.0)
    with pytest.raises(ValueError):
        time_grid(0.0, 1.0, 0.0)


def test_rk4_step_on_exponential_decay():
    x = rk4_step(lambda t, x: -x, 0.0, np.array([1.0]), 0.1)
    assert np.isclose(x[0], np.exp(-0.1), rtol=1e-6)


def test_rk4_heave_oscillation(zero_store, heave_body, env):
    body_cfg, k = heave_body
    body = FloatingBody(zero_store, body_cfg, env, hydro=HydroConfig(tau_max=1.0), dt=DT)
    x0 = np.zeros(12)
    x0[2] = 0.1

    res = solve_dynamics_rk4(body, x0, (0.0, 5.0), DT)
    wn = np.sqrt(k / body_cfg.mass)
    assert res.success
    assert res.x.shape == (101, 12)
    np.testing.assert_allclose(res.x[:, 2], 0.1 * np.cos(wn * res.t), atol=5e-4)
    np.testing.assert_allclose(res.xddot[:, 2], -wn ** 2 * res.x[:, 2], rtol=1e-8, atol=1e-10)
    # one accepted step per grid point
    assert body.conv.steps == res.t.size


def test_stepwise_solver_matches_rk4(zero_store, heave_body, env):
    body_cfg, k = heave_body
    body = FloatingBody(zero_store, body_cfg, env, hydro=HydroConfig(tau_max=1.0), dt=DT)
    x0 = np.zeros(12)
    x0[2] = 0.1

    res = solve_dynamics(body, x0, (0.0, 2.0), DT, solver="RK45", rtol=1e-9, atol=1e-12)
    wn = np.sqrt(k / body_cfg.mass)
    assert res.success
    assert body.conv.steps == res.t.size
    np.testing.assert_allclose(res.x[:, 2], 0.1 * np.cos(wn * res.t), atol=1e-6)


def test_radiation_memory_damps_free_decay(store, env):
    # light body whose heave period sits on the damping peak
    body_cfg = BodyConfig(mass=1.0, Ig=np.eye(3), Vol=1.0 / env.rho, S=6.0 / (env.rho * env.g))
    hydro = HydroConfig(tau_max=10.0)
    x0 = np.zeros(12)
    x0[2] = 0.1

    body = FloatingBody(store, body_cfg, env, hydro=hydro, dt=DT)
    res = solve_dynamics(body, x0, (0.0, 20.0), DT)
    assert np.all(np.isfinite(res.x))

    late = np.abs(res.x[res.t > 15.0, 2]).max()
    assert late < 0.02


def test_solve_static_finds_linear_equilibrium():
    c = np.diag([2.0, 4.0, 8.0])
    F0 = np.array([2.0, -4.0, 4.0])
    x_eq = solve_static(lambda x: F0 - c @ x, np.zeros(3), verbose=False)
    np.testing.assert_allclose(x_eq, [1.0, -1.0, 0.5], atol=1e-8)

    x_lm = solve_static(lambda x: F0 - c @ x, np.zeros(3), method="lm", verbose=False)
    np.testing.assert_allclose(x_lm, [1.0, -1.0, 0.5], atol=1e-8)
