import numpy as np
import pytest

from fshydro.Body import FloatingBody, getH, rigid_body_mass_matrix
from fshydro.Coeffs import resonant_coefficients
from fshydro.IRF import build_kernels
from fshydro.params import BodyConfig, HydroConfig
from fshydro.Waves import RegularWave


DT = 0.05


def _heave_state(z):
    x = np.zeros(12)
    x[2] = z
    return x


def test_getH_matches_cross_product():
    r = np.array([1.0, -2.0, 0.5])
    v = np.array([0.3, 0.7, -1.1])
    np.testing.assert_allclose(getH(r) @ v, np.cross(v, r))
    np.testing.assert_allclose(getH(r), -getH(r).T)


def test_rigid_body_mass_matrix_layout():
    m, zg = 200.0, -1.5
    Ig = np.diag([10.0, 20.0, 30.0])
    M = rigid_body_mass_matrix(m, [0.0, 0.0, zg], Ig)
    np.testing.assert_allclose(M, M.T)
    np.testing.assert_allclose(M[:3, :3], m * np.eye(3))
    assert np.isclose(M[0, 4], m * zg)
    assert np.isclose(M[1, 3], -m * zg)
    assert np.isclose(M[3, 3], 10.0 + m * zg ** 2)
    assert np.isclose(M[5, 5], 30.0)


def test_heave_acceleration_from_stiffness(zero_store, heave_body, env):
    body_cfg, k = heave_body
    body = FloatingBody(zero_store, body_cfg, env, dt=DT)
    dx = body(0.0, _heave_state(0.1))
    expected = np.zeros(6)
    expected[2] = -k * 0.1 / body_cfg.mass
    np.testing.assert_allclose(dx[:6], np.zeros(6))
    np.testing.assert_allclose(dx[6:], expected, atol=1e-10)


def test_evaluation_does_not_change_history(store, heave_body, env):
    body_cfg, _ = heave_body
    body = FloatingBody(store, body_cfg, env, dt=DT)
    x0 = _heave_state(0.1)
    body.reset(0.0, x0)
    x1 = _heave_state(0.05)
    x1[8] = -0.3
    first = body(DT, x1)
    for _ in range(5):
        body(DT / 2, _heave_state(1.0))
    np.testing.assert_array_equal(body(DT, x1), first)
    assert body.conv.steps == 1


def test_accept_step_records_and_checks_spacing(store, heave_body, env):
    body_cfg, _ = heave_body
    body = FloatingBody(store, body_cfg, env, dt=DT)
    a0 = body.reset(0.0, _heave_state(0.1))
    np.testing.assert_allclose(body.conv.accel_history.latest(), a0)

    body.accept_step(DT, _heave_state(0.09))
    assert body.conv.steps == 2
    # memory now contributes
    assert body.radiation_force()[2] != 0.0

    with pytest.warns(RuntimeWarning, match="expected dt"):
        body.accept_step(DT + 3 * DT, _heave_state(0.08))
    assert body.conv.steps == 3


def test_accept_step_records_lead_elevation(zero_store, heave_body, env):
    body_cfg, _ = heave_body
    wave = RegularWave(amplitude=0.5, omega=1.0)
    body = FloatingBody(zero_store, body_cfg, env, wave=wave,
                        hydro=HydroConfig(tau_max=1.0, t_lead=0.5), dt=DT)
    body.reset(0.0, np.zeros(12))
    assert np.isclose(body.conv.eta_history.latest()[0], 0.5 * np.cos(0.5))


def test_set_timestep_rebuilds_and_clears(store, heave_body, env):
    body_cfg, _ = heave_body
    body = FloatingBody(store, body_cfg, env, hydro=HydroConfig(tau_max=2.0), dt=DT)
    body.reset(0.0, _heave_state(0.1))
    assert body.get_timestep() == DT

    body.set_timestep(0.1)
    assert body.get_timestep() == 0.1
    assert body.conv.steps == 0
    assert body.conv.accel_history.capacity == body.conv.kernels.capacity
    np.testing.assert_array_equal(body.radiation_force(), np.zeros(6))


def test_forces_require_timestep(store, heave_body, env):
    body = FloatingBody(store, heave_body[0], env)
    assert body.get_timestep() == 0.0
    with pytest.raises(ValueError, match="Timestep"):
        body(0.0, np.zeros(12))
    with pytest.raises(ValueError):
        FloatingBody(store, heave_body[0], env, dt=DT)(0.0, np.zeros(6))


def test_hydrostatics_recomputed_only_on_request(zero_store, heave_body, env):
    body_cfg, k = heave_body
    body = FloatingBody(zero_store, body_cfg, env, dt=DT)
    assert np.isclose(body.c[2, 2], k)

    body.set_waterplane(2 * body_cfg.S, 0.0, 0.0)
    assert np.isclose(body.c[2, 2], k)
    body.compute_hydrostatics()
    assert np.isclose(body.c[2, 2], 2 * k)


def test_setters_update_force_terms(zero_store, heave_body, env):
    body_cfg, _ = heave_body
    body = FloatingBody(zero_store, body_cfg, env, dt=DT)
    body.set_damping_coeffs(np.full(6, 10.0))
    body.set_drag_coeffs(np.ones(6))
    body.set_areas(np.full(6, 2.0))
    xdot = np.zeros(6)
    xdot[2] = 1.0
    assert np.isclose(body.linear_damping_force(xdot)[2], -10.0)
    assert np.isclose(body.viscous_drag_force(xdot)[2], -env.rho)

    body.set_mass(2 * body_cfg.mass)
    assert np.isclose(body.M_RB[2, 2], 2 * body_cfg.mass)
    assert np.isclose(body.gravity_force(np.zeros(12))[2], -2 * body_cfg.mass * env.g)

    body.set_volume(3.0)
    assert np.isclose(body.buoyancy_force(np.zeros(12))[2], env.rho * env.g * 3.0)

    body.set_cog(0.0, 0.0, -1.0)
    assert np.isclose(body.M_RB[0, 4], -2 * body_cfg.mass)

    with pytest.raises(ValueError):
        body.set_mass(-1.0)


def test_singular_effective_mass_raises(zero_store):
    body = FloatingBody(zero_store, BodyConfig(mass=0.0), dt=DT)
    with pytest.raises(ValueError, match="singular"):
        body(0.0, np.zeros(12))


def test_shared_kernels_keep_separate_histories(store, heave_body, env):
    body_cfg, _ = heave_body
    kernels = build_kernels(store, DT, tau_max=2.0)
    a = FloatingBody(store, body_cfg, env, kernels=kernels)
    b = FloatingBody(store, body_cfg, env, kernels=kernels)
    assert a.conv.kernels is b.conv.kernels

    a.reset(0.0, _heave_state(0.2))
    b.reset(0.0, np.zeros(12))
    assert a.conv.steps == 1 and b.conv.steps == 1
    assert np.any(a.conv.accel_history.latest() != 0.0)
    np.testing.assert_array_equal(b.conv.accel_history.latest(), np.zeros(6))


def test_complex_amplitude_of_heave_oscillator(heave_body, env):
    body_cfg, k = heave_body
    w = np.linspace(0.0, 5.0, 51)
    X = np.zeros((w.size, 6), dtype=complex)
    X[:, 2] = k
    store = resonant_coefficients(w, 0.0, 1.0, 1.0, 0.0, X=X)
    body = FloatingBody(store, body_cfg, env)

    omega = 2.0
    expected = k / (k - omega ** 2 * body_cfg.mass)
    assert np.isclose(body.complex_amplitude(omega, mode=2), expected)
    xi = body.complex_amplitude(omega)
    assert xi.shape == (6,)
    assert np.allclose(xi[[0, 1, 3, 4, 5]], 0.0)


@pytest.mark.parametrize("omega", [0.0, -1.0])
def test_complex_amplitude_needs_positive_frequency(zero_store, heave_body, env, omega):
    body_cfg, _ = heave_body
    body = FloatingBody(zero_store, body_cfg, env)
    with pytest.raises(ValueError, match="omega"):
        body.complex_amplitude(omega)
