import numpy as np
import pytest

from fshydro.Coeffs import CoefficientStore, resonant_coefficients
from fshydro.IRF import (
    build_kernels,
    check_consistency,
    exciting_kernels,
    lag_count,
    radiation_kernels,
    truncated_length,
)


DT = 0.05


def test_lag_count_covers_span():
    assert lag_count(10.0, 0.05) == 201
    assert lag_count(20.0, 0.1) == 201
    assert lag_count(0.05, 0.05) == 2


def test_radiation_kernels_match_closed_form(store, analytic):
    rad = radiation_kernels(store, DT, tau_max=10.0)
    tau = rad.tau
    assert rad.K.shape == (6, 6, 201)
    assert tau[0] == 0.0 and np.isclose(tau[-1], 10.0)

    for i, c in enumerate(analytic["strength"]):
        np.testing.assert_allclose(rad.L[i, i], analytic["L"](tau, c), atol=5e-3 * c)
        np.testing.assert_allclose(rad.K[i, i], analytic["K"](tau, c), atol=2e-2 * c)
        np.testing.assert_allclose(rad.L_alt[i, i], analytic["L"](tau, c), atol=5e-3 * c)
        np.testing.assert_allclose(rad.K_alt[i, i], analytic["K"](tau, c), atol=2e-2 * c)

    # uncoupled pairs stay exactly zero
    off = ~np.eye(6, dtype=bool)
    assert np.all(rad.K[off] == 0.0)
    assert np.all(rad.L[off] == 0.0)


def test_acceleration_kernel_is_integral_of_velocity_kernel(store):
    rad = radiation_kernels(store, DT, tau_max=10.0)
    # dL/dtau = K, checked by central differences on the heave pair
    dL = np.gradient(rad.L[2, 2], DT)
    np.testing.assert_allclose(dL[1:-1], rad.K[2, 2, 1:-1], atol=2e-2)


def test_damping_and_added_mass_kernels_agree(store):
    rad = radiation_kernels(store, DT, tau_max=10.0)
    report = check_consistency(rad, tol=0.05)
    assert report.passed
    assert report.failed == ()
    assert report.max_error < 0.05
    assert report.err_K.shape == (6, 6)


def test_derived_limits_keep_kernels_consistent(store, recwarn):
    derived = CoefficientStore(omega=store.omega, A=store.A, B=store.B)
    np.testing.assert_allclose(derived.A_inf, store.A_inf, atol=1e-5)
    np.testing.assert_allclose(derived.B_inf, np.zeros((6, 6)), atol=1e-5)

    rad = radiation_kernels(derived, DT, tau_max=10.0)
    report = check_consistency(rad, tol=0.05)
    assert report.passed
    assert not [w for w in recwarn if "disagree" in str(w.message)]
    # the added-mass kernel keeps its high-frequency tail
    np.testing.assert_allclose(rad.K_alt[:, :, 0], rad.K[:, :, 0], rtol=0.05, atol=1e-12)


def test_inconsistent_tables_warn(store):
    bad = CoefficientStore(
        omega=store.omega,
        A=store.A,
        B=2.0 * store.B,
        A_inf=store.A_inf,
        B_inf=store.B_inf,
    )
    rad = radiation_kernels(bad, DT, tau_max=5.0)
    with pytest.warns(RuntimeWarning, match="disagree"):
        report = check_consistency(rad, tol=0.05)
    assert not report.passed
    assert (2, 2) in report.failed
    # nothing is corrected
    assert np.array_equal(rad.K, radiation_kernels(bad, DT, tau_max=5.0).K)


def test_grid_without_zero_frequency_warns():
    w = np.linspace(0.2, 30.0, 1000)
    store = resonant_coefficients(w, 1.0, 0.5, 1.0, 1.0)
    with pytest.warns(RuntimeWarning, match="not 0"):
        rad = radiation_kernels(store, DT, tau_max=2.0)
    assert np.all(np.isfinite(rad.K))


def test_invalid_timing_raises(store):
    with pytest.raises(ValueError):
        radiation_kernels(store, 0.0)
    with pytest.raises(ValueError):
        radiation_kernels(store, -0.1)
    with pytest.raises(ValueError):
        radiation_kernels(store, 0.5, tau_max=0.1)
    with pytest.raises(ValueError):
        exciting_kernels(store, DT, tau_max=1.0, t_lead=-1.0)


def test_rebuild_is_bit_identical(store):
    first = build_kernels(store, DT, tau_max=5.0)
    second = build_kernels(store, DT, tau_max=5.0)
    assert np.array_equal(first.radiation.K, second.radiation.K)
    assert np.array_equal(first.radiation.L, second.radiation.L)
    assert np.array_equal(first.radiation.L_alt, second.radiation.L_alt)
    assert np.array_equal(first.exciting.K, second.exciting.K)
    assert np.array_equal(first.radiation.lengths, second.radiation.lengths)


def test_kernels_are_read_only(store):
    kernels = build_kernels(store, DT, tau_max=2.0)
    with pytest.raises(ValueError):
        kernels.radiation.L[0, 0, 0] = 1.0


def test_truncation_shortens_decayed_pairs(store):
    full = radiation_kernels(store, DT, tau_max=20.0)
    assert np.all(full.lengths == full.n_lags)

    cut = radiation_kernels(store, DT, tau_max=20.0, trunc_tol=1e-3)
    assert 0 < cut.lengths[2, 2] < cut.n_lags
    # pairs without coupling need no history at all
    assert cut.lengths[0, 1] == 0
    tail = np.abs(cut.L[2, 2, cut.lengths[2, 2]:])
    assert np.all(tail <= 1e-3 * np.abs(cut.L[2, 2]).max())


def test_truncated_length_edge_cases():
    assert truncated_length(np.zeros(5), 0.0) == 5
    assert truncated_length(np.zeros(5), 0.1) == 0
    assert truncated_length(np.array([1.0, 0.5, 0.01, 0.0]), 0.1) == 2


def _gaussian_store(t0, s=0.5):
    w = np.linspace(0.0, 20.0, 2001)
    X = np.zeros((w.size, 6), dtype=complex)
    X[:, 2] = s * np.sqrt(2 * np.pi) * np.exp(-0.5 * (s * w) ** 2) * np.exp(-1j * w * t0)
    return resonant_coefficients(np.linspace(0.0, 10.0, 11), 0.0, 1.0, 1.0, 1.0, X=X, exc_omega=w)


def test_exciting_kernel_of_gaussian_pulse():
    t0, s = 2.0, 0.5
    exc = exciting_kernels(_gaussian_store(t0, s), DT, tau_max=6.0)
    expected = np.exp(-((exc.tau - t0) ** 2) / (2 * s ** 2))
    np.testing.assert_allclose(exc.K[2], expected, atol=1e-3)
    assert np.all(exc.K[[0, 1, 3, 4, 5]] == 0.0)
    assert exc.tau[0] == 0.0


def test_exciting_kernel_lead_time_keeps_non_causal_part():
    s = 0.5
    exc = exciting_kernels(_gaussian_store(0.0, s), DT, tau_max=4.0, t_lead=2.0)
    assert np.isclose(exc.tau[0], -2.0)
    assert exc.n_lags == lag_count(6.0, DT)
    expected = np.exp(-(exc.tau ** 2) / (2 * s ** 2))
    np.testing.assert_allclose(exc.K[2], expected, atol=1e-3)


def test_exciting_kernel_uses_nearest_heading():
    w = np.linspace(0.0, 5.0, 51)
    X = np.zeros((2, w.size, 6), dtype=complex)
    X[1, :, 0] = 1.0
    store = resonant_coefficients(w, 0.0, 1.0, 1.0, 1.0)
    store = CoefficientStore(
        omega=store.omega, A=store.A, B=store.B,
        exc_omega=w, headings=[0.0, 90.0], X=X,
    )
    exc = exciting_kernels(store, DT, tau_max=1.0, heading=80.0)
    assert exc.heading == 90.0
    assert np.any(exc.K[0] != 0.0)


def test_build_kernels_reports_capacity(store):
    kernels = build_kernels(store, DT, tau_max=3.0, t_lead=1.0)
    assert kernels.dt == DT
    assert kernels.t_lead == 1.0
    assert kernels.capacity == max(kernels.radiation.lengths.max(), kernels.exciting.lengths.max())
    assert kernels.consistency is not None
    assert np.array_equal(kernels.A_inf, store.A_inf)
