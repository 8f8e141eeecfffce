import numpy as np
import pytest

from fshydro.Coeffs import (
    CoefficientStore,
    dof_length_exponent,
    infinite_frequency_limit,
    load_coefficients,
    save_coefficients,
)


def _tables(n=5):
    omega = np.linspace(0.0, 4.0, n)
    A = np.zeros((n, 6, 6))
    B = np.zeros((n, 6, 6))
    for i in range(6):
        A[:, i, i] = 10.0 + i - omega
        B[:, i, i] = omega * (4.0 - omega)
    return omega, A, B


def test_interpolation_is_linear_and_clamped():
    omega, A, B = _tables()
    store = CoefficientStore(omega=omega, A=A, B=B)

    # halfway between 1.0 and 2.0
    assert np.isclose(store.added_mass(1.5, 2, 2), 12.0 - 1.5)
    assert np.isclose(store.radiation_damping(1.5, 0, 0), 0.5 * (3.0 + 4.0))
    assert store.added_mass(1.5).shape == (6, 6)

    np.testing.assert_allclose(store.added_mass(-1.0), A[0])
    np.testing.assert_allclose(store.added_mass(99.0), A[-1])
    np.testing.assert_allclose(store.radiation_damping(99.0), B[-1])


def test_tables_are_copied_and_read_only():
    omega, A, B = _tables()
    store = CoefficientStore(omega=omega, A=A, B=B)
    A[0, 0, 0] = -1.0
    assert store.A[0, 0, 0] == 10.0
    with pytest.raises(ValueError):
        store.A[0, 0, 0] = 1.0
    with pytest.raises(ValueError):
        store.omega[0] = 1.0


def test_infinite_frequency_limits_from_tail_fit():
    omega = np.linspace(0.0, 10.0, 101)
    A = np.zeros((omega.size, 6, 6))
    B = np.zeros((omega.size, 6, 6))
    with np.errstate(divide="ignore"):
        tail = np.where(omega > 0, omega ** -2, 0.0)
    for i in range(6):
        A[:, i, i] = 4.0 + i - 3.0 * tail
        B[:, i, i] = 0.5 * i + 2.0 * tail
    A[:, 0, 4] = A[:, 4, 0] = -1.5

    store = CoefficientStore(omega=omega, A=A, B=B)
    expected_A = np.diag(4.0 + np.arange(6.0))
    expected_A[0, 4] = expected_A[4, 0] = -1.5
    np.testing.assert_allclose(store.A_inf, expected_A, atol=1e-10)
    np.testing.assert_allclose(store.B_inf, np.diag(0.5 * np.arange(6.0)), atol=1e-10)
    # the fit sees through the 1/w^2 tail where the last sample does not
    assert not np.allclose(A[-1], expected_A)

    narrow = infinite_frequency_limit(omega, A, 0.05)
    np.testing.assert_allclose(narrow, expected_A, atol=1e-10)
    with pytest.raises(ValueError):
        infinite_frequency_limit(omega, A, 0.0)


def test_supplied_limits_take_precedence():
    omega, A, B = _tables()
    A_inf = np.eye(6) * 3.0
    store = CoefficientStore(omega=omega, A=A, B=B, A_inf=A_inf, B_inf=np.zeros((6, 6)))
    np.testing.assert_allclose(store.A_inf, A_inf)
    assert np.all(store.B_inf == 0.0)


@pytest.mark.parametrize("omega", [
    np.array([0.0, 1.0, 1.0, 2.0, 3.0]),
    np.array([0.0, 2.0, 1.0, 3.0, 4.0]),
])
def test_non_increasing_grid_is_rejected(omega):
    _, A, B = _tables()
    with pytest.raises(ValueError, match="strictly increasing"):
        CoefficientStore(omega=omega, A=A, B=B)


def test_non_finite_and_mismatched_tables_are_rejected():
    omega, A, B = _tables()
    A_bad = A.copy()
    A_bad[2, 1, 1] = np.nan
    with pytest.raises(ValueError, match="non-finite"):
        CoefficientStore(omega=omega, A=A_bad, B=B)
    with pytest.raises(ValueError, match="shape"):
        CoefficientStore(omega=omega, A=A[:-1], B=B)
    with pytest.raises(ValueError, match="shape"):
        CoefficientStore(omega=omega, A=A, B=B, X=np.zeros((1, 3, 6)))


def test_exciting_force_from_modulus_and_phase():
    omega, A, B = _tables()
    mod = np.ones((1, omega.size, 6)) * 2.0
    phase = np.full((1, omega.size, 6), np.pi / 2)
    store = CoefficientStore.from_dict({
        "omega": omega, "A": A, "B": B, "X_mod": mod, "X_phase": phase,
    })
    X = store.exciting_force_components(1.0)
    np.testing.assert_allclose(X, 2j * np.ones(6), atol=1e-12)
    assert np.isclose(store.exciting_force_components(1.0, j=3), 2j)


def test_heading_selection_and_range_warning():
    omega, A, B = _tables()
    X = np.zeros((2, omega.size, 6), dtype=complex)
    X[0] = 1.0
    X[1] = 5.0
    store = CoefficientStore(omega=omega, A=A, B=B, headings=[0.0, 45.0], X=X)
    assert store.heading_index(30.0) == 1
    assert np.isclose(store.exciting_force_components(2.0, 0, heading=10.0), 1.0)
    with pytest.warns(RuntimeWarning, match="outside"):
        assert store.heading_index(180.0) == 1


def test_dimensionalize_scaling():
    omega, A, B = _tables()
    X = np.ones((1, omega.size, 6), dtype=complex)
    store = CoefficientStore(omega=omega, A=A, B=B, X=X)
    rho, g, L = 1000.0, 10.0, 2.0
    dim = store.dimensionalize(rho, g, L)

    assert dof_length_exponent(0, 0) == 3
    assert dof_length_exponent(0, 4) == 4
    assert dof_length_exponent(5, 3) == 5
    assert np.isclose(dim.A[1, 2, 2], A[1, 2, 2] * rho * L ** 3)
    assert np.isclose(dim.A[1, 4, 4], A[1, 4, 4] * rho * L ** 5)
    assert np.isclose(dim.B[3, 2, 2], B[3, 2, 2] * rho * L ** 3 * omega[3])
    assert np.isclose(dim.X[0, 0, 2].real, rho * g * L ** 2)
    assert np.isclose(dim.X[0, 0, 3].real, rho * g * L ** 3)
    np.testing.assert_allclose(dim.A_inf, store.A_inf * rho * L ** np.array(
        [[dof_length_exponent(i, j) for j in range(6)] for i in range(6)]))


@pytest.mark.parametrize("suffix", [".npz", ".json"])
def test_save_and_load(tmp_path, suffix):
    omega, A, B = _tables()
    X = np.full((1, omega.size, 6), 1.0 - 2.0j)
    store = CoefficientStore(omega=omega, A=A, B=B, X=X, A_inf=np.eye(6))
    path = tmp_path / f"coeffs{suffix}"
    save_coefficients(store, path)
    loaded = load_coefficients(path)
    np.testing.assert_allclose(loaded.A, store.A)
    np.testing.assert_allclose(loaded.X, store.X)
    np.testing.assert_allclose(loaded.A_inf, np.eye(6))


def test_unsupported_file_type(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        load_coefficients(tmp_path / "coeffs.csv")
