import numpy as np
import pytest

from fshydro.Coeffs import resonant_coefficients
from fshydro.params import BodyConfig, Env


# Second-order memory per DOF: L(t) = (c/b) exp(-a t) sin(b t)
STRENGTH = np.array([1.0, 1.0, 3.0, 0.5, 0.5, 0.2])
DECAY = 0.5
FREQ = 1.0
A_INF = np.array([2.0, 2.0, 5.0, 1.0, 1.0, 0.5])


def L_exact(t, c, a=DECAY, b=FREQ):
    return (c / b) * np.exp(-a * t) * np.sin(b * t)


def K_exact(t, c, a=DECAY, b=FREQ):
    return (c / b) * np.exp(-a * t) * (b * np.cos(b * t) - a * np.sin(b * t))


@pytest.fixture
def omega():
    return np.linspace(0.0, 50.0, 5001)


@pytest.fixture
def store(omega):
    return resonant_coefficients(omega, STRENGTH, DECAY, FREQ, A_INF)


@pytest.fixture
def zero_store():
    w = np.linspace(0.0, 10.0, 101)
    return resonant_coefficients(w, 0.0, 1.0, 1.0, 0.0)


@pytest.fixture
def analytic():
    """Closed-form kernels matching the `store` fixture."""
    return {"L": L_exact, "K": K_exact, "strength": STRENGTH}


@pytest.fixture
def env():
    return Env(rho=1025.0, g=9.81)


@pytest.fixture
def heave_body(env):
    """Body with heave stiffness k only and balanced buoyancy/weight."""
    k, Vol = 5.0e4, 2.0
    mass = env.rho * Vol
    return BodyConfig(
        name="heave",
        mass=mass,
        Ig=np.eye(3) * 100.0,
        Vol=Vol,
        S=k / (env.rho * env.g),
    ), k
