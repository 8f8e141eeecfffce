from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
import numpy as np
import json

from scipy.integrate import trapezoid


#=============================================================================
#                      Environment
#=============================================================================

@dataclass
class Env:
    """Fluid and scaling constants shared by every force term."""
    rho: float = 1025.0    # fluid density [kg/m^3]
    g:   float = 9.81      # gravitational acceleration [m/s^2]
    L:   float = 1.0       # length scale of non-dimensional coefficient tables [m]

    def __post_init__(self):
        if not self.rho > 0:
            raise ValueError("rho must be positive")
        if not self.g > 0:
            raise ValueError("g must be positive")
        if not self.L > 0:
            raise ValueError("L must be positive")

    @classmethod
    def from_dict(cls, data: dict) -> "Env":
        return cls(
            rho=data.get("rho", 1025.0),
            g=data.get("g", 9.81),
            L=data.get("L", 1.0),
        )


#=============================================================================
#                      Incident Wave
#=============================================================================

@dataclass
class Wave:
    """
    Incident wave parameters dataclass.

    Can be initialized with just basic parameters (Hs, Tp, etc.) and will
    compute the derived spectrum and wave components automatically.

    specType:
        'Still'   - no waves
        'Regular' - single Airy component of amplitude Hs/2 and period Tp
        'Jonswap' - JONSWAP spectrum
        'PM'      - Pierson-Moskowitz spectrum
    """
    # Basic parameters
    specType:  str = "Still"
    Hs:        float = 0.0
    Tp:        float = 10.0
    gamma:     float = 3.3
    propDir:   float = 0.0           # heading [deg], 0 = travelling along +x
    domega:    float = 0.01
    omega_max: float = 3.0
    phase:     float = 0.0           # phase of a regular wave [rad]
    seed:      Optional[int] = None  # random seed for reproducible phases
    g:         float = 9.81          # gravity for deep-water dispersion [m/s^2]

    # Derived parameters (computed if not provided)
    omegaVec: Optional[list[float]] = None
    Szz:      Optional[list[float]] = None
    k:        Optional[list[float]] = None
    ZaCal:    Optional[list[float]] = None
    omegaCal: Optional[list[float]] = None
    phaseCal: Optional[list[float]] = None
    kCal:     Optional[list[float]] = None

    def __post_init__(self):
        g = self.g

        def is_empty(val):
            if val is None:
                return True
            if hasattr(val, '__len__') and len(val) == 0:
                return True
            return False

        if self.specType not in ("Still", "Regular", "Jonswap", "PM"):
            raise ValueError(f"Unknown specType {self.specType!r}")
        if self.Hs < 0:
            raise ValueError("Hs must be non-negative")
        if not self.g > 0:
            raise ValueError("g must be positive")
        if self.specType != "Still" and not self.Tp > 0:
            raise ValueError("Tp must be positive")

        if self.specType == "Still":
            empty = np.zeros(0)
            self.omegaVec, self.Szz, self.k = empty, empty, empty
            self.ZaCal, self.omegaCal, self.phaseCal, self.kCal = empty, empty, empty, empty
            return

        if self.specType == "Regular":
            self.omegaCal = np.array([2 * np.pi / self.Tp])
            self.ZaCal = np.array([self.Hs / 2])
            self.phaseCal = np.array([self.phase])
            self.kCal = self.omegaCal ** 2 / g
            self.omegaVec, self.Szz, self.k = self.omegaCal, np.zeros(1), self.kCal
            return

        if not self.domega > 0:
            raise ValueError("domega must be positive")

        if is_empty(self.omegaVec):
            self.omegaVec = np.arange(self.domega, self.omega_max, self.domega)
        else:
            self.omegaVec = np.asarray(self.omegaVec, dtype=float).flatten()

        # Deep water dispersion
        if is_empty(self.k):
            self.k = self.omegaVec ** 2 / g
        else:
            self.k = np.asarray(self.k, dtype=float).flatten()

        if is_empty(self.Szz):
            self.Szz = self._calculate_spectrum()
        else:
            self.Szz = np.asarray(self.Szz, dtype=float).flatten()

        if is_empty(self.ZaCal) or is_empty(self.omegaCal) or is_empty(self.phaseCal):
            self._set_wave_field()
        else:
            self.ZaCal = np.asarray(self.ZaCal, dtype=float).flatten()
            self.omegaCal = np.asarray(self.omegaCal, dtype=float).flatten()
            self.phaseCal = np.asarray(self.phaseCal, dtype=float).flatten()
            self.kCal = self.omegaCal ** 2 / g

    def _calculate_spectrum(self) -> np.ndarray:
        """Calculate wave spectrum based on specType."""
        if self.specType == "PM":
            return self._pm_spectrum(self.omegaVec, self.g)
        return self._jonswap_spectrum(self.omegaVec)

    def _jonswap_spectrum(self, omega: np.ndarray) -> np.ndarray:
        """JONSWAP spectrum calculation."""
        wp = 2 * np.pi / self.Tp
        gamma = self.gamma

        # DNV recommended gamma if outside validity range
        if gamma < 1 or gamma > 7:
            k_param = 2 * np.pi / (wp * np.sqrt(self.Hs)) if self.Hs > 0 else np.inf
            if k_param <= 3.6:
                gamma = 5.0
            elif k_param <= 5.0:
                gamma = np.exp(5.75 - 1.15 * k_param)
            else:
                gamma = 1.0

        # Hs-based form, normalised so that 4 sqrt(m0) = Hs
        norm = 1 - 0.287 * np.log(gamma)

        Shh = np.zeros_like(omega)
        pos = omega > 0
        w = omega[pos]
        sigma = np.where(w < wp, 0.07, 0.09)
        S1 = (5/16) * self.Hs**2 * wp**4 * (w ** -5) * np.exp(-(5/4) * (wp/w)**4) * norm
        S2 = gamma ** (np.exp(-((w - wp)**2) / (2 * (sigma * wp)**2)))
        Shh[pos] = S1 * S2
        return Shh

    def _pm_spectrum(self, omega: np.ndarray, g: float) -> np.ndarray:
        """Pierson-Moskowitz spectrum, scaled to match Hs."""
        wp = 2 * np.pi / self.Tp
        alpha = 0.0081  # Phillips constant

        Shh = np.zeros_like(omega)
        pos = omega > 0
        w = omega[pos]
        Shh[pos] = (alpha * g**2 / w**5) * np.exp(-(5/4) * (wp/w)**4)

        m0 = trapezoid(Shh, omega)
        if m0 > 0:
            Shh *= (self.Hs / 4)**2 / m0
        return Shh

    def _set_wave_field(self):
        """Component amplitudes and random phases from the spectrum."""
        rng = np.random.default_rng(self.seed)
        self.ZaCal = np.sqrt(2 * self.Szz * self.domega)
        self.omegaCal = self.omegaVec.copy()
        self.phaseCal = 2 * np.pi * rng.random(len(self.omegaVec))
        self.kCal = self.k.copy()

    @classmethod
    def from_dict(cls, data: dict) -> "Wave":
        return cls(**data)


#=============================================================================
#                      Floating Body
#=============================================================================

def _as_vector(val, n: int, name: str) -> np.ndarray:
    arr = np.asarray(val, dtype=float).flatten()
    if arr.size == 1 and n > 1:
        arr = np.full(n, arr[0])
    if arr.shape != (n,):
        raise ValueError(f"{name} must have {n} components, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite")
    return arr


@dataclass
class BodyConfig:
    """
    Rigid floating body properties.

    Positions (COB, COG) are relative to the body reference point on the
    undisturbed waterplane, z positive up. The inertia tensor Ig is taken
    about the centre of gravity.
    """
    name:  str = "body"
    mass:  float = 0.0                                      # body mass [kg]
    Ig:    list[list[float]] = field(default_factory=lambda: np.zeros((3, 3)))
    COG:   list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    COB:   list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    Vol:   float = 0.0                                      # submerged volume [m^3]
    S:     float = 0.0                                      # waterplane area [m^2]
    S11:   float = 0.0                                      # waterplane 2nd moment about x [m^4]
    S22:   float = 0.0                                      # waterplane 2nd moment about y [m^4]
    b_lin: list[float] = field(default_factory=lambda: np.zeros(6))  # linear damping per DOF
    Cd:    list[float] = field(default_factory=lambda: np.zeros(6))  # drag coefficient per DOF
    Area:  list[float] = field(default_factory=lambda: np.zeros(6))  # drag reference area per DOF

    def __post_init__(self):
        self.Ig = np.asarray(self.Ig, dtype=float)
        if self.Ig.shape != (3, 3):
            raise ValueError("Ig must be a 3x3 matrix")
        if not np.all(np.isfinite(self.Ig)):
            raise ValueError("Ig must be finite")
        self.COG = _as_vector(self.COG, 3, "COG")
        self.COB = _as_vector(self.COB, 3, "COB")
        self.b_lin = _as_vector(self.b_lin, 6, "b_lin")
        self.Cd = _as_vector(self.Cd, 6, "Cd")
        self.Area = _as_vector(self.Area, 6, "Area")

        for name in ("mass", "Vol", "S", "S11", "S22"):
            val = getattr(self, name)
            if not np.isfinite(val) or val < 0:
                raise ValueError(f"{name} must be finite and non-negative, got {val}")

    @classmethod
    def from_dict(cls, data: dict) -> "BodyConfig":
        """
        Create BodyConfig from dictionary with flexible key handling.

        Missing keys fall back to the dataclass defaults.
        """
        defaults = cls()
        return cls(
            name=data.get("name", "body"),
            mass=data.get("mass", 0.0),
            Ig=data.get("Ig", defaults.Ig),
            COG=data.get("COG", defaults.COG),
            COB=data.get("COB", defaults.COB),
            Vol=data.get("Vol", 0.0),
            S=data.get("S", 0.0),
            S11=data.get("S11", 0.0),
            S22=data.get("S22", 0.0),
            b_lin=data.get("b_lin", defaults.b_lin),
            Cd=data.get("Cd", defaults.Cd),
            Area=data.get("Area", defaults.Area),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "mass": self.mass,
            "Ig": self.Ig.tolist(),
            "COG": self.COG.tolist(),
            "COB": self.COB.tolist(),
            "Vol": self.Vol,
            "S": self.S,
            "S11": self.S11,
            "S22": self.S22,
            "b_lin": self.b_lin.tolist(),
            "Cd": self.Cd.tolist(),
            "Area": self.Area.tolist(),
        }


#=============================================================================
#                      Impulse-Response Settings
#=============================================================================

@dataclass
class HydroConfig:
    """Settings for the frequency-to-time-domain conversion."""
    tau_max:            float = 20.0   # radiation/exciting memory length [s]
    t_lead:             float = 0.0    # exciting kernel look-ahead [s]
    trunc_tol:          float = 0.0    # per-pair tail truncation, relative to peak
    consistency_tol:    float = 0.05   # damping vs added-mass kernel agreement
    check_consistency:  bool = True
    inf_tail_fraction:  float = 0.3    # top of the grid fitted for A_inf/B_inf
    nondimensional:     bool = False   # coefficient tables use WAMIT scaling

    def __post_init__(self):
        if not self.tau_max > 0:
            raise ValueError("tau_max must be positive")
        if self.t_lead < 0:
            raise ValueError("t_lead must be non-negative")
        if not 0 <= self.trunc_tol < 1:
            raise ValueError("trunc_tol must be in [0, 1)")
        if not self.consistency_tol > 0:
            raise ValueError("consistency_tol must be positive")
        if not 0 < self.inf_tail_fraction <= 1:
            raise ValueError("inf_tail_fraction must be in (0, 1]")

    @classmethod
    def from_dict(cls, data: dict) -> "HydroConfig":
        return cls(
            tau_max=data.get("tau_max", 20.0),
            t_lead=data.get("t_lead", 0.0),
            trunc_tol=data.get("trunc_tol", 0.0),
            consistency_tol=data.get("consistency_tol", 0.05),
            check_consistency=data.get("check_consistency", True),
            inf_tail_fraction=data.get("inf_tail_fraction", 0.3),
            nondimensional=data.get("nondimensional", False),
        )


#=============================================================================
#                      Simulation Configuration
#=============================================================================

@dataclass
class StaticSimuConfig:
    """Static equilibrium parameters."""
    enabled:    bool = False
    parameters: Optional[dict] = None

    @classmethod
    def from_dict(cls, data: dict) -> "StaticSimuConfig":
        return cls(
            enabled=data.get("enabled", False),
            parameters=data.get("parameters"),
        )


@dataclass
class DynamicSimuConfig:
    """Dynamic simulation parameters."""
    enabled:          bool = True
    numerical_method: Optional[dict] = None
    time_settings:    Optional[dict] = None
    initial_state:    Optional[list[float]] = None

    def __post_init__(self):
        if self.time_settings is not None:
            if not self.dt > 0:
                raise ValueError("dt must be positive")
            if self.tEnd < self.tStart:
                raise ValueError("tEnd must not precede tStart")
        if self.initial_state is not None:
            self.initial_state = np.asarray(self.initial_state, dtype=float).flatten()
            if self.initial_state.shape != (12,):
                raise ValueError("initial_state must have 12 components [x(6), xdot(6)]")

    @property
    def tStart(self) -> float:
        return self.time_settings.get("tStart", 0.0) if self.time_settings else 0.0

    @property
    def tEnd(self) -> float:
        return self.time_settings.get("tEnd", 100.0) if self.time_settings else 100.0

    @property
    def dt(self) -> float:
        return self.time_settings.get("dt", 0.1) if self.time_settings else 0.1

    @property
    def solver(self) -> str:
        return self.numerical_method.get("solver", "RK4") if self.numerical_method else "RK4"

    @property
    def rtol(self) -> float:
        return self.numerical_method.get("rtol", 1e-6) if self.numerical_method else 1e-6

    @property
    def atol(self) -> float:
        return self.numerical_method.get("atol", 1e-9) if self.numerical_method else 1e-9

    @classmethod
    def from_dict(cls, data: dict) -> "DynamicSimuConfig":
        return cls(
            enabled=data.get("enabled", True),
            numerical_method=data.get("numerical_method"),
            time_settings=data.get("time_settings"),
            initial_state=data.get("initial_state"),
        )


@dataclass
class SimuConfig:
    """Complete simulation configuration from simu_config.json."""
    simulator:    str = "fshydro"
    static_simu:  Optional[StaticSimuConfig] = None
    dynamic_simu: Optional[DynamicSimuConfig] = None
    hydro:        HydroConfig = field(default_factory=HydroConfig)

    @property
    def static_enabled(self) -> bool:
        return self.static_simu.enabled if self.static_simu else False

    @property
    def dynamic_enabled(self) -> bool:
        return self.dynamic_simu.enabled if self.dynamic_simu else False

    @classmethod
    def from_dict(cls, data: dict) -> "SimuConfig":
        static_data = data.get("static_simu", {})
        dynamic_data = data.get("dynamic_simu", {})
        return cls(
            simulator=data.get("simulator", "fshydro"),
            static_simu=StaticSimuConfig.from_dict(static_data) if static_data else None,
            dynamic_simu=DynamicSimuConfig.from_dict(dynamic_data) if dynamic_data else None,
            hydro=HydroConfig.from_dict(data.get("hydro", {})),
        )


#=============================================================================
#                      Input Manifest
#=============================================================================

@dataclass
class InputManifest:
    """Input manifest from INPUT_manifest.json."""
    workspace_path: str
    files:          dict[str, str]

    @classmethod
    def from_dict(cls, data: dict) -> "InputManifest":
        return cls(
            workspace_path=data.get("workspace_path", "."),
            files=data.get("files", {}),
        )

    def get_file_path(self, key: str, base_path: Optional[Path] = None) -> Optional[Path]:
        """Get the full path for a file specified in the manifest."""
        if key not in self.files:
            return None
        rel_path = Path(self.workspace_path) / self.files[key]
        if base_path:
            return base_path / rel_path
        return rel_path


#=============================================================================
#                      Helper Functions
#=============================================================================

def load_json(path: Path | str) -> dict:
    """Load a JSON file and return its contents."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_env_config(path: Path | str) -> Env:
    """Load fluid constants from JSON file."""
    return Env.from_dict(load_json(path))


def load_body_config(path: Path | str) -> BodyConfig:
    """Load floating body properties from JSON file."""
    return BodyConfig.from_dict(load_json(path))


def load_wave_config(path: Path | str, g: Optional[float] = None) -> Wave:
    """Load incident wave parameters from JSON file, optionally with the fluid's g."""
    data = load_json(path)
    if g is not None:
        data["g"] = g
    return Wave.from_dict(data)


def load_simu_config(path: Path | str) -> SimuConfig:
    """Load simulation configuration from JSON file."""
    return SimuConfig.from_dict(load_json(path))


def load_manifest(path: Path | str) -> InputManifest:
    """Load input manifest from JSON file."""
    return InputManifest.from_dict(load_json(path))
