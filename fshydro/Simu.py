"""Main simulation runner for fshydro."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

import numpy as np
from numpy.typing import NDArray

from .Body import FloatingBody
from .Coeffs import CoefficientStore, load_coefficients
from .IRF import HydroKernels, build_kernels
from .integrator import solve_dynamics, solve_static
from .params import (
    BodyConfig, Env, SimuConfig, Wave,
    load_body_config, load_env_config, load_manifest, load_simu_config,
    load_wave_config,
)
from .Waves import make_wave


#=============================================================================
#                           Configuration Loading
#=============================================================================

@dataclass
class Configs:
    """Container for all loaded configurations."""
    env:         Env = None
    body:        BodyConfig = None
    wave:        Wave = None
    simu_config: SimuConfig = None
    store:       CoefficientStore = None


REQUIRED_KEYS = ("body", "coeffs", "simu")


def load_configs_from_manifest(manifest_path: Path | str) -> Configs:
    """
    Load all configurations from an INPUT_manifest.json file.

    The manifest specifies paths to individual config files:
        {
            "workspace_path": ".",
            "files": {
                "env": "env.json",
                "body": "body.json",
                "wave": "wave.json",
                "simu": "simu_config.json",
                "coeffs": "coeffs.npz"
            }
        }

    'env' and 'wave' are optional (default fluid, still water).

    Args:
        manifest_path: Path to the INPUT_manifest.json file

    Returns:
        Configs dataclass with all loaded configurations
    """
    manifest_path = Path(manifest_path)
    manifest = load_manifest(manifest_path)
    base = manifest_path.parent

    missing = [key for key in REQUIRED_KEYS if key not in manifest.files]
    if missing:
        raise ValueError(f"Manifest is missing required entries: {missing}")

    env_path = manifest.get_file_path("env", base)
    wave_path = manifest.get_file_path("wave", base)
    simu_config = load_simu_config(manifest.get_file_path("simu", base))

    env = load_env_config(env_path) if env_path else Env()

    return Configs(
        env=env,
        body=load_body_config(manifest.get_file_path("body", base)),
        wave=load_wave_config(wave_path, g=env.g) if wave_path else Wave(g=env.g),
        simu_config=simu_config,
        store=load_coefficients(
            manifest.get_file_path("coeffs", base),
            inf_tail_fraction=simu_config.hydro.inf_tail_fraction,
        ),
    )


def configs_from_dict(data: dict) -> Configs:
    """
    Build Configs from a dict of pre-loaded configs.

    Keys: "body", "coeffs", "simu" and optionally "env", "wave". "coeffs" may
    be a CoefficientStore or a key/array mapping.
    """
    missing = [key for key in REQUIRED_KEYS if data.get(key) is None]
    if missing:
        raise ValueError(f"manifest dict is missing required keys: {missing}")

    simu_config = SimuConfig.from_dict(data["simu"])
    coeffs = data["coeffs"]
    if not isinstance(coeffs, CoefficientStore):
        coeffs = CoefficientStore.from_dict(
            coeffs, inf_tail_fraction=simu_config.hydro.inf_tail_fraction,
        )
    env = Env.from_dict(data.get("env") or {})
    return Configs(
        env=env,
        body=BodyConfig.from_dict(data["body"]),
        wave=Wave.from_dict({**(data.get("wave") or {}), "g": env.g}),
        simu_config=simu_config,
        store=coeffs,
    )


def load_configs(manifest: str | Path | dict) -> Configs:
    if isinstance(manifest, dict):
        return configs_from_dict(manifest)
    return load_configs_from_manifest(manifest)


def prepare_store(configs: Configs) -> CoefficientStore:
    """Coefficient store in dimensional form."""
    if configs.simu_config.hydro.nondimensional:
        env = configs.env
        return configs.store.dimensionalize(env.rho, env.g, env.L)
    return configs.store


def build_model(configs: Configs, dt: float | None = None) -> tuple[FloatingBody, HydroKernels]:
    """
    Build kernels and the floating body for a loaded case.

    Args:
        configs: Loaded configurations
        dt: Timestep, defaults to the dynamic simulation timestep

    Returns:
        (body, kernels)
    """
    simu = configs.simu_config
    hydro = simu.hydro
    if dt is None:
        dt = simu.dynamic_simu.dt if simu.dynamic_simu else 0.1

    store = prepare_store(configs)
    wave = make_wave(configs.wave, g=configs.env.g)
    kernels = build_kernels(
        store,
        dt,
        tau_max=hydro.tau_max,
        heading=wave.heading,
        t_lead=hydro.t_lead,
        trunc_tol=hydro.trunc_tol,
        check=hydro.check_consistency,
        consistency_tol=hydro.consistency_tol,
    )
    body = FloatingBody(
        store,
        body=configs.body,
        env=configs.env,
        wave=wave,
        hydro=hydro,
        kernels=kernels,
    )
    return body, kernels


#=============================================================================
#                           Simulation Results
#=============================================================================

def get_logo() -> str:
    return """
_____________________________________________________________

Welcome to fshydro!

   time-domain hydrodynamics of a floating body
_____________________________________________________________
"""


@dataclass
class SimulationResults:
    """Container for simulation results."""
    # Time and state data
    time:         NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    displacement: NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    velocity:     NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    acceleration: NDArray[np.floating] = field(default_factory=lambda: np.array([]))
    x_static:     NDArray[np.floating] = field(default_factory=lambda: np.zeros(6))

    # Case information
    case_id:     int = 0
    info_string: str = ""

    # Status tracking
    success: bool = True
    status:  int = 0  # 0=not run, 1=success, -1=failed
    message: str = ""

    # File paths for saved data
    displacement_file: str = ""
    velocity_file:     str = ""
    acceleration_file: str = ""
    summary_file:      str = ""

    # Timing
    timestamp:    str = ""
    elapsed_time: float = 0.0
    solver:       str = ""

    # Summary statistics
    max_displacement: float = 0.0
    n_time_steps:     int = 0
    consistency_max_error: float | None = None

    def to_dict(self) -> dict:
        """Convert results to dictionary for JSON serialization."""
        return {
            "case_id": self.case_id,
            "info_string": self.info_string,
            "success": self.success,
            "status": self.status,
            "message": self.message,
            "displacement_file": self.displacement_file,
            "velocity_file": self.velocity_file,
            "acceleration_file": self.acceleration_file,
            "timestamp": self.timestamp,
            "elapsed_time": self.elapsed_time,
            "solver": self.solver,
            "max_displacement": self.max_displacement,
            "n_time_steps": self.n_time_steps,
            "x_static": np.asarray(self.x_static).tolist(),
            "consistency_max_error": self.consistency_max_error,
        }


MAX_REASONABLE_DISP = 1e4  # anything larger is divergence


def check_solution(results: SimulationResults, x_out: NDArray[np.floating]) -> None:
    """Flag NaN, Inf and divergence in an integrated state history."""
    if np.any(np.isnan(x_out)):
        results.success = False
        results.status = -1
        results.message = "Solution contains NaN values"
        return
    if np.any(np.isinf(x_out)):
        results.success = False
        results.status = -1
        results.message = "Solution contains Inf values"
        return

    max_disp = float(np.max(np.abs(x_out[:, :3]))) if x_out.size else 0.0
    results.max_displacement = max_disp
    if max_disp > MAX_REASONABLE_DISP:
        results.success = False
        results.status = -1
        results.message = (
            f"Solution diverged (max_disp={max_disp:.2e}m exceeds {MAX_REASONABLE_DISP:.0e}m)"
        )
        return

    results.success = True
    results.status = 1


#=============================================================================
#               Single Case Simulation
#=============================================================================

def run_a_simulation(
    manifest: str | Path | dict,
    case_id: int = 1,
    info_string: str = "",
    results_dir: str = "results",
    save_results: bool = True,
    show_progress: bool = True,
    solver: str | None = None,
    rtol: float | None = None,
    atol: float | None = None,
    workspace_path: str | Path = None,
) -> SimulationResults:
    """
    Run a single simulation case with progress tracking and results saving.

    Workflow:
    1. Load configurations from manifest
    2. Build coefficient store, kernels, wave and body
    3. Run static equilibrium (if enabled)
    4. Run dynamic simulation with progress bar
    5. Save results to binary and JSON files

    Args:
        manifest: Either:
            - Path to INPUT_manifest.json (str or Path), OR
            - Dict of pre-loaded configs with keys "body", "coeffs", "simu"
              and optionally "env", "wave".
        case_id: Case identifier
        info_string: Description of the case
        results_dir: Directory for saving results
        save_results: Whether to save results to files
        show_progress: Show progress bar during integration
        solver: Override of the configured solver ('RK4' or a solve_ivp method)
        rtol: Override of the configured relative tolerance
        atol: Override of the configured absolute tolerance
        workspace_path: Where results go when manifest is a dict

    Returns:
        SimulationResults object with all simulation data
    """
    print(get_logo())

    manifest_is_dict = isinstance(manifest, dict)
    if manifest_is_dict:
        workspace_path = Path(workspace_path) if workspace_path is not None else None
        results_path = (workspace_path / results_dir) if workspace_path else Path(results_dir)
    else:
        manifest_path = Path(manifest)
        workspace_path = manifest_path.parent
        results_path = workspace_path / results_dir

    results = SimulationResults(
        case_id=case_id,
        info_string=info_string,
        timestamp=datetime.now().strftime("%d-%b-%Y_%H-%M-%S"),
    )

    print("\n")
    print("=" * 70)
    print(" " * 15 + f"SIMULATION CASE {case_id}")
    print("=" * 70)
    if info_string:
        print(f"  {info_string}")
    print("\n")

    # ================================================================
    # STEP 1: Load configurations
    # ================================================================
    print("-" * 70)
    if manifest_is_dict:
        print(" " * 20 + "< loading configs from dict: >\n")
        print(f"  Config keys: {list(manifest.keys())}")
    else:
        print(" " * 20 + "< loading configs from manifest file: >\n")
        print(f"  Manifest path: {manifest_path}")

    configs = load_configs(manifest)
    simu_config = configs.simu_config
    store = configs.store
    print(f"  ✓ Loaded env: rho={configs.env.rho}, g={configs.env.g}, L={configs.env.L}")
    print(f"  ✓ Loaded body: {configs.body.name}, mass={configs.body.mass:.4g} kg")
    print(f"  ✓ Loaded wave: {configs.wave.specType}, Hs={configs.wave.Hs}m, Tp={configs.wave.Tp}s")
    print(f"  ✓ Loaded coeffs: {store.n_freq} frequencies up to {store.omega_max:.3g} rad/s, "
          f"{store.headings.size} headings")
    print(f"  ✓ Loaded simu: static={simu_config.static_enabled}, dynamic={simu_config.dynamic_enabled}")

    # ================================================================
    # STEP 2: Build kernels and body
    # ================================================================
    print("\n" + "-" * 70)
    print(" " * 20 + "< building impulse responses: >\n")

    t0_build = time.perf_counter()
    body, kernels = build_model(configs)
    rad, exc = kernels.radiation, kernels.exciting
    print(f"  ✓ Radiation kernels: {rad.n_lags} lags, dt={rad.dt}s, "
          f"max length {int(rad.lengths.max())}")
    print(f"  ✓ Exciting kernels: {exc.n_lags} lags at heading {exc.heading} deg")
    print(f"  History capacity: {kernels.capacity} steps")
    if kernels.consistency is not None:
        report = kernels.consistency
        results.consistency_max_error = report.max_error
        mark = "✓" if report.passed else "⚠"
        print(f"  {mark} Damping/added-mass consistency: max error {report.max_error:.2%} "
              f"(tol {report.tol:.0%})")
    print(f"  Built in {time.perf_counter() - t0_build:.2f}s")

    x0 = np.zeros(12)
    dyn_cfg = simu_config.dynamic_simu
    if dyn_cfg is not None and dyn_cfg.initial_state is not None:
        x0 = np.array(dyn_cfg.initial_state, dtype=float)

    # ================================================================
    # STEP 3: Static simulation (if enabled)
    # ================================================================
    if simu_config.static_enabled:
        print("\n" + "-" * 70)
        print(" " * 10 + "< STATIC SIMULATION >\n")

        params = simu_config.static_simu.parameters or {}
        free = [2, 3, 4]  # heave, roll, pitch

        def static_residual(q):
            pos = np.zeros(6)
            pos[free] = q
            F = body.hydrostatic_force(pos) + body.buoyancy_force(pos) + body.gravity_force(pos)
            return F[free]

        print(f"  Solving heave/roll/pitch equilibrium...")
        q_eq = solve_static(
            static_residual,
            np.zeros(len(free)),
            tol=params.get("tol", 1e-8),
            method=params.get("method", "lm"),
        )
        results.x_static[free] = q_eq
        print(f"  Static equilibrium: heave={q_eq[0]:.4f} m, roll={q_eq[1]:.4e} rad, "
              f"pitch={q_eq[2]:.4e} rad")

        # the initial state is an offset from equilibrium
        x0[:6] += results.x_static

    # ================================================================
    # STEP 4: Dynamic simulation (if enabled)
    # ================================================================
    if simu_config.dynamic_enabled:
        print("\n" + "-" * 70)
        print(" " * 10 + "< DYNAMIC SIMULATION >\n")

        t_start, t_end, dt = dyn_cfg.tStart, dyn_cfg.tEnd, dyn_cfg.dt
        solver = solver or dyn_cfg.solver
        results.solver = solver
        print(f"  Time settings: t=[{t_start}, {t_end}]s, dt={dt}s")
        print(f"  Integrating with {solver}...")

        t0_sim = time.perf_counter()
        step = solve_dynamics(
            body,
            x0,
            (t_start, t_end),
            dt,
            solver=solver,
            rtol=rtol if rtol is not None else dyn_cfg.rtol,
            atol=atol if atol is not None else dyn_cfg.atol,
            show_progress=show_progress,
        )
        elapsed = time.perf_counter() - t0_sim
        print(f"\n  ✓ Integration complete in {elapsed:.2f}s")

        results.time = step.t
        results.displacement = step.x[:, :6]
        results.velocity = step.x[:, 6:]
        results.acceleration = step.xddot
        results.elapsed_time = elapsed
        results.n_time_steps = len(step.t)

        # ================================================================
        # STEP 5: Check for NaN, Inf, and divergence
        # ================================================================
        check_solution(results, step.x)
        if not step.success and results.success:
            results.success = False
            results.status = -1
            results.message = step.message

        if results.success:
            print(f"  ✓ Solution is stable")
            print(f"  Max displacement: {results.max_displacement:.4f} m")
            xf = step.x[-1]
            print(f"  Final position: surge={xf[0]:.4f} m, heave={xf[2]:.4f} m, pitch={xf[4]:.4e} rad")
        else:
            print(f"  ⚠ WARNING: {results.message}")

        # ================================================================
        # STEP 6: Save results
        # ================================================================
        if save_results:
            print("\n" + "-" * 70)
            print(" " * 20 + "< SAVING RESULTS >\n")
            save_simulation_results(results, results_path, workspace_path)

    print("\n" + "=" * 70)
    print(" " * 15 + "SIMULATION COMPLETE")
    print("=" * 70)

    return results


def save_simulation_results(
    results: SimulationResults,
    results_path: Path,
    workspace_path: Path | None = None,
) -> None:
    """Write time histories as .npy files and a JSON summary."""
    results_path = Path(results_path)
    bin_path = results_path / "bin"
    bin_path.mkdir(parents=True, exist_ok=True)
    timestamp = results.timestamp

    def get_rel_path(file_path: Path) -> str:
        if workspace_path is not None:
            try:
                return str(file_path.relative_to(workspace_path))
            except ValueError:
                pass
        return str(file_path)

    for name, data in (
        ("displacement", results.displacement),
        ("velocity", results.velocity),
        ("acceleration", results.acceleration),
    ):
        path = write_binary(np.column_stack([results.time, data]), bin_path / f"{name[:4]}_{timestamp}")
        setattr(results, f"{name}_file", get_rel_path(path))
        print(f"  Saved {name} data: {getattr(results, f'{name}_file')}")

    summary_file = results_path / f"results_{timestamp}_{results.case_id}.json"
    results.summary_file = get_rel_path(summary_file)
    with open(summary_file, "w", encoding="utf-8") as f:
        json.dump(results.to_dict(), f, indent=2)
    print(f"  Saved summary: {results.summary_file}")


def write_binary(data: NDArray, filepath: str | Path) -> Path:
    """
    Save data to binary file (numpy format).

    Args:
        data: NumPy array to save
        filepath: Output file path, .npy is appended when missing

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    if not filepath.suffix:
        filepath = filepath.with_suffix('.npy')
    np.save(filepath, data)
    return filepath


def read_binary(filepath: str | Path) -> NDArray:
    """Load data from binary file (numpy format)."""
    return np.load(filepath)


__all__ = [
    "Configs",
    "load_configs_from_manifest",
    "configs_from_dict",
    "load_configs",
    "prepare_store",
    "build_model",
    "SimulationResults",
    "check_solution",
    "run_a_simulation",
    "save_simulation_results",
    "write_binary",
    "read_binary",
]
