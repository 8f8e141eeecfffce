"""
fshydro - Free-Surface Hydrodynamics (Python)
=============================================

Time-domain hydrodynamic forces on a rigid floating body in waves.

Modules:
    - params: Configuration dataclasses (Env, BodyConfig, Wave, SimuConfig, etc.)
    - Coeffs: Frequency-domain coefficient store
    - IRF: Radiation and wave-exciting impulse-response kernels
    - History: Rolling history buffers
    - Forces: Static and convolution force terms
    - Body: Right-hand side of Cummins' equation
    - Waves: Incident wave models
    - integrator: Time integration with accepted-step reporting
    - Simu: Main simulation runner

Quick Start:
    >>> from fshydro import run_a_simulation
    >>> results = run_a_simulation("path/to/INPUT_manifest.json")

CLI Usage:
    # Run simulation from manifest file
    $ fshydro run path/to/INPUT_manifest.json

    # Or with Python module
    $ python -m fshydro run path/to/INPUT_manifest.json
"""

__version__ = "0.1.0"

# Lazy imports to avoid circular dependencies and improve startup time
def __getattr__(name):
    """Lazy load modules and classes on first access."""

    # Configuration classes
    if name in ("Env", "BodyConfig", "Wave", "HydroConfig", "SimuConfig",
                "InputManifest", "load_json", "load_env_config", "load_body_config",
                "load_wave_config", "load_simu_config", "load_manifest"):
        from . import params
        return getattr(params, name)

    # Coefficients and kernels
    if name in ("CoefficientStore", "load_coefficients", "save_coefficients",
                "resonant_coefficients"):
        from . import Coeffs
        return getattr(Coeffs, name)
    if name in ("RadiationKernels", "ExcitingKernels", "HydroKernels",
                "ConsistencyReport", "build_kernels", "check_consistency"):
        from . import IRF
        return getattr(IRF, name)
    if name == "HistoryBuffer":
        from . import History
        return History.HistoryBuffer

    # Force classes
    if name in ("ConvolutionForce", "HydrostaticForce", "BuoyancyForce",
                "GravityForce", "ViscousDragForce", "LinearDampingForce"):
        from . import Forces
        return getattr(Forces, name)

    if name == "FloatingBody":
        from . import Body
        return Body.FloatingBody

    if name in ("IncidentWave", "StillWater", "RegularWave", "IrregularWave", "make_wave"):
        from . import Waves
        return getattr(Waves, name)

    # Simulation
    if name in ("run_a_simulation", "SimulationResults", "Configs"):
        from . import Simu
        return getattr(Simu, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


# Define what gets exported with "from fshydro import *"
__all__ = [
    # Version
    "__version__",

    # Main simulation function
    "run_a_simulation",
    "SimulationResults",
    "Configs",

    # Configuration classes
    "Env",
    "BodyConfig",
    "Wave",
    "HydroConfig",
    "SimuConfig",
    "InputManifest",

    # Hydrodynamics
    "CoefficientStore",
    "RadiationKernels",
    "ExcitingKernels",
    "HydroKernels",
    "ConsistencyReport",
    "build_kernels",
    "check_consistency",
    "HistoryBuffer",
    "FloatingBody",

    # Force calculators
    "ConvolutionForce",
    "HydrostaticForce",
    "BuoyancyForce",
    "GravityForce",
    "ViscousDragForce",
    "LinearDampingForce",

    # Waves
    "IncidentWave",
    "StillWater",
    "RegularWave",
    "IrregularWave",
    "make_wave",

    # Loaders
    "load_json",
    "load_env_config",
    "load_body_config",
    "load_wave_config",
    "load_simu_config",
    "load_manifest",
    "load_coefficients",
    "save_coefficients",
    "resonant_coefficients",
]
