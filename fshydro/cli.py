"""
Command-line interface for fshydro.

This module provides the CLI entry point for running simulations from the terminal.

Usage:
    # When installed via pip:
    $ fshydro run path/to/INPUT_manifest.json
    $ fshydro irf path/to/INPUT_manifest.json --out kernels.npz

    # When running as module:
    $ python -m fshydro run path/to/INPUT_manifest.json

    # Create a runnable workspace with synthetic coefficients:
    $ fshydro init my_case
    $ fshydro run my_case/INPUT_manifest.json
"""

from __future__ import annotations

import argparse
import json
import sys
import traceback
from pathlib import Path
from typing import Optional

import numpy as np

from . import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="fshydro",
        description="fshydro - time-domain floating body hydrodynamics CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run simulation with default settings
  fshydro run INPUT_manifest.json

  # Run with a solve_ivp method instead of fixed-step RK4
  fshydro run INPUT_manifest.json --solver RK45

  # Quick run without saving (for testing)
  fshydro run INPUT_manifest.json --no-save --no-progress

  # Inspect coefficient tables and kernels
  fshydro info INPUT_manifest.json

  # Export impulse-response kernels
  fshydro irf INPUT_manifest.json --out kernels.npz
""",
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run a simulation from manifest file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument(
        "manifest",
        type=str,
        help="Path to INPUT_manifest.json file",
    )
    run_parser.add_argument(
        "--case-id", "-c",
        type=int,
        default=1,
        help="Case identifier (default: 1)",
    )
    run_parser.add_argument(
        "--info", "-i",
        type=str,
        default="",
        help="Description/info string for the simulation",
    )
    run_parser.add_argument(
        "--output-dir", "-o",
        type=str,
        default="results",
        help="Output directory for results (default: results)",
    )
    run_parser.add_argument(
        "--no-save",
        action="store_true",
        help="Don't save results to files (useful for quick tests)",
    )
    run_parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bar during simulation",
    )
    run_parser.add_argument(
        "--solver", "-s",
        type=str,
        default=None,
        help="Override solver: RK4 or a solve_ivp method such as RK45, DOP853",
    )
    run_parser.add_argument(
        "--rtol",
        type=float,
        default=None,
        help="Relative tolerance for solve_ivp methods",
    )
    run_parser.add_argument(
        "--atol",
        type=float,
        default=None,
        help="Absolute tolerance for solve_ivp methods",
    )

    # Info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show coefficient ranges, kernel lengths and the consistency check",
    )
    info_parser.add_argument(
        "manifest",
        type=str,
        help="Path to INPUT_manifest.json file",
    )

    # IRF command
    irf_parser = subparsers.add_parser(
        "irf",
        help="Compute impulse-response kernels and export them to .npz",
    )
    irf_parser.add_argument(
        "manifest",
        type=str,
        help="Path to INPUT_manifest.json file",
    )
    irf_parser.add_argument(
        "--out",
        type=str,
        default="kernels.npz",
        help="Output file (default: kernels.npz)",
    )
    irf_parser.add_argument(
        "--dt",
        type=float,
        default=None,
        help="Timestep, defaults to the dynamic simulation dt",
    )

    # Init command (create workspace template)
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize a new workspace with template files",
    )
    init_parser.add_argument(
        "directory",
        type=str,
        nargs="?",
        default=".",
        help="Directory to initialize (default: current directory)",
    )
    init_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing files",
    )

    return parser


def _resolve_manifest(path_str: str) -> Optional[Path]:
    manifest_path = Path(path_str)
    if not manifest_path.exists():
        print(f"Error: Manifest file not found: {manifest_path}", file=sys.stderr)
        print(f"  Current directory: {Path.cwd()}", file=sys.stderr)
        return None
    return manifest_path


def cmd_run(args: argparse.Namespace) -> int:
    """Execute the run command."""
    from .Simu import run_a_simulation

    manifest_path = _resolve_manifest(args.manifest)
    if manifest_path is None:
        return 1

    try:
        results = run_a_simulation(
            manifest=manifest_path,
            case_id=args.case_id,
            info_string=args.info,
            results_dir=args.output_dir,
            save_results=not args.no_save,
            show_progress=not args.no_progress,
            solver=args.solver,
            rtol=args.rtol,
            atol=args.atol,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error during simulation: {e}", file=sys.stderr)
        traceback.print_exc()
        return 1

    if results.success:
        print(f"\n✓ Simulation completed successfully!")
        return 0
    print(f"\n✗ Simulation completed with issues: {results.message}", file=sys.stderr)
    return 1


def cmd_info(args: argparse.Namespace) -> int:
    """Execute the info command - show manifest, tables and kernels."""
    from .params import load_manifest
    from .Simu import build_model, load_configs_from_manifest

    manifest_path = _resolve_manifest(args.manifest)
    if manifest_path is None:
        return 1

    try:
        manifest = load_manifest(manifest_path)
        workspace_path = manifest_path.parent

        print("\n" + "=" * 60)
        print(" " * 15 + "MANIFEST INFORMATION")
        print("=" * 60)
        print(f"\n  Manifest: {manifest_path}")
        print(f"  Workspace: {workspace_path}")
        print(f"\n  Files:")
        for key in manifest.files:
            file_path = manifest.get_file_path(key, workspace_path)
            status = "✓" if file_path.exists() else "✗ (missing)"
            print(f"    {key}: {manifest.files[key]} {status}")

        configs = load_configs_from_manifest(manifest_path)
        store = configs.store
        print(f"\n  Coefficients:")
        print(f"    Radiation grid: {store.n_freq} points, "
              f"{store.omega[0]:.4g} - {store.omega_max:.4g} rad/s")
        print(f"    Exciting grid: {store.exc_omega.size} points, "
              f"{store.exc_omega[0]:.4g} - {store.exc_omega[-1]:.4g} rad/s")
        print(f"    Headings: {np.array2string(store.headings, precision=1)} deg")
        print(f"    A_inf diagonal: {np.array2string(np.diag(store.A_inf), precision=4)}")

        simu = configs.simu_config
        print(f"\n  Simulation:")
        print(f"    Static: {'enabled' if simu.static_enabled else 'disabled'}")
        print(f"    Dynamic: {'enabled' if simu.dynamic_enabled else 'disabled'}")
        if simu.dynamic_simu:
            print(f"    Time: {simu.dynamic_simu.tStart}s - {simu.dynamic_simu.tEnd}s")
            print(f"    dt: {simu.dynamic_simu.dt}s, solver: {simu.dynamic_simu.solver}")

        _, kernels = build_model(configs)
        rad, exc = kernels.radiation, kernels.exciting
        print(f"\n  Kernels:")
        print(f"    Radiation lags: {rad.n_lags} (tau_max={rad.tau[-1]:.4g}s)")
        print(f"    Radiation lengths (diagonal): {np.diag(rad.lengths).tolist()}")
        print(f"    Exciting lags: {exc.n_lags} (t_lead={exc.t_lead}s, heading={exc.heading} deg)")
        print(f"    Exciting lengths: {exc.lengths.tolist()}")
        print(f"    History capacity: {kernels.capacity}")

        report = kernels.consistency
        if report is not None:
            status = "passed" if report.passed else f"failed for {list(report.failed)}"
            print(f"\n  Consistency (damping vs added mass): {status}")
            print(f"    Max relative error: {report.max_error:.3%} (tol {report.tol:.1%})")

        print("\n" + "=" * 60)
        return 0

    except (FileNotFoundError, ValueError, KeyError) as e:
        print(f"Error reading manifest: {e}", file=sys.stderr)
        return 1


def cmd_irf(args: argparse.Namespace) -> int:
    """Execute the irf command - export kernels."""
    from .IRF import save_kernels
    from .Simu import build_model, load_configs_from_manifest

    manifest_path = _resolve_manifest(args.manifest)
    if manifest_path is None:
        return 1

    try:
        configs = load_configs_from_manifest(manifest_path)
        _, kernels = build_model(configs, dt=args.dt)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    save_kernels(kernels, out)
    print(f"✓ Saved kernels (dt={kernels.dt}s, {kernels.radiation.n_lags} lags) to {out}")
    return 0


def template_workspace() -> dict[str, object]:
    """
    Contents of a template workspace: a 1 m radius, 1 m draft spar buoy.

    Radiation coefficients are synthetic second-order fits; the exciting
    force is the Froude-Krylov heave and surge force of the waterplane.
    """
    from .Coeffs import resonant_coefficients
    from .params import Env

    env = Env()
    R, draft = 1.0, 1.0
    S = np.pi * R ** 2
    Vol = S * draft
    mass = env.rho * Vol

    omega = np.linspace(0.0, 20.0, 1001)
    decay_factor = np.exp(-omega ** 2 * draft / env.g)
    X = np.zeros((omega.size, 6), dtype=complex)
    X[:, 0] = 1j * env.rho * Vol * omega ** 2 * decay_factor
    X[:, 2] = env.rho * env.g * S * decay_factor

    store = resonant_coefficients(
        omega,
        strength=[800.0, 800.0, 2000.0, 100.0, 100.0, 0.0],
        decay=0.5,
        freq=1.5,
        A_inf=[1000.0, 1000.0, 1600.0, 200.0, 200.0, 10.0],
        X=X,
    )

    Ixx = mass * (3 * R ** 2 + draft ** 2) / 12
    body = {
        "name": "spar",
        "mass": mass,
        "Ig": [[Ixx, 0.0, 0.0], [0.0, Ixx, 0.0], [0.0, 0.0, mass * R ** 2 / 2]],
        "COG": [0.0, 0.0, -0.3],
        "COB": [0.0, 0.0, -draft / 2],
        "Vol": Vol,
        "S": S,
        "S11": np.pi * R ** 4 / 4,
        "S22": np.pi * R ** 4 / 4,
        "b_lin": [0.0] * 6,
        "Cd": [1.0, 1.0, 1.0, 0.0, 0.0, 0.0],
        "Area": [2 * R * draft, 2 * R * draft, S, 0.0, 0.0, 0.0],
    }

    simu_config = {
        "simulator": "fshydro",
        "static_simu": {
            "enabled": True,
            "parameters": {"method": "lm"}
        },
        "dynamic_simu": {
            "enabled": True,
            "numerical_method": {"solver": "RK4", "rtol": 1e-6, "atol": 1e-9},
            "time_settings": {
                "tStart": 0.0,
                "tEnd": 60.0,
                "dt": 0.05
            },
            "initial_state": [0.0, 0.0, 0.1, 0.0, 0.0, 0.0,
                              0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
        },
        "hydro": {
            "tau_max": 15.0,
            "t_lead": 2.0,
            "trunc_tol": 1e-6,
            "consistency_tol": 0.05
        }
    }

    wave = {
        "specType": "Regular",
        "Hs": 0.5,
        "Tp": 6.0,
        "propDir": 0.0
    }

    manifest = {
        "workspace_path": ".",
        "files": {
            "env": "env.json",
            "body": "body.json",
            "wave": "wave.json",
            "simu": "simu_config.json",
            "coeffs": "coeffs.npz"
        }
    }

    return {
        "INPUT_manifest.json": manifest,
        "simu_config.json": simu_config,
        "env.json": {"rho": env.rho, "g": env.g, "L": env.L},
        "body.json": body,
        "wave.json": wave,
        "coeffs.npz": store,
    }


def cmd_init(args: argparse.Namespace) -> int:
    """Execute the init command - create workspace template."""
    from .Coeffs import save_coefficients

    directory = Path(args.directory)
    directory.mkdir(parents=True, exist_ok=True)

    print(f"\nInitializing workspace in: {directory.absolute()}")

    for filename, content in template_workspace().items():
        file_path = directory / filename
        if file_path.exists() and not args.force:
            print(f"  Skipping {filename} (exists, use --force to overwrite)")
            continue
        if filename.endswith(".npz"):
            save_coefficients(content, file_path)
        else:
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(content, f, indent=2)
        print(f"  Created {filename}")

    print(f"\n✓ Workspace initialized!")
    print(f"\nNext steps:")
    print(f"  1. Replace coeffs.npz with your own coefficient tables")
    print(f"  2. Edit body.json, wave.json and simu_config.json as needed")
    print(f"  3. Run: fshydro run {directory}/INPUT_manifest.json")

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "info":
        return cmd_info(args)
    elif args.command == "irf":
        return cmd_irf(args)
    elif args.command == "init":
        return cmd_init(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
