#!/usr/bin/env python3
"""
ZABR Smile Calibration - Command Line Interface

Usage:
    zabr-smile calibrate --data <file> --forward <F> --expiry <T> [--fix name=value ...]
                         [--guess name=value ...] [--config <file>] [--output <file>]
    zabr-smile demo [--noise <std>] [--seed <n>]
    zabr-smile config [--show | --generate <file>]
    zabr-smile version
"""

import argparse
import json
import logging
import sys
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from . import __version__
from .calibration import SmileContext, ZabrInterpolation
from .errors import InvalidInputError
from .models import PARAMETER_NAMES, ZabrParameters, generate_synthetic_smile


def setup_logging(verbose: bool = False, debug: bool = False):
    """Setup logging for CLI."""
    if debug:
        level = logging.DEBUG
    elif verbose:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )


def parse_assignments(items: Optional[Sequence[str]]) -> Dict[str, float]:
    """Parse ['beta=0.5', 'gamma=1'] into {'beta': 0.5, 'gamma': 1.0}."""
    values: Dict[str, float] = {}
    for item in items or []:
        name, sep, raw = item.partition("=")
        name = name.strip().lower()
        if not sep or name not in PARAMETER_NAMES:
            raise InvalidInputError(
                f"expected name=value with name in {', '.join(PARAMETER_NAMES)}, got {item!r}"
            )
        try:
            values[name] = float(raw)
        except ValueError:
            raise InvalidInputError(f"invalid value for {name}: {raw!r}") from None
    return values


def print_result(smile: ZabrInterpolation) -> None:
    """Print the fitted parameters and errors."""
    result = smile.result
    print(f"  alpha: {smile.alpha:.6f}")
    print(f"  beta:  {smile.beta:.6f}")
    print(f"  nu:    {smile.nu:.6f}")
    print(f"  rho:   {smile.rho:.6f}")
    print(f"  gamma: {smile.gamma:.6f}")
    print(f"  RMS error: {result.rms_error:.6e}")
    print(f"  Max error: {result.max_error:.6e}")
    print(f"  Status:    {result.termination_status.value}")
    print(f"  Restarts:  {result.restarts_used} (best: {result.best_restart})")
    print(f"  Time:      {result.calibration_time:.3f}s")


def print_fit_table(smile: ZabrInterpolation) -> None:
    """Print market vs model volatility per strike."""
    model = np.atleast_1d(smile(smile.strikes))
    table = pd.DataFrame({
        "strike": smile.strikes,
        "market": smile.vols,
        "model": model,
        "error": model - smile.vols,
    })
    print(table.to_string(index=False, float_format=lambda v: f"{v:.6f}"))


def cmd_calibrate(args):
    """Calibrate a smile from a CSV of strikes and volatilities."""
    from .config import load_config

    print(f"\n{'='*60}")
    print("ZABR SMILE - CALIBRATE")
    print(f"{'='*60}\n")

    config = load_config(args.config)

    print(f"Loading data from: {args.data}")
    data = pd.read_csv(args.data)
    missing = {args.strike_col, args.vol_col}.difference(data.columns)
    if missing:
        print(f"Missing columns in {args.data}: {', '.join(sorted(missing))}")
        return 1

    fixed = parse_assignments(args.fix)
    guess = parse_assignments(args.guess)
    guess.update(fixed)

    smile = ZabrInterpolation.from_dataframe(
        data,
        SmileContext(expiry=args.expiry, forward=args.forward),
        strike_col=args.strike_col,
        vol_col=args.vol_col,
        fixed=fixed.keys(),
        **guess,
        **config.calibration.interpolation_kwargs(),
    )
    result = smile.update()

    print(f"\nCalibrated {len(smile.strikes)} points "
          f"(fixed: {', '.join(smile.guess.fixed_names()) or 'none'})")
    print_result(smile)
    print()
    print_fit_table(smile)

    if args.output:
        with open(args.output, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
        print(f"\nResult saved to: {args.output}")

    return 0


def cmd_demo(args):
    """Calibrate a synthetic smile and report parameter recovery."""
    print(f"\n{'='*60}")
    print("ZABR SMILE - DEMO")
    print(f"{'='*60}\n")

    true_params = ZabrParameters(alpha=0.045, beta=0.5, nu=0.35, rho=-0.25, gamma=1.0)
    forward, expiry = 0.04, 5.0
    data = generate_synthetic_smile(
        forward=forward,
        expiry=expiry,
        params=true_params,
        n_strikes=11,
        noise_std=args.noise,
        seed=args.seed,
    )

    print("True parameters:")
    for name, value in true_params.to_dict().items():
        print(f"  {name}: {value:.6f}")

    smile = ZabrInterpolation.from_dataframe(
        data,
        SmileContext(expiry=expiry, forward=forward),
        beta=true_params.beta,
        gamma=true_params.gamma,
        fixed=["beta", "gamma"],
        error_accept=1e-6,
        max_guesses=20,
    )
    smile.update()

    print("\nCalibrated (beta and gamma fixed):")
    print_result(smile)
    print()
    print_fit_table(smile)

    return 0


def cmd_config(args):
    """Manage configuration."""
    from .config import Config, load_config

    if args.generate:
        config = Config()
        config.save(args.generate)
        print(f"Configuration template saved to: {args.generate}")
        return 0

    if args.show:
        config = load_config(args.config_file)
        print(json.dumps(config.to_dict(), indent=2))
        return 0

    # Default: show config help
    print("Configuration management:")
    print("  --show          Show current configuration")
    print("  --generate FILE Generate configuration template")
    return 0


def cmd_version(args):
    """Print version."""
    print(f"zabr-smile {__version__}")
    return 0


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="zabr-smile",
        description="ZABR smile calibration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Calibrate a synthetic smile
  zabr-smile demo

  # Calibrate market quotes with beta fixed
  zabr-smile calibrate --data smile.csv --forward 0.04 --expiry 5 --fix beta=0.5

  # Generate config template
  zabr-smile config --generate config.yaml
        """
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Calibrate command
    calibrate_parser = subparsers.add_parser("calibrate", help="Calibrate a smile")
    calibrate_parser.add_argument("--data", "-d", required=True,
                                  help="CSV file with strike and volatility columns")
    calibrate_parser.add_argument("--forward", "-f", type=float, required=True, help="Forward level")
    calibrate_parser.add_argument("--expiry", "-t", type=float, required=True,
                                  help="Expiry in years")
    calibrate_parser.add_argument("--fix", action="append", metavar="NAME=VALUE",
                                  help="Hold a parameter fixed (repeatable)")
    calibrate_parser.add_argument("--guess", action="append", metavar="NAME=VALUE",
                                  help="Starting value of a free parameter (repeatable)")
    calibrate_parser.add_argument("--strike-col", default="strike",
                                  help="Strike column (default: strike)")
    calibrate_parser.add_argument("--vol-col", default="implied_vol",
                                  help="Volatility column (default: implied_vol)")
    calibrate_parser.add_argument("--config", "-c", help="Config file")
    calibrate_parser.add_argument("--output", "-o", help="Output file for results (JSON)")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Calibrate a synthetic smile")
    demo_parser.add_argument("--noise", type=float, default=0.0,
                             help="Std of vol noise added to the synthetic smile (default: 0)")
    demo_parser.add_argument("--seed", type=int, default=None, help="Noise seed")

    # Config command
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("--show", action="store_true", help="Show current config")
    config_parser.add_argument("--generate", metavar="FILE", help="Generate config template")
    config_parser.add_argument("--config-file", "-c", help="Config file to show")

    # Version command
    subparsers.add_parser("version", help="Show version")

    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.debug)

    if not args.command:
        parser.print_help()
        return 0

    commands = {
        "calibrate": cmd_calibrate,
        "demo": cmd_demo,
        "config": cmd_config,
        "version": cmd_version,
    }

    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    except Exception as e:
        if args.debug:
            raise
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
