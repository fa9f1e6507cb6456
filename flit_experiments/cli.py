"""
Experiments Command Line Interface

Inspect an experiments manifest without writing code: list the
experiments, check that each of them compiles, or see which variant a
given set of arguments lands in.

Usage:
    flit-experiments list
    flit-experiments validate
    flit-experiments validate free_shipping_threshold_test
    flit-experiments variant free_shipping_threshold_test --arg user_id=t2_1 --json-arg is_mod=true

Exit codes are CI friendly: 0 on success, 1 on configuration or usage
errors, 2 when the bucketing key is missing from the variant arguments.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import get_settings
from .errors import ExperimentError, ManifestError, MissingBucketKeyError
from .filewatcher import InMemoryManifest
from .manifest import load_manifest
from .registry import Experiments

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_MISSING_BUCKET_KEY = 2


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up command line argument parsing"""
    parser = argparse.ArgumentParser(
        prog="flit-experiments",
        description="Inspect and evaluate Flit experiment manifests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # List all experiments in the manifest
    flit-experiments --manifest experiments.json list

    # Check every experiment compiles (use in CI before shipping a manifest)
    flit-experiments validate

    # Which variant does t2_1 get?
    flit-experiments variant free_shipping_threshold_test --arg user_id=t2_1
        """
    )

    parser.add_argument(
        '--manifest', '-m',
        help='Path to the experiments manifest (default: FLIT_EXPERIMENTS_MANIFEST_PATH)'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging output'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('list', help='List all experiments and exit')

    validate_parser = subparsers.add_parser('validate', help='Check that experiments compile')
    validate_parser.add_argument(
        'experiment_names',
        nargs='*',
        help='Experiments to validate (default: all)'
    )

    variant_parser = subparsers.add_parser('variant', help='Evaluate an experiment for some arguments')
    variant_parser.add_argument('experiment_name', help='Name of the experiment to evaluate')
    variant_parser.add_argument(
        '--arg',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='String argument passed to the experiment (repeatable)'
    )
    variant_parser.add_argument(
        '--json-arg',
        action='append',
        default=[],
        metavar='KEY=JSON',
        help='Argument whose value is decoded as JSON, e.g. is_mod=true or age=30 (repeatable)'
    )

    return parser


def parse_variant_args(string_args: List[str], json_args: List[str]) -> Dict[str, Any]:
    """
    Turn KEY=VALUE pairs into the variant() argument mapping

    Raises:
        ValueError: If a pair has no '=' or a JSON value does not decode
    """
    args: Dict[str, Any] = {}
    for pair in string_args:
        key, sep, value = pair.partition('=')
        if not sep:
            raise ValueError(f"expected KEY=VALUE, got '{pair}'")
        args[key] = value
    for pair in json_args:
        key, sep, value = pair.partition('=')
        if not sep:
            raise ValueError(f"expected KEY=JSON, got '{pair}'")
        try:
            args[key] = json.loads(value)
        except ValueError as e:
            raise ValueError(f"invalid JSON for '{key}': {e}") from e
    return args


def list_command(experiments: Experiments) -> int:
    names = experiments.experiment_names()
    print("\n📋 Available Experiments:")
    for name in names:
        config = experiments.get_config(name)
        print(f"   • {name} ({config.type or 'no type'}, owner: {config.owner or 'unknown'})")
    print(f"\nFound {len(names)} experiment(s)")
    return EXIT_OK


def validate_command(experiments: Experiments, names: List[str]) -> int:
    names = names or experiments.experiment_names()
    failures = 0
    for name in names:
        try:
            experiments.validate(name)
            print(f"✅ {name}")
        except ExperimentError as e:
            failures += 1
            print(f"❌ {name}: {e}")

    if failures:
        print(f"\n{failures} of {len(names)} experiment(s) failed validation")
        return EXIT_ERROR
    print(f"\nAll {len(names)} experiment(s) are valid")
    return EXIT_OK


def variant_command(experiments: Experiments, name: str, args: Dict[str, Any]) -> int:
    try:
        variant = experiments.variant(name, args)
    except MissingBucketKeyError as e:
        print(f"⚠️ {e}")
        return EXIT_MISSING_BUCKET_KEY
    except ExperimentError as e:
        print(f"❌ {e}")
        return EXIT_ERROR

    if variant:
        print(f"🎯 {name}: {variant}")
    else:
        print(f"➖ {name}: no variant")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    manifest_path = args.manifest or get_settings().manifest_path
    try:
        # One-shot commands read the manifest once, no watcher thread needed
        experiments = Experiments(InMemoryManifest(load_manifest(manifest_path)))
    except ManifestError as e:
        print(f"❌ {e}")
        return EXIT_ERROR

    if args.command == 'list':
        return list_command(experiments)
    if args.command == 'validate':
        return validate_command(experiments, args.experiment_names)

    try:
        variant_args = parse_variant_args(args.arg, args.json_arg)
    except ValueError as e:
        print(f"❌ {e}")
        return EXIT_ERROR
    return variant_command(experiments, args.experiment_name, variant_args)


if __name__ == "__main__":
    sys.exit(main())
