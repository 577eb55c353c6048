# src/manifestor/cli.py

import argparse
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from manifestor import __version__, log_utils
from manifestor.config import load_config
from manifestor.exceptions import ConfigurationError, FatalUpdateError, ManifestorError
from manifestor.manifest.orchestrator import CoreUpdater, RulesUpdater

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="manifestor",
        description="Manifestor - core binary manifest and rule index updater",
    )
    parser.add_argument("--config", help="Path to a manifestor.yaml configuration file")
    parser.add_argument(
        "--log-level",
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument("--static-dir", help="Directory holding the published manifests")
    parser.add_argument(
        "--dist-dir", help="Directory receiving repackaged core archives"
    )

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("core", help="Update the core binary manifest")
    subparsers.add_parser("rules", help="Update the rule-set indices")
    subparsers.add_parser("all", help="Update the core manifest, then the rule indices")
    subparsers.add_parser("version", help="Display Manifestor version")
    return parser


def _prepare_config(args: argparse.Namespace) -> Dict[str, Any]:
    config = load_config(args.config)
    if args.static_dir:
        config["STATIC_DIR"] = args.static_dir
    if args.dist_dir:
        config["DIST_DIR"] = args.dist_dir
    if args.log_level:
        config["LOG_LEVEL"] = args.log_level

    if config.get("LOG_LEVEL"):
        log_utils.set_log_level(str(config["LOG_LEVEL"]))
    if config.get("LOG_DIR"):
        log_utils.add_file_logging(Path(config["LOG_DIR"]), str(config["LOG_LEVEL"]))
    return config


def run_core(config: Dict[str, Any]) -> int:
    result = CoreUpdater(config).run()
    if result.written:
        tags = ", ".join(f"{k}={v}" for k, v in result.updated_channels.items())
        log_utils.logger.info(f"Core manifest updated ({tags})")
    return EXIT_OK


def run_rules(config: Dict[str, Any]) -> int:
    RulesUpdater(config).run()
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the Manifestor command-line interface.

    Returns 0 on success, including runs where nothing changed, and 1 when a
    fatal condition aborted the run. Persisted files are never partially
    rewritten on failure.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        log_utils.logger.info(f"Manifestor v{__version__}")
        return EXIT_OK
    if args.command is None:
        parser.print_help()
        return EXIT_OK

    try:
        config = _prepare_config(args)
    except ConfigurationError as e:
        log_utils.logger.error(f"Failed to load configuration: {e}")
        return EXIT_FAILURE

    try:
        if args.command == "core":
            return run_core(config)
        if args.command == "rules":
            return run_rules(config)
        # "all": a failing core run must not prevent the rules run
        core_status = _guarded(run_core, config)
        rules_status = _guarded(run_rules, config)
        return max(core_status, rules_status)
    except FatalUpdateError as e:
        log_utils.logger.error(f"Update aborted: {e}")
        return EXIT_FAILURE
    except ManifestorError as e:
        log_utils.logger.error(f"Update failed: {e}")
        return EXIT_FAILURE


def _guarded(runner: Callable[[Dict[str, Any]], int], config: Dict[str, Any]) -> int:
    try:
        return runner(config)
    except ManifestorError as e:
        log_utils.logger.error(f"Update failed: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
