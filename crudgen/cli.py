# File: crudgen/cli.py
"""
crudgen - Command-Line Interface
=================================

CLI built with the standard-library ``argparse`` module.

Usage examples::

    # Write a connection file template (.crudgen.json)
    crudgen --init

    # Introspect the configured database
    crudgen --output ./generated

    # Replace an existing output directory
    crudgen -o ./generated --force

    # Tables from a pgAdmin ERD file, no database contact at all
    crudgen --erd ./schema.pgerd --offline

    # Save the introspected model, then generate from it later
    crudgen --dump-model model.yaml
    crudgen --snapshot model.yaml -o ./generated

Exit codes:
    0 - success
    1 - generation failed, errors found
    2 - unexpected error occurred, fatal error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, NoReturn, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from crudgen.generator import AccessorGenerator, GenerationReport
from crudgen.models import DatabaseConfig, GenerationConfig, ReadStyle

# ---------------------------------------------------------------------------
# Logger (configured in _setup_logging)
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("crudgen")


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS: int = 0
EXIT_GENERATION_FAILED: int = 1
EXIT_FATAL: int = 2

CONFIG_FILE_NAME: str = ".crudgen.json"


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure the root crudgen logger based on verbosity level.

    Args:
        verbosity: -1 = ERROR, 0 = WARNING, 1 = INFO, 2+ = DEBUG.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    elif verbosity == 0:
        level = logging.WARNING
    else:
        level = logging.ERROR

    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    fmt: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    datefmt: str = "%H:%M:%S"
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root_logger: logging.Logger = logging.getLogger("crudgen")
    root_logger.setLevel(level)

    # Remove existing handlers to prevent duplication
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the argument parser."""
    from crudgen import __version__

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="crudgen",
        description=(
            "crudgen - typed CRUD accessor generator for PostgreSQL.\n\n"
            "Reads tables, keys and enum types from a database (or a pgAdmin "
            "ERD file / schema snapshot) and writes one node-postgres "
            "TypeScript module per table."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  %(prog)s --init\n"
            "  %(prog)s -o ./generated --force\n"
            "  %(prog)s --erd ./schema.pgerd --offline\n"
            "  %(prog)s --snapshot model.yaml -o ./generated\n"
        ),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"crudgen v{__version__}",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        default=False,
        help=f"Create a {CONFIG_FILE_NAME} connection file template and exit.",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=f"Connection file (default: ./{CONFIG_FILE_NAME}).",
    )

    # --- Output ---
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        metavar="DIR",
        help="Output directory for the generated modules (default: ./generated).",
    )
    output_group.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Replace the output directory if it already exists.",
    )

    # --- Schema source ---
    source_group = parser.add_argument_group("schema source")
    exclusive = source_group.add_mutually_exclusive_group()
    exclusive.add_argument(
        "--erd",
        type=str,
        default=None,
        metavar="PATH",
        help="Read tables from a pgAdmin ERD file instead of the catalog.",
    )
    exclusive.add_argument(
        "--snapshot",
        type=str,
        default=None,
        metavar="PATH",
        help="Read the schema model from a JSON/YAML snapshot.",
    )
    source_group.add_argument(
        "--offline",
        action="store_true",
        default=False,
        help="With --erd: do not contact the database (no enum types).",
    )
    source_group.add_argument(
        "--dump-model",
        type=str,
        default=None,
        metavar="PATH",
        help="Write the schema model as a JSON/YAML snapshot instead of generating.",
    )

    # --- Generation overrides ---
    gen_group = parser.add_argument_group("generation")
    gen_group.add_argument(
        "--read-style",
        type=str,
        default=None,
        choices=[style.value for style in ReadStyle],
        help="One getter per key subset (per_key) or a single criteria getter.",
    )
    gen_group.add_argument(
        "--max-combinations",
        type=int,
        default=None,
        metavar="N",
        help="Largest column set expanded into every subset (default: 6).",
    )

    # --- Verbosity ---
    verbosity_group = parser.add_argument_group("verbosity")
    verbosity_group.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for INFO, -vv for DEBUG).",
    )
    verbosity_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Suppress all output except errors.",
    )

    return parser


# ---------------------------------------------------------------------------
# Connection file
# ---------------------------------------------------------------------------


def _config_path(args: argparse.Namespace) -> Path:
    if args.config:
        return Path(args.config)
    return Path.cwd() / CONFIG_FILE_NAME


def write_config_template(path: Path) -> int:
    """Write the connection file template; refuses to overwrite one."""
    if path.exists():
        logger.error("A configuration file already exists at %s", path)
        return EXIT_GENERATION_FAILED
    template: Dict[str, Any] = DatabaseConfig(password="xxx").model_dump()
    path.write_text(json.dumps(template, indent=4) + "\n", encoding="utf-8")
    print(f"Configuration file successfully created: {path}")
    return EXIT_SUCCESS


def load_database_config(path: Path) -> DatabaseConfig:
    """
    Read the connection file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file isn't valid JSON or has unknown/invalid keys.
    """
    if not path.exists():
        raise FileNotFoundError(
            f"The configuration file {path} does not exist. "
            f"Generate one using the \"crudgen --init\" command."
        )
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
        return DatabaseConfig.model_validate(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc
    except PydanticValidationError as exc:
        raise ValueError(f"Invalid configuration file {path}: {exc}") from exc


def _build_generation_config(args: argparse.Namespace) -> GenerationConfig:
    overrides: Dict[str, Any] = {"overwrite_existing": args.force}
    if args.output is not None:
        overrides["output_dir"] = args.output
    if args.read_style is not None:
        overrides["read_style"] = args.read_style
    if args.max_combinations is not None:
        overrides["max_combination_columns"] = args.max_combinations
    return GenerationConfig(**overrides)


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


def _run_generation(args: argparse.Namespace) -> int:
    """Run the pipeline for the selected schema source; returns the exit code."""
    try:
        config: GenerationConfig = _build_generation_config(args)
    except PydanticValidationError as exc:
        logger.error("Invalid generation options: %s", exc)
        return EXIT_GENERATION_FAILED

    needs_database: bool = args.snapshot is None and not (args.erd and args.offline)
    database: DatabaseConfig = DatabaseConfig()
    if needs_database:
        try:
            database = load_database_config(_config_path(args))
        except (FileNotFoundError, ValueError) as exc:
            logger.error("%s", exc)
            return EXIT_GENERATION_FAILED

    generator: AccessorGenerator = AccessorGenerator(config, database)
    report: GenerationReport
    if args.erd:
        report = generator.generate_from_erd(args.erd, offline=args.offline, dump_to=args.dump_model)
    elif args.snapshot:
        report = generator.generate_from_snapshot(args.snapshot, dump_to=args.dump_model)
    else:
        report = generator.generate_from_database(dump_to=args.dump_model)

    if not args.quiet:
        print(report.summary())
    return report.exit_code


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def run(argv: Optional[Sequence[str]] = None) -> int:
    """
    Parse *argv*, run the requested command and return the exit code.

    Unexpected exceptions (raised I/O errors included) map to ``EXIT_FATAL``.
    """
    parser: argparse.ArgumentParser = _build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    verbosity: int = -1 if args.quiet else args.verbose
    _setup_logging(verbosity)

    if args.offline and not args.erd:
        logger.warning("--offline only applies together with --erd; ignoring it.")

    try:
        if args.init:
            return write_config_template(_config_path(args))
        exit_code: int = _run_generation(args)
    except Exception:
        logger.exception("Unexpected error, aborting.")
        return EXIT_FATAL

    if exit_code == EXIT_SUCCESS:
        logger.info("Generation completed successfully.")
    else:
        logger.error("Generation failed with exit code %d.", exit_code)
    return exit_code


def cli_main(argv: Optional[Sequence[str]] = None) -> NoReturn:
    """
    Main CLI entry point.

    Can be called from ``__main__.py`` or the console script.
    """
    sys.exit(run(argv))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "cli_main",
    "run",
    "write_config_template",
    "load_database_config",
    "CONFIG_FILE_NAME",
    "EXIT_SUCCESS",
    "EXIT_GENERATION_FAILED",
    "EXIT_FATAL",
]

logger.debug("crudgen.cli loaded.")
