#!/usr/bin/env python3
"""Command-line interface for LingoMirror.

This module provides the CLI for managing language mirrors:
- Argument parsing and validation
- Configuration file loading and merging with command-line options
- Logging setup
- Help and version information

Example:
    >>> from lingomirror.cli import parse_arguments
    >>> args = parse_arguments(["alternatives", "add", "Portuguese", "pt-BR", "/media/pt"])
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from lingomirror.core.constants import LINGOMIRROR_VERSION, ConfigKey
from lingomirror.infrastructure.config_manager import SYSTEM_CONFIG_DIR, ConfigError, ConfigManager, ConfigSource
from lingomirror.infrastructure.logger import Logger, configure_logging

VERSION = LINGOMIRROR_VERSION
DESCRIPTION = "LingoMirror - Per-language hardlinked library mirrors"


class CLIError(Exception):
    """Exception raised for CLI-related errors."""

    pass


def _add_alternative_commands(subparsers) -> None:
    parser = subparsers.add_parser("alternatives", help="Manage language alternatives")
    actions = parser.add_subparsers(dest="action", required=True)

    actions.add_parser("list", help="List alternatives and their mirrors")

    add = actions.add_parser("add", help="Create a language alternative")
    add.add_argument("name", help="Display name, e.g. Portuguese")
    add.add_argument("language_code", help="Language code, e.g. pt or pt-BR")
    add.add_argument("base_path", help="Absolute directory that will hold this language's mirrors")
    add.add_argument("--metadata-language", help="Metadata language (default: from language code)")
    add.add_argument("--metadata-country", help="Metadata country (default: from language code)")

    remove = actions.add_parser("remove", help="Delete an alternative and its mirrors")
    remove.add_argument("alternative", help="Alternative id or name")
    remove.add_argument("--delete-libraries", action="store_true", help="Remove mirror libraries from the host")
    remove.add_argument("--delete-files", action="store_true", help="Delete mirror directories")


def _add_mirror_commands(subparsers) -> None:
    parser = subparsers.add_parser("mirrors", help="Manage library mirrors")
    actions = parser.add_subparsers(dest="action", required=True)

    add = actions.add_parser("add", help="Mirror a source library into an alternative")
    add.add_argument("alternative", help="Alternative id or name")
    add.add_argument("library", help="Source library id or name")
    add.add_argument("--target-path", help="Mirror directory (default: rendered from the base path)")
    add.add_argument("--name", dest="library_name", help="Mirror library name (default: rendered template)")

    sync = actions.add_parser("sync", help="Sync one mirror")
    sync.add_argument("mirror", help="Mirror id")

    remove = actions.add_parser("remove", help="Delete a mirror")
    remove.add_argument("alternative", help="Alternative id or name")
    remove.add_argument("library", help="Source library id or name")
    remove.add_argument("--delete-library", action="store_true", help="Remove the mirror library from the host")
    remove.add_argument("--delete-files", action="store_true", help="Delete the mirror directory")
    remove.add_argument("--force", action="store_true", help="Remove from configuration even if a step fails")


def _add_library_commands(subparsers) -> None:
    parser = subparsers.add_parser("libraries", help="Manage host libraries")
    actions = parser.add_subparsers(dest="action", required=True)

    actions.add_parser("list", help="List host libraries and their mirror roles")

    add = actions.add_parser("add", help="Register a source library")
    add.add_argument("name", help="Library name")
    add.add_argument("paths", nargs="+", help="Library directories")
    add.add_argument("--type", dest="collection_type", help="Collection type, e.g. movies or tvshows")

    remove = actions.add_parser("remove", help="Unregister a library and clean up its mirrors")
    remove.add_argument("library", help="Library id or name")


def _add_user_commands(subparsers) -> None:
    parser = subparsers.add_parser("users", help="Manage user language assignments")
    actions = parser.add_subparsers(dest="action", required=True)

    actions.add_parser("list", help="List users and their languages")

    add = actions.add_parser("add", help="Register a host user")
    add.add_argument("username", help="Username")
    add.add_argument("--admin", action="store_true", help="Mark the user as an administrator")

    remove = actions.add_parser("remove", help="Remove a host user")
    remove.add_argument("user", help="User id or username")

    assign = actions.add_parser("assign", help="Assign a language to a user")
    assign.add_argument("user", help="User id or username")
    assign.add_argument("alternative", help="Alternative id or name, or 'default'")
    assign.add_argument("--manual", action="store_true", help="Protect from automatic reassignment")
    assign.add_argument("--unmanaged", action="store_true", help="Record the language without managing access")

    clear = actions.add_parser("clear", help="Reset a user to the default language")
    clear.add_argument("user", help="User id or username")

    actions.add_parser("reconcile", help="Reapply library access for every managed user")
    actions.add_parser("enable-all", help="Manage library access for every user")

    disable = actions.add_parser("disable", help="Stop managing a user")
    disable.add_argument("user", help="User id or username")
    disable.add_argument("--restore-full-access", action="store_true", help="Grant access to all libraries")


def parse_arguments(args: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        args: Argument list to parse (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace

    Raises:
        SystemExit: On invalid arguments or --help/--version
        CLIError: If option values are invalid
    """
    parser = argparse.ArgumentParser(
        prog="lingomirror",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create a Portuguese alternative
  lingomirror alternatives add Portuguese pt-BR /media/pt

  # Mirror the Movies library into it
  lingomirror mirrors add Portuguese Movies

  # Sync every mirror
  lingomirror sync

  # Assign the language to a user
  lingomirror users assign alice Portuguese
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {VERSION}",
    )

    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        type=str,
        help="Configuration file path (YAML format)",
    )

    parser.add_argument("--store", metavar="FILE", type=str, help="Mirror document path")
    parser.add_argument("--host", metavar="FILE", type=str, help="Host inventory path")

    log_group = parser.add_argument_group("logging options")
    log_group.add_argument("--debug", action="store_true", help="Enable debug logging")
    log_group.add_argument("--log-file", metavar="FILE", type=str, help="Also log to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    _add_alternative_commands(subparsers)
    _add_mirror_commands(subparsers)
    _add_user_commands(subparsers)

    sync = subparsers.add_parser("sync", help="Sync all mirrors (or one alternative's)")
    sync.add_argument("alternative", nargs="?", help="Alternative id or name")

    subparsers.add_parser("cleanup", help="Remove orphaned mirrors and repair user access")
    _add_library_commands(subparsers)

    validate = subparsers.add_parser("validate", help="Check whether a mirror target is acceptable")
    validate.add_argument("library", help="Source library id or name")
    validate.add_argument("target_path", help="Proposed mirror directory")

    parsed = parser.parse_args(args)

    _validate_arguments(parsed)

    return parsed


def _validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate parsed arguments.

    Raises:
        CLIError: If validation fails
    """
    if args.config:
        config_path = Path(args.config)

        if not config_path.exists():
            raise CLIError(f"Configuration file does not exist: {args.config}")

        if not config_path.is_file():
            raise CLIError(f"Configuration path is not a file: {args.config}")


def load_config_from_file(config_path: str) -> Dict:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        CLIError: If file cannot be loaded or parsed
    """
    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)

        if not config:
            raise CLIError(f"Configuration file is empty: {config_path}")

        if not isinstance(config, dict):
            raise CLIError(f"Configuration file must contain a YAML dictionary: {config_path}")

        return config

    except yaml.YAMLError as e:
        raise CLIError(f"Failed to parse configuration file: {config_path}\n{e}")

    except IOError as e:
        raise CLIError(f"Failed to read configuration file: {config_path}\n{e}")


def build_config_from_args(args: argparse.Namespace) -> Dict:
    """
    Build configuration dictionary from command-line arguments.

    Only options that were given are included, so lower-precedence
    sources keep their values otherwise.
    """
    section: Dict = {}

    if args.store:
        section["store"] = {"path": args.store}
    if args.host:
        section["host"] = {"path": args.host}

    logging_section = {}
    if args.debug:
        logging_section["level"] = "DEBUG"
    if args.log_file:
        logging_section["file"] = args.log_file
    if logging_section:
        section["logging"] = logging_section

    return {"lingomirror": section} if section else {}


def build_config_manager(args: argparse.Namespace) -> ConfigManager:
    """
    Assemble the configuration hierarchy.

    Defaults < /etc/lingomirror/config.yaml < --config file < LINGOMIRROR_*
    environment < command-line options.

    Raises:
        CLIError: If a configuration file cannot be loaded
    """
    config = ConfigManager()

    try:
        system_file = Path(SYSTEM_CONFIG_DIR) / "config.yaml"
        if system_file.is_file():
            config.load_file(str(system_file), ConfigSource.SYSTEM_CONFIG)

        if args.config:
            config.load_dict(load_config_from_file(args.config), ConfigSource.USER_CONFIG)
    except ConfigError as e:
        raise CLIError(e.message)

    args_config = build_config_from_args(args)
    if args_config:
        config.load_dict(args_config, ConfigSource.CLI_ARGS)

    return config


def setup_logging(args: argparse.Namespace, config: ConfigManager) -> Logger:
    """
    Setup logging based on arguments and configuration.

    Returns:
        Configured logger instance
    """
    log_level = "DEBUG" if args.debug else config.get(ConfigKey.LOG_LEVEL, "INFO")
    log_file = args.log_file or config.get(ConfigKey.LOG_FILE)
    return configure_logging(level=log_level, log_file=log_file)


def print_banner(logger: Logger) -> None:
    """
    Print startup banner with version information.
    """
    logger.debug("=" * 60)
    logger.debug(f"LingoMirror v{VERSION}")
    logger.debug(DESCRIPTION)
    logger.debug("=" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Parses arguments, assembles configuration and logging, then hands
    control to ``lingomirror.main`` to run the command.
    """
    try:
        args = parse_arguments(argv)

        config = build_config_manager(args)

        logger = setup_logging(args, config)

        print_banner(logger)

        from lingomirror.main import run_lingomirror

        return run_lingomirror(args, config, logger)

    except CLIError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        import traceback

        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
