"""
pm CLI - plugpm Package Manager.

Pacman-style interface for managing registry plugins.

Usage:
    pm -S [plugin[@constraint] ...]  Install plugins (all declared ones if none given)
    pm -R <plugin> ...               Remove plugins
    pm -U [plugin ...]               Update plugins (all declared ones if none given)
    pm -Q                            List installed plugins
    pm -Ql <plugin>                  List plugin files
    pm -Si <plugin>[@version]        Show registry info
"""

import argparse
import sys
from pathlib import Path

from plugpm.config import DEFAULT_CONFIG_FILE, ConfigError, Settings, load_settings, write_default_config
from plugpm.logger import configure_logging


class PMError(Exception):
    """Base exception for pm errors."""

    pass


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with pacman-style flags."""
    parser = argparse.ArgumentParser(
        prog="pm",
        description="plugpm Package Manager - Pacman-style plugin manager",
        add_help=False,
    )

    # Operation flags (mutually exclusive)
    ops = parser.add_mutually_exclusive_group()
    ops.add_argument("-S", "--sync", action="store_true", help="Install plugin")
    ops.add_argument("-R", "--remove", action="store_true", help="Remove plugin")
    ops.add_argument("-U", "--upgrade", action="store_true", help="Upgrade plugin(s)")
    ops.add_argument("-Q", "--query", action="store_true", help="Query installed")
    ops.add_argument("-h", "--help", action="store_true", help="Show help")

    # Query sub-flags
    parser.add_argument("-l", "--list", action="store_true", help="List files (-Ql)")
    parser.add_argument("-i", "--info", action="store_true", help="Show info (-Si)")

    # Common options
    parser.add_argument("-c", "--config", type=Path, help="Configuration file")
    parser.add_argument("--registry", help="Registry URL")
    parser.add_argument("--plugins-dir", help="Plugins directory")
    parser.add_argument(
        "--init-config", action="store_true", help="Write a default configuration file"
    )
    parser.add_argument(
        "--log-format", choices=["basic", "json"], help="Log output format"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Positional arguments
    parser.add_argument("targets", nargs="*", help="Plugin keys (vendor/name)")

    return parser


def print_help():
    """Print help message."""
    help_text = """
pm - plugpm Package Manager

Usage:
    pm -S [plugin[@constraint] ...]  Install plugins (all declared ones if none given)
    pm -R <plugin> ...               Remove plugins
    pm -U [plugin ...]               Update plugins (all declared ones if none given)
    pm -Q                            List installed plugins
    pm -Ql <plugin>                  List plugin files
    pm -Si <plugin>[@version]        Show registry info

Options:
    -c, --config <file>              Configuration file (default: ./pm.toml if present)
    --registry <url>                 Registry URL
    --plugins-dir <dir>              Plugins directory
    --init-config                    Write a default configuration file
    --log-format <basic|json>        Log output format
    -v, --verbose                    Verbose output
    -h, --help                       Show this help
"""
    print(help_text.strip())


def build_settings(args: argparse.Namespace) -> Settings:
    """
    Load settings from the configuration file and command-line overrides.

    Raises:
        ConfigError: If the configuration is unreadable or invalid
    """
    config_file = args.config
    if config_file is None and Path(DEFAULT_CONFIG_FILE).is_file():
        config_file = Path(DEFAULT_CONFIG_FILE)

    overrides = {
        "registry_url": args.registry,
        "plugins_dir": args.plugins_dir,
        "log_format": args.log_format,
    }
    return load_settings(config_file, overrides)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for pm CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        if args.init_config:
            config_file = args.config or Path(DEFAULT_CONFIG_FILE)
            if config_file.exists():
                raise PMError(f"{config_file} already exists")
            write_default_config(config_file)
            print(f"Wrote {config_file}")
            return 0

        # Show help
        if args.help or (
            not args.sync
            and not args.remove
            and not args.upgrade
            and not args.query
        ):
            print_help()
            return 0

        settings = build_settings(args)
        configure_logging(
            "info" if args.verbose else settings.log_level, settings.log_format
        )

        # Route to appropriate command
        if args.sync and args.info:
            # -Si: Registry info
            from pm.commands.query import info_command

            return info_command(args, settings)

        elif args.sync:
            # -S: Install
            from pm.commands.install import install_command

            return install_command(args, settings)

        elif args.remove:
            # -R: Remove
            from pm.commands.remove import remove_command

            return remove_command(args, settings)

        elif args.upgrade:
            # -U: Upgrade
            from pm.commands.upgrade import upgrade_command

            return upgrade_command(args, settings)

        elif args.query:
            # -Q: Query
            from pm.commands.query import query_command

            return query_command(args, settings)

    except (PMError, ConfigError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
