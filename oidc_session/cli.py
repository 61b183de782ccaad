"""Command-line interface for oidc-session setup and configuration."""

from __future__ import annotations

import argparse
import os
import sys

from pathlib import Path
from typing import TYPE_CHECKING

from .relay import FRAME_RESPONSE_HTML, SILENT_SSO_HTML, install_relay_page


if TYPE_CHECKING:
    from .config import OidcSessionSettings


def main(argv: list[str] | None = None) -> int:
    """Run the main CLI entry point.

    Parameters
    ----------
    argv : list of str, optional
        Arguments to parse instead of ``sys.argv``.

    Returns
    -------
    int
        Exit code.
    """
    parser = argparse.ArgumentParser(
        prog="oidc-session",
        description="OIDC session manager setup tools",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # relay command
    relay_parser = subparsers.add_parser(
        "relay",
        help="Write the silent SSO relay page into the public directory",
    )
    relay_parser.add_argument(
        "public_dir",
        nargs="?",
        type=Path,
        default=None,
        help="Directory served at the app's public URL (omit with --print)",
    )
    relay_parser.add_argument(
        "--print",
        dest="print_only",
        action="store_true",
        help="Print the page instead of writing it",
    )
    relay_parser.add_argument(
        "--name",
        type=str,
        default=None,
        help="File name of the page (uses config default)",
    )
    relay_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Overwrite an existing file with different content",
    )
    relay_parser.add_argument(
        "--client-frame",
        action="store_true",
        help="Use the page answering the protocol client's standalone hidden-frame mode",
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Show or export configuration",
    )
    config_group = config_parser.add_mutually_exclusive_group()
    config_group.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration",
    )
    config_group.add_argument(
        "--env",
        action="store_true",
        help="Export configuration as environment variables",
    )
    config_group.add_argument(
        "--sources",
        action="store_true",
        help="Show configuration file sources",
    )

    args = parser.parse_args(argv)

    if args.command == "relay":
        return handle_relay(args)
    if args.command == "config":
        return handle_config(args)
    parser.print_help()
    return 0


def handle_relay(args: argparse.Namespace) -> int:
    """Handle the relay command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import get_settings

    html = FRAME_RESPONSE_HTML if args.client_frame else SILENT_SSO_HTML
    if args.print_only:
        print(html, end="")
        return 0

    if args.public_dir is None:
        print("Error: public_dir is required unless --print is given.", file=sys.stderr)
        return 2

    relay_page = args.name or get_settings().relay_page
    try:
        target = install_relay_page(args.public_dir, relay_page, force=args.force, html=html)
    except FileExistsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Relay page ready at {target}")
    return 0


def handle_config(args: argparse.Namespace) -> int:
    """Handle the config command.

    Parameters
    ----------
    args : argparse.Namespace
        Parsed command line arguments.

    Returns
    -------
    int
        Exit code.
    """
    from .config import OidcSessionSettings

    if args.sources:
        return show_config_sources()

    settings = OidcSessionSettings()
    output = format_config_env(settings) if args.env else format_config_show(settings)
    print(output)
    return 0


def show_config_sources() -> int:
    """Print each configuration source and whether it is in effect.

    Returns
    -------
    int
        Exit code.
    """
    from .config import CONFIG_FILE_ENV, config_sources

    print("Configuration Sources (in order of precedence):\n")
    print(f"{'Source':<40} {'Status':<15} {'Path'}")
    print("-" * 80)
    print(f"{'Built-in defaults':<40} {'✓ Active':<15} ")

    for label, path in config_sources():
        if path is None:
            print(f"{label:<40} {'✗ Not set':<15} ")
        else:
            status = "✓ Found" if path.is_file() else "✗ Not found"
            print(f"{label:<40} {status:<15} {path}")

    env_vars = sorted(k for k in os.environ if k.startswith("OIDC_SESSION_") and k != CONFIG_FILE_ENV)
    if env_vars:
        shown = ", ".join(env_vars[:3]) + ("..." if len(env_vars) > 3 else "")
        print(f"{'Environment variables':<40} {f'✓ {len(env_vars)} vars':<15} {shown}")
    else:
        print(f"{'Environment variables':<40} {'✗ No vars':<15} ")

    print("\nNote: Later sources override earlier ones.")
    return 0


def format_config_show(settings: OidcSessionSettings) -> str:
    """Format configuration for display.

    Parameters
    ----------
    settings : OidcSessionSettings
        The settings object to format.

    Returns
    -------
    str
        Formatted configuration string.
    """
    lines = ["oidc-session Configuration\n" + "=" * 40 + "\n"]
    lines.extend(
        f"  {field} = {value!r}"
        for field, value in settings.model_dump(exclude={"log"}).items()
    )
    lines.append("")
    lines.append("[log]")
    lines.extend(f"  {field} = {value!r}" for field, value in settings.log.model_dump().items())
    return "\n".join(lines)


def format_config_env(settings: OidcSessionSettings) -> str:
    """Format configuration as ``export`` lines for a shell.

    Parameters
    ----------
    settings : OidcSessionSettings
        The settings object to format.

    Returns
    -------
    str
        One ``export OIDC_SESSION_...=...`` line per setting.
    """
    lines = []
    for field, value in settings.model_dump(exclude={"log"}).items():
        lines.append(f"export OIDC_SESSION_{field.upper()}={_env_value(value)}")
    for field, value in settings.log.model_dump().items():
        lines.append(f"export OIDC_SESSION_LOG__{field.upper()}={_env_value(value)}")
    return "\n".join(lines)


def _env_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if not text or any(c in text for c in " %$'\"()"):
        return "'" + text.replace("'", "'\\''") + "'"
    return text


if __name__ == "__main__":
    sys.exit(main())
