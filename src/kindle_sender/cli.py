"""CLI for kindle-sender.

Usage:
    kindle-sender init                   # Create ~/.kindle_sender, show setup instructions
    kindle-sender send                   # Email every e-book in the to-send folder
    kindle-sender send --dry-run         # List what would be sent
    kindle-sender login                  # Sign in (or refresh) and cache the token
    kindle-sender status                 # Show configuration and token status
    kindle-sender logout                 # Delete the cached token

Global options:
    --config PATH    Settings file (default: $KINDLE_SENDER_CONFIG or ./config.json)
    --verbose        Debug logging
"""

from __future__ import annotations

import argparse
import logging
import os
import sys


def configure_logging(verbose: bool = False) -> None:
    level = "DEBUG" if verbose else os.environ.get("KINDLE_SENDER_LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _load_settings(config_path: str | None):
    from kindle_sender.config import ConfigError, DeliverySettings

    try:
        return DeliverySettings.from_file(config_path)
    except ConfigError as e:
        print(f"Error: {e}")
        print("Run 'kindle-sender init' for setup instructions")
        return None


def cmd_init(config_path: str | None) -> int:
    """Create the token directory and print setup instructions."""
    from kindle_sender.config import (
        DEFAULT_CALLBACK_URI,
        TOKEN_FILE,
        ensure_config_dir,
        get_status,
    )

    print("=" * 60)
    print("KINDLE-SENDER SETUP")
    print("=" * 60)
    print()

    config_dir = ensure_config_dir()
    print(f"Created: {config_dir}/")
    print(f"  Tokens will be cached in {TOKEN_FILE}")
    print()

    status = get_status(config_path)
    if status["config_exists"]:
        print(f"{status['config_file']} exists")
        return 0

    print("1. Register an app at https://entra.microsoft.com (App registrations):")
    print(f"   - Redirect URI (Web): {DEFAULT_CALLBACK_URI}")
    print("   - API permissions (delegated): Mail.Send, offline_access")
    print("   - Create a client secret")
    print()
    print("2. Add your sender address to the Kindle 'Approved Personal Document E-mail List'.")
    print()
    print(f"3. Create {status['config_file']}:")
    print()
    print(f"  cat > {status['config_file']} << 'EOF'")
    print("  {")
    print(f'    "callback_uri": "{DEFAULT_CALLBACK_URI}",')
    print('    "ebook_to_send_directory": "~/Books/to-send",')
    print('    "ebook_sent_directory": "~/Books/sent",')
    print('    "receivers": ["you@kindle.com"],')
    print('    "azure": {"client_id": "...", "client_secret": "...", "tenant_id": "common"}')
    print("  }")
    print("  EOF")
    print()
    return 0


def cmd_send(config_path: str | None, dry_run: bool = False, no_browser: bool = False) -> int:
    """Send all pending e-books."""
    from kindle_sender.azure import AuthenticationManager
    from kindle_sender.delivery import DeliveryFailedError, DeliveryOrchestrator, OrchestrationError
    from kindle_sender.mail import GraphMailClient

    logger = logging.getLogger("kindle_sender")

    settings = _load_settings(config_path)
    if settings is None:
        return 1

    auth = AuthenticationManager.from_settings(settings, open_browser=not no_browser)

    with GraphMailClient(receivers=settings.receivers) as mailer:
        orchestrator = DeliveryOrchestrator(settings, auth, mailer)
        try:
            outcome = orchestrator.run(dry_run=dry_run)
            outcome.raise_for_failures()
        except DeliveryFailedError as e:
            logger.error(f"Error sending files: {e}")
            return 1
        except OrchestrationError as e:
            logger.error(f"Command failed: {e}")
            return 1

    if outcome.total:
        logger.info("Files sent successfully!")
    return 0


def cmd_login(config_path: str | None, no_browser: bool = False) -> int:
    """Obtain a token (cached, refreshed or interactive) and show its status."""
    from kindle_sender.azure import AuthenticationManager, AuthError

    settings = _load_settings(config_path)
    if settings is None:
        return 1

    print("=" * 60)
    print("KINDLE-SENDER LOGIN")
    print("=" * 60)

    auth = AuthenticationManager.from_settings(settings, open_browser=not no_browser)
    try:
        auth.obtain_access_token()
    except AuthError as e:
        print(f"\nError: {e}")
        return 1

    print(f"\nToken ready ({auth.last_source.value})")
    return _print_token_info(auth)


def cmd_status(config_path: str | None) -> int:
    """Show configuration and token status."""
    from kindle_sender.azure import AuthenticationManager
    from kindle_sender.config import get_status

    status = get_status(config_path)

    print("=" * 60)
    print("KINDLE-SENDER STATUS")
    print("=" * 60)
    print()
    print(f"config file : {'[x]' if status['config_exists'] else '[ ]'} {status['config_file']}")
    print(f"token cache : {'[x]' if status['token'] else '[ ]'} {status['config_dir']}")
    print(f".env        : {'[x]' if status['env_file'] else '[ ]'}")
    print()

    if not status["config_exists"]:
        return 1

    settings = _load_settings(config_path)
    if settings is None:
        return 1

    for line in settings.describe():
        print(line)
    print()

    return _print_token_info(AuthenticationManager.from_settings(settings))


def cmd_logout() -> int:
    """Delete the cached token."""
    from kindle_sender.azure import TokenStore

    if TokenStore().clear():
        print("Token removed from local cache")
    else:
        print("No cached token")
    return 0


def _print_token_info(auth) -> int:
    info = auth.token_info()
    if info["status"] == "no_token":
        print("No token found - run 'kindle-sender login'")
        return 1

    print(f"Status        : {info['status']}")
    print(f"Expires in    : {info['expires_in']}")
    print(f"Refresh token : {'yes' if info['has_refresh_token'] else 'no'}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="kindle-sender",
        description="Send e-books to Kindle addresses through Microsoft Graph",
    )
    parser.add_argument("--config", help="Path to config.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("init", help="Create directories and show setup instructions")

    send_parser = subparsers.add_parser("send", help="Send e-books in the to-send folder")
    send_parser.add_argument(
        "--dry-run", action="store_true", help="List files without authenticating or sending"
    )
    send_parser.add_argument(
        "--no-browser", action="store_true", help="Don't open the sign-in URL automatically"
    )

    login_parser = subparsers.add_parser("login", help="Sign in and cache the token")
    login_parser.add_argument(
        "--no-browser", action="store_true", help="Don't open the sign-in URL automatically"
    )

    subparsers.add_parser("status", help="Show configuration and token status")
    subparsers.add_parser("logout", help="Delete the cached token")

    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging(args.verbose)

    if args.command == "init":
        return cmd_init(args.config)
    if args.command == "send":
        return cmd_send(args.config, dry_run=args.dry_run, no_browser=args.no_browser)
    if args.command == "login":
        return cmd_login(args.config, no_browser=args.no_browser)
    if args.command == "status":
        return cmd_status(args.config)
    if args.command == "logout":
        return cmd_logout()

    return 0


if __name__ == "__main__":
    sys.exit(main())
