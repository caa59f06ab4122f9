"""gateway-onboard CLI."""

import argparse
import sys

from rich.console import Console

from onboard.config import ConfigWriteError, resolve_config_path
from onboard.flow import InvalidFlowError
from onboard.prompts import RichPrompter, WizardCancelled
from onboard.utils.logger import setup_logging
from onboard.wizard import OnboardOptions, run_onboarding


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="gateway-onboard",
        description="Interactive first-run setup for the local agent gateway.",
    )
    parser.add_argument(
        "config_path",
        nargs="?",
        default=None,
        help="Config file (default: $GATEWAY_ONBOARD_CONFIG or ~/.gateway-onboard/config.yaml).",
    )
    parser.add_argument(
        "--flow",
        default=None,
        help="quickstart, advanced, or manual (alias of advanced).",
    )
    parser.add_argument(
        "--mode",
        choices=["local", "remote"],
        default=None,
        help="Skip the local/remote question.",
    )
    parser.add_argument("--workspace", default=None, help="Agent workspace directory.")
    parser.add_argument(
        "--accept-risk",
        action="store_true",
        help="Acknowledge the security warning without prompting.",
    )
    parser.add_argument("--skip-channels", action="store_true", help="Do not configure chat channels.")
    parser.add_argument("--skip-health", action="store_true", help="Do not probe the gateway at the end.")
    parser.add_argument("--verbose", action="store_true", help="Log debug output to stderr.")
    parser.add_argument("--log-file", default=None, help="Also write a debug log to this file.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, log_file=args.log_file)

    console = Console()
    opts = OnboardOptions(
        flow=args.flow,
        mode=args.mode,
        workspace=args.workspace,
        accept_risk=args.accept_risk,
        skip_channels=args.skip_channels,
        skip_health=args.skip_health,
    )
    try:
        return run_onboarding(opts, RichPrompter(console), resolve_config_path(args.config_path))
    except (WizardCancelled, KeyboardInterrupt):
        console.print("\n[yellow]Setup cancelled.[/yellow]")
        return 1
    except (InvalidFlowError, ConfigWriteError) as e:
        console.print(f"[red]{e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
