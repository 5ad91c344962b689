"""Command-line entry point for zone-rectify."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import load_config
from .controller import ZoneController, configure_logging
from .exporter import write_store
from .models import CheckReport, ZoneRectifyError


def _build_parser() -> argparse.ArgumentParser:
    """Create the CLI parser."""
    parser = argparse.ArgumentParser(description="Rectify and check DNSSEC ordering data of stored zones.")
    parser.add_argument("--log-level", help="Override log level (default from config).")
    parser.add_argument(
        "-e",
        "--var",
        action="append",
        help="Template variable for the zone store in KEY=VALUE form. Can be repeated.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    rectify_parser = subparsers.add_parser("rectify-zone", help="Rectify one or more zones.")
    rectify_parser.add_argument("zones", nargs="+", help="Zone names to rectify.")
    rectify_parser.add_argument("--dry-run", action="store_true", help="Do not write the zone store back.")

    rectify_all_parser = subparsers.add_parser("rectify-all-zones", help="Rectify every zone.")
    rectify_all_parser.add_argument("--dry-run", action="store_true", help="Do not write the zone store back.")

    check_parser = subparsers.add_parser("check-zone", help="Check one or more zones for correctness.")
    check_parser.add_argument("zones", nargs="+", help="Zone names to check.")

    check_all_parser = subparsers.add_parser("check-all-zones", help="Check every zone for correctness.")
    check_all_parser.add_argument(
        "--exit-on-error",
        action="store_true",
        help="Stop at the first zone with errors.",
    )

    list_parser = subparsers.add_parser("list-zone", help="Show a zone including ordering metadata.")
    list_parser.add_argument("zone", help="Zone name to show.")
    list_parser.add_argument("--output", help="Path to write the export (default stdout).")
    list_parser.add_argument(
        "--format",
        choices=["yaml", "json"],
        default="yaml",
        help="Serialization format for the export.",
    )
    return parser


def _parse_template_vars(values: list[str] | None) -> dict[str, str]:
    """Convert KEY=VALUE pairs into a dict."""
    result: dict[str, str] = {}
    if not values:
        return result
    for value in values:
        if "=" not in value:
            raise ZoneRectifyError(f"Invalid template var '{value}', expected KEY=VALUE.")
        key, val = value.split("=", 1)
        result[key] = val
    return result


def _emit_reports(reports: list[CheckReport]) -> int:
    """Print check findings and return the number of zones with errors."""
    failed = 0
    for report in reports:
        for finding in report.findings:
            print(finding)
        print(report.summary())
        if not report.passed:
            failed += 1
    return failed


def _run_rectify(controller: ZoneController, args: argparse.Namespace) -> int:
    """Execute the rectify-zone command."""
    outcome = controller.rectify(args.zones, dry_run=args.dry_run)
    for result in outcome.results:
        print(f"Rectified {result.zone}: {result.names} names ({result.posture.value})")
    for zone, reason in outcome.failures.items():
        print(f"Failed to rectify {zone}: {reason}", file=sys.stderr)
    return 0 if outcome.ok else 1


def _run_rectify_all(controller: ZoneController, args: argparse.Namespace) -> int:
    """Execute the rectify-all-zones command."""
    rectified, failed = controller.rectify_all(dry_run=args.dry_run)
    print(f"Rectified {rectified + failed} zones, {failed} failed.")
    return 0 if not failed else 1


def _run_check(controller: ZoneController, args: argparse.Namespace) -> int:
    """Execute the check-zone command."""
    failed = _emit_reports(controller.check(args.zones))
    return 0 if not failed else 1


def _run_check_all(controller: ZoneController, args: argparse.Namespace) -> int:
    """Execute the check-all-zones command."""
    reports = controller.check_all(exit_on_error=args.exit_on_error)
    failed = _emit_reports(reports)
    print(f"Checked {len(reports)} zones, {failed} had errors.")
    return 0 if not failed else 1


def _run_list(controller: ZoneController, args: argparse.Namespace) -> int:
    """Execute the list-zone command."""
    content = controller.export(args.zone, fmt=args.format)
    if args.output:
        write_store(Path(args.output), content)
        print(f"Wrote zone to {args.output}")
    else:
        print(content)
    return 0


COMMANDS = {
    "rectify-zone": _run_rectify,
    "rectify-all-zones": _run_rectify_all,
    "check-zone": _run_check,
    "check-all-zones": _run_check_all,
    "list-zone": _run_list,
}


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config()
        configure_logging(args.log_level or config.log_level)
        controller = ZoneController(config, template_vars=_parse_template_vars(args.var))
        status = COMMANDS[args.command](controller, args)
    except ZoneRectifyError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except Exception as exc:  # noqa: BLE001
        print(f"Unexpected error: {exc}", file=sys.stderr)
        sys.exit(3)
    sys.exit(status)


if __name__ == "__main__":
    main()
