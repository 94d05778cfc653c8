#!/usr/bin/env python3
"""Unified command-line interface for the clinic billing ledger.

Usage:
    cl open --subject CLIENT --owner STAFF [--kind KIND] [--id ID]
    cl charge service|medication <doc> <ref> [qty] --actor STAFF
    cl charge feed <doc> <ref> <kg> --actor STAFF
    cl charge adjust <doc> <amount> --actor STAFF --note TEXT
    cl pay <doc> <amount> --method CASH --actor STAFF [--key KEY]
    cl close <doc> --actor STAFF
    cl show <doc>
    cl list [--status STATUS] [--client CLIENT] [--open-only]
    cl report revenue|methods|earnings [--period day|week|month|year] [--on DATE]
    cl report outstanding|fees <client>
    cl serve [--host] [--port]
"""

import argparse
import datetime as dt
import logging
from collections.abc import Callable, Sequence

from clinicledger.domain.billable_document import DOCUMENT_KINDS, DOCUMENT_STATUSES, PAYMENT_METHODS


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_legacy_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that may call sys.exit() (uvicorn does).

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from None


def _add_actor(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--actor", required=True, help="Staff member recording the entry")


def _add_period(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--period",
        choices=("day", "week", "month", "year"),
        default="day",
        help="Reporting window (default: day)",
    )
    parser.add_argument("--on", type=_parse_date, default=None, help="Any date inside the window (default: today)")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cl",
        description="Clinic billing ledger CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  open                       Open a billable document
  charge service|medication|feed|adjust
                             Record a charge or a correction
  pay                        Record a payment
  close                      Close a document
  show <doc>                 Show a document with items and payments
  list                       List documents
  report revenue|outstanding|earnings|methods|fees
                             Reports over recorded documents
  serve [--port]             Start the billing HTTP server

Notes:
  data/documents/<id>.beancount = one append-only journal per document
  config/catalog.toml           = service, medication and feed prices
""",
    )
    parser.add_argument("--home", default=None, help="Data root (default: $CLINICLEDGER_HOME or current directory)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # open
    open_parser = subparsers.add_parser("open", help="Open a billable document")
    open_parser.add_argument("--subject", required=True, help="Client the document bills")
    open_parser.add_argument("--owner", required=True, help="Staff member responsible for the case")
    open_parser.add_argument("--kind", choices=DOCUMENT_KINDS, default="GENERIC", help="Document kind")
    open_parser.add_argument("--id", default=None, help="Document id (generated if omitted)")

    # charge
    charge_parser = subparsers.add_parser("charge", help="Record a charge")
    charge_subparsers = charge_parser.add_subparsers(dest="charge_type", help="Charge type")
    for name, unit in (("service", "count"), ("medication", "count"), ("feed", "kg")):
        sub = charge_subparsers.add_parser(name, help=f"Charge a {name} from the catalog")
        sub.add_argument("document_id", help="Document id")
        sub.add_argument("ref", help="Catalog reference")
        if unit == "kg":
            sub.add_argument("quantity", help="Weight in kg")
        else:
            sub.add_argument("quantity", nargs="?", default="1", help="Quantity (default: 1)")
        sub.add_argument("--price", default=None, help="Unit price; skips the catalog lookup")
        sub.add_argument("--note", default=None, help="Free-text note")
        _add_actor(sub)

    adjust_parser = charge_subparsers.add_parser("adjust", help="Record a correction lowering the total")
    adjust_parser.add_argument("document_id", help="Document id")
    adjust_parser.add_argument("amount", help="Correction amount")
    adjust_parser.add_argument("--note", required=True, help="Reason for the correction")
    _add_actor(adjust_parser)

    # pay
    pay_parser = subparsers.add_parser("pay", help="Record a payment")
    pay_parser.add_argument("document_id", help="Document id")
    pay_parser.add_argument("amount", help="Amount paid")
    pay_parser.add_argument("--method", choices=PAYMENT_METHODS, default="CASH", help="Payment method")
    pay_parser.add_argument("--note", default=None, help="Free-text note")
    pay_parser.add_argument("--key", default=None, help="Idempotency key; retries with the same key are no-ops")
    _add_actor(pay_parser)

    # close
    close_parser = subparsers.add_parser("close", help="Close a document")
    close_parser.add_argument("document_id", help="Document id")
    _add_actor(close_parser)

    # show / list
    show_parser = subparsers.add_parser("show", help="Show a document")
    show_parser.add_argument("document_id", help="Document id")

    list_parser = subparsers.add_parser("list", help="List documents")
    list_parser.add_argument("--status", choices=DOCUMENT_STATUSES, default=None, help="Filter by payment status")
    list_parser.add_argument("--client", default=None, help="Filter by client")
    list_parser.add_argument("--open-only", action="store_true", help="Hide closed documents")

    # report
    report_parser = subparsers.add_parser("report", help="Reports")
    report_subparsers = report_parser.add_subparsers(dest="report_type", help="Report type")
    for name, help_text in (
        ("revenue", "Payments collected in a period"),
        ("methods", "Payments collected per method"),
        ("earnings", "Charges recorded per staff member"),
    ):
        sub = report_subparsers.add_parser(name, help=help_text)
        _add_period(sub)
        if name == "earnings":
            sub.add_argument("--staff", default=None, help="Only this staff member")
    for name, help_text in (
        ("outstanding", "Outstanding balance across a client's open documents"),
        ("fees", "Charged, unpaid and waiting totals for a client"),
    ):
        sub = report_subparsers.add_parser(name, help=help_text)
        sub.add_argument("client", help="Client reference")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the billing HTTP server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.home:
        from clinicledger.runtime import set_project_root

        set_project_root(args.home)
    if args.verbose:
        from clinicledger.runtime import set_log_level

        set_log_level(logging.DEBUG)

    if args.command == "open":
        from clinicledger.cli.billing import cmd_open

        return cmd_open(args)
    elif args.command == "charge":
        if args.charge_type is None:
            print("Specify a charge type: service, medication, feed or adjust.")
            return 1
        from clinicledger.cli.billing import cmd_charge

        return cmd_charge(args)
    elif args.command == "pay":
        from clinicledger.cli.billing import cmd_pay

        return cmd_pay(args)
    elif args.command == "close":
        from clinicledger.cli.billing import cmd_close

        return cmd_close(args)
    elif args.command == "show":
        from clinicledger.cli.billing import cmd_show

        return cmd_show(args)
    elif args.command == "list":
        from clinicledger.cli.billing import cmd_list

        return cmd_list(args)
    elif args.command == "report":
        if args.report_type is None:
            print("Specify a report: revenue, outstanding, earnings, methods or fees.")
            return 1
        from clinicledger.cli.billing import cmd_report

        return cmd_report(args)
    elif args.command == "serve":
        from clinicledger.cli.billing import cmd_serve

        return _run_legacy_command(cmd_serve, args)

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
