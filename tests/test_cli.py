"""Tests for the unified CLI: typed handoff and end-to-end commands."""

from __future__ import annotations

import sys
from decimal import Decimal

import pytest
from _pytest.capture import CaptureFixture
from _pytest.monkeypatch import MonkeyPatch

from clinicledger.application.billing import payments as payment_workflow
from clinicledger.cli import main as unified_cli
from clinicledger.domain.errors import Overpayment


def test_pay_handoff_builds_typed_request_without_touching_sys_argv(monkeypatch: MonkeyPatch) -> None:
    captured: payment_workflow.RecordPaymentRequest | None = None

    def fake_run(request: payment_workflow.RecordPaymentRequest) -> payment_workflow.RecordPaymentResult:
        nonlocal captured
        captured = request
        return payment_workflow.RecordPaymentResult(status="rejected", error=Overpayment("too much"))

    sentinel_argv = ["sentinel", "keep-this"]
    monkeypatch.setattr(sys, "argv", sentinel_argv)
    monkeypatch.setattr(payment_workflow, "run_record_payment", fake_run)

    exit_code = unified_cli.main(["pay", "card-1", "1500", "--method", "CARD", "--key", "k-1", "--actor", "m-1"])

    assert exit_code == 1
    assert sys.argv == sentinel_argv
    assert captured == payment_workflow.RecordPaymentRequest(
        document_id="card-1",
        amount="1500",
        method="CARD",
        actor="m-1",
        note=None,
        idempotency_key="k-1",
    )


def test_no_command_prints_help(capsys: CaptureFixture[str]) -> None:
    assert unified_cli.main([]) == 1
    assert "Clinic billing ledger CLI" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [["charge"], ["report"]])
def test_missing_subcommand_is_an_error(argv: list[str], capsys: CaptureFixture[str]) -> None:
    assert unified_cli.main(argv) == 1
    assert "Specify" in capsys.readouterr().out


def test_actor_is_required() -> None:
    with pytest.raises(SystemExit):
        unified_cli.main(["close", "card-1"])


def test_invalid_report_date_is_rejected_by_parser() -> None:
    with pytest.raises(SystemExit):
        unified_cli.main(["report", "revenue", "--on", "10/03/2026"])


def test_billing_session_end_to_end(capsys: CaptureFixture[str]) -> None:
    opened = unified_cli.main(
        ["open", "--subject", "client-1", "--owner", "doctor-1", "--kind", "MEDICAL_CARD", "--id", "card-1"]
    )
    assert opened == 0
    assert "Opened card-1" in capsys.readouterr().out

    assert unified_cli.main(["charge", "service", "card-1", "consultation", "2", "--actor", "doctor-1"]) == 0
    out = capsys.readouterr().out
    assert "Recorded SERVICE consultation: 100000.00" in out

    assert unified_cli.main(["charge", "adjust", "card-1", "10000", "--note", "loyalty", "--actor", "doctor-1"]) == 0
    capsys.readouterr()

    assert unified_cli.main(["pay", "card-1", "30000", "--key", "till-1", "--actor", "m-1"]) == 0
    assert "Recorded payment" in capsys.readouterr().out
    assert unified_cli.main(["pay", "card-1", "30000", "--key", "till-1", "--actor", "m-1"]) == 0
    assert "nothing written" in capsys.readouterr().out

    assert unified_cli.main(["pay", "card-1", "60001", "--actor", "m-1"]) == 1
    assert capsys.readouterr().out.startswith("Error: ")

    assert unified_cli.main(["report", "outstanding", "client-1"]) == 0
    assert "Outstanding for client-1: 60000.00" in capsys.readouterr().out

    assert unified_cli.main(["close", "card-1", "--actor", "m-1"]) == 0
    out = capsys.readouterr().out
    assert "Closed card-1" in out
    assert "60000.00 UZS is still outstanding" in out

    assert unified_cli.main(["show", "card-1"]) == 0
    out = capsys.readouterr().out
    assert "Items (2):" in out
    assert "Payments (1):" in out
    assert "status PARTLY_PAID" in out

    assert unified_cli.main(["list", "--open-only"]) == 0
    assert "No documents found." in capsys.readouterr().out


def test_feed_charge_accepts_fractional_weight(capsys: CaptureFixture[str]) -> None:
    unified_cli.main(
        ["open", "--subject", "client-2", "--owner", "moderator-1", "--kind", "FEED_SALE", "--id", "sale-1"]
    )
    capsys.readouterr()

    assert unified_cli.main(["charge", "feed", "sale-1", "royal-canin-adult", "0.5", "--actor", "moderator-1"]) == 0

    assert "32000.00" in capsys.readouterr().out


def test_charge_with_explicit_price(monkeypatch: MonkeyPatch) -> None:
    from clinicledger.application.billing import charges as charge_workflow

    captured: list[charge_workflow.ChargeRequest] = []

    def fake_run(request: charge_workflow.ChargeRequest) -> charge_workflow.ChargeResult:
        captured.append(request)
        return charge_workflow.ChargeResult(status="rejected")

    monkeypatch.setattr(charge_workflow, "run_add_charge", fake_run)

    exit_code = unified_cli.main(
        ["charge", "medication", "card-1", "meloxicam-inj", "--price", "22000", "--note", "inj", "--actor", "d"]
    )

    assert exit_code == 1
    assert captured[0].kind == "MEDICATION"
    assert captured[0].quantity == "1"
    assert Decimal(captured[0].unit_price) == Decimal("22000")  # type: ignore[arg-type]
    assert captured[0].note == "inj"


def test_unknown_document_reports_error(capsys: CaptureFixture[str]) -> None:
    assert unified_cli.main(["show", "missing-1"]) == 1
    assert capsys.readouterr().out.startswith("Error: ")


def test_period_reports_print_totals(capsys: CaptureFixture[str]) -> None:
    unified_cli.main(["open", "--subject", "client-1", "--owner", "doctor-1", "--id", "card-1"])
    unified_cli.main(["charge", "service", "card-1", "consultation", "--actor", "doctor-1"])
    unified_cli.main(["pay", "card-1", "50000", "--method", "PAYME", "--actor", "m-1"])
    capsys.readouterr()

    assert unified_cli.main(["report", "methods"]) == 0
    out = capsys.readouterr().out
    assert "PAYME" in out
    assert "50000.00" in out

    assert unified_cli.main(["report", "revenue", "--period", "week"]) == 0
    assert "50000.00" in capsys.readouterr().out

    assert unified_cli.main(["report", "earnings", "--staff", "doctor-1"]) == 0
    assert "doctor-1" in capsys.readouterr().out

    assert unified_cli.main(["report", "fees", "client-1"]) == 0
    assert "waiting for payment" in capsys.readouterr().out


def test_serve_handoff_normalizes_exit(monkeypatch: MonkeyPatch) -> None:
    import uvicorn

    calls: list[tuple[str, int]] = []

    def fake_run(app: object, host: str, port: int) -> None:
        calls.append((host, port))
        raise SystemExit(3)

    monkeypatch.setattr(uvicorn, "run", fake_run)

    assert unified_cli.main(["serve", "--port", "9001"]) == 3
    assert calls == [("127.0.0.1", 9001)]
