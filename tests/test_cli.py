"""Tests for the command line interface."""

import json

import pytest
from rich.console import Console
from typer.testing import CliRunner

from move_defi_tracker.cli import main
from move_defi_tracker.core.models import (
    FetchErrorKind,
    PortfolioSummary,
    Position,
    PositionCategory,
    ScanResult,
    ScanStatus,
)

runner = CliRunner()

ADDRESS = "0x" + "d" * 64


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr(main, "console", Console(width=200))


def _fake_scan(result: ScanResult, summary: PortfolioSummary):
    async def scan(address, network):
        return result, summary, f"https://explorer.test/account/{address}"

    return scan


def test_list_protocols():
    """Test the protocol listing."""
    result = runner.invoke(main.app, ["list-protocols"])

    assert result.exit_code == 0
    assert "ECHELON" in result.output
    assert "LAYERBANK" in result.output


def test_list_adapters():
    """Test the adapter listing."""
    result = runner.invoke(main.app, ["list-adapters"])

    assert result.exit_code == 0
    assert "razor_lp" in result.output


def test_positions_unknown_network():
    """Test an unknown network exits with an error."""
    result = runner.invoke(main.app, ["positions", ADDRESS, "--network", "devnet"])

    assert result.exit_code == 1
    assert "Unknown network" in result.output


def test_positions_scan_error(monkeypatch):
    """Test scan errors are reported with a non-zero exit code."""
    error = ScanResult(
        address=ADDRESS,
        status=ScanStatus.ERROR,
        error="Account not found or has no resources",
        error_kind=FetchErrorKind.NOT_FOUND,
    )
    monkeypatch.setattr(main, "_scan", _fake_scan(error, PortfolioSummary(address=ADDRESS, positions=[])))

    result = runner.invoke(main.app, ["positions", ADDRESS, "--format", "json"])

    assert result.exit_code == 1
    assert "Account not found" in result.output


def test_positions_json(monkeypatch):
    """Test JSON output contains the detected positions."""
    position = Position(
        id="defi_lending_0",
        display_name="lending User Account",
        category=PositionCategory.LENDING,
        raw_value="5.0000",
        numeric_value=5.0,
        source_type_tag="0xabc::lending::UserAccount",
    )
    summary = PortfolioSummary(address=ADDRESS, positions=[position], by_category={"Lending": 5})
    done = ScanResult(address=ADDRESS, status=ScanStatus.DONE, positions=[position])
    monkeypatch.setattr(main, "_scan", _fake_scan(done, summary))

    result = runner.invoke(main.app, ["positions", ADDRESS, "--format", "json"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["positions"][0]["id"] == "defi_lending_0"
    assert payload["by_category"]["Lending"] == "5"
