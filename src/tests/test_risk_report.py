#!/usr/bin/env python3
"""
Test terminal rendering of seasonal crash risk.
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from rich.console import Console

from btc_fixtures import make_btc_records
from decision.risk_report import (
    build_risk_table,
    classify_risk_level,
    format_risk_display,
    render_risk_table,
)
from decision.seasonal_crash_risk import estimate_risk


class TestRiskLevels:

    @pytest.mark.parametrize("risk,level", [
        (0.95, "Extreme"), (0.70, "Extreme"), (0.55, "High"),
        (0.30, "Elevated"), (0.2, "Moderate"), (0.05, "Low"), (0.0, "Low"),
    ])
    def test_classify(self, risk, level):
        assert classify_risk_level(risk) == level

    def test_format(self):
        assert format_risk_display(0.8556) == "[bold red]85.6%[/bold red]"
        assert format_risk_display(0.01) == "[green]1.0%[/green]"


class TestRender:

    @pytest.fixture(scope="class")
    def result(self):
        return estimate_risk(make_btc_records(), 30, sentiment_signal=20)

    def test_table_has_row_per_month(self, result):
        table = build_risk_table(result)
        assert table.row_count == 12
        assert len(table.columns) == 10

    def test_render(self, result):
        console = Console(record=True, width=160)
        render_risk_table(result, console=console)
        text = console.export_text()

        assert "September" in text
        assert "30-day horizon" in text
        assert "sentiment ×1.50" in text
        assert "defaulted: onchain_risk_level" in text
