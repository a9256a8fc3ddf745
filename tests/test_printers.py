"""
Tests for human-readable output.

Remote values are printed verbatim and incomplete records never break a
report.
"""
from __future__ import annotations

from mobile_services.operations.facade import ScriptListing, TableReport
from mobile_services.operations.printers import (
    print_script_listing,
    print_services,
    print_table_data,
    print_table_report,
    print_tables,
)


class TestMarkupInRemoteValues:
    """Test that bracketed remote text is not treated as rich markup."""

    def test_service_names(self, capsys):
        print_services([{"name": "[bold]svc[/bold]", "state": "Ready"}])
        assert "[bold]svc[/bold]" in capsys.readouterr().out

    def test_table_names(self, capsys):
        print_tables([{"name": "[red]t[/red]", "metrics": {"recordCount": 1}}])
        assert "[red]t[/red]" in capsys.readouterr().out

    def test_script_names(self, capsys):
        print_script_listing(ScriptListing(
            table=[],
            shared=[],
            scheduler=[{"name": "[x]", "status": "enabled"}],
        ))
        assert "scheduler/[x]" in capsys.readouterr().out

    def test_data_column_names(self, capsys):
        print_table_data([{"[i]": "v"}])
        assert "[i]" in capsys.readouterr().out


class TestTableReport:
    """Test print_table_report() on incomplete data."""

    def test_script_without_size(self, capsys):
        report = TableReport(
            table={"name": "orders"},
            permissions={"read": "[admin]"},
            columns=[],
            scripts=[{"operation": "insert"}],
        )

        print_table_report(report)

        out = capsys.readouterr().out
        assert "bytes" in out
        assert "Not defined" in out
        assert "[admin]" in out

    def test_failed_sources_show_na(self, capsys):
        print_table_report(TableReport(table={"name": "orders"}))
        captured = capsys.readouterr()
        assert "N/A" in captured.out
        assert "Unable to obtain table columns" in captured.err
