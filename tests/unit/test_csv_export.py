"""
Unit tests for alarm_console.export.csv_export.
"""

from __future__ import annotations

from alarm_console.core.state.alarm_store import ExportTable
from alarm_console.export.csv_export import to_csv


def test_every_value_is_quoted_and_quotes_doubled() -> None:
    table = ExportTable(columns=("id", "title"), rows=[("A", 'He said "down", twice'), ("B", "")])

    assert to_csv(table) == '"id","title"\n"A","He said ""down"", twice"\n"B",""'


def test_header_only_when_no_rows() -> None:
    assert to_csv(ExportTable(columns=("id",), rows=[])) == '"id"'
