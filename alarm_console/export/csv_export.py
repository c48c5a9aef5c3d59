from __future__ import annotations

from typing import Iterable

from alarm_console.core.state.alarm_store import ExportTable


def _quote(value: object) -> str:
    text = "" if value is None else str(value)
    return '"' + text.replace('"', '""') + '"'


def _line(values: Iterable[object]) -> str:
    return ",".join(_quote(v) for v in values)


def to_csv(table: ExportTable) -> str:
    """
    Serialize an export table to CSV text.

    Every value is quoted and embedded quotes are doubled, so titles with
    commas or quotes survive spreadsheet import. Lines are joined with
    ``\\n`` and there is no trailing newline.
    """
    lines = [_line(table.columns)]
    lines.extend(_line(row) for row in table.rows)
    return "\n".join(lines)
