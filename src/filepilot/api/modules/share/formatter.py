"""Server-side formatting of structured, tabular and notebook files.

Used when a file is too large for the client to format itself (structured
data) or always for tables and notebooks. Every parser failure is raised as
FormatError so the route can answer with a diagnostic instead of crashing.
"""
from __future__ import annotations

import csv
import datetime as dt
import io
import json
import os
import tomllib
from pathlib import Path
from typing import Any, Iterable, Iterator
from xml.dom import minidom
from xml.parsers.expat import ExpatError

import openpyxl
import xlrd
import yaml
from pydantic import ValidationError

from ...config import SizeLimits
from ...content_classifier import RenderStrategy, extension_of
from ...error_codes import FormatError
from .schemas import FormattedDocument, NotebookCell


def _read_bounded(path: Path, limit: int) -> bytes:
    size = os.stat(path).st_size
    if size > limit:
        raise FormatError(str(path), f'{size} bytes exceeds formatting limit of {limit}')
    with open(path, 'rb') as f:
        return f.read(limit + 1)


def _decode(data: bytes, path: Path) -> str:
    try:
        return data.decode('utf-8-sig')
    except UnicodeDecodeError as e:
        raise FormatError(str(path), f'not valid UTF-8 at byte {e.start}')


# ── Structured data ──


def _json_default(value: Any) -> str:
    if isinstance(value, (dt.date, dt.time, dt.datetime)):
        return value.isoformat()
    return str(value)


def format_structured(path: Path, limits: SizeLimits) -> tuple[str, str]:
    """Return ``(format, indented text)`` for JSON, XML, YAML or TOML."""
    ext = extension_of(path)
    text = _decode(_read_bounded(path, limits.structured_server_max), path)

    if ext in ('json', 'geojson'):
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatError(str(path), f'invalid JSON at line {e.lineno} column {e.colno}: {e.msg}')
        return 'json', json.dumps(data, indent=2, ensure_ascii=False)

    if ext == 'xml':
        try:
            dom = minidom.parseString(text.encode('utf-8'))
        except ExpatError as e:
            raise FormatError(str(path), f'invalid XML: {e}')
        pretty = dom.toprettyxml(indent='  ')
        return 'xml', '\n'.join(line for line in pretty.splitlines() if line.strip())

    if ext in ('yml', 'yaml'):
        try:
            documents = list(yaml.safe_load_all(text))
        except yaml.YAMLError as e:
            raise FormatError(str(path), f'invalid YAML: {e}')
        rendered = yaml.safe_dump_all(
            documents, sort_keys=False, allow_unicode=True, indent=2, default_flow_style=False,
        )
        return 'yaml', rendered.rstrip('\n')

    if ext == 'toml':
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as e:
            raise FormatError(str(path), f'invalid TOML: {e}')
        return 'toml', json.dumps(data, indent=2, ensure_ascii=False, default=_json_default)

    raise FormatError(str(path), f'no structured formatter for .{ext}')


# ── Tables ──


def _cell_text(value: Any) -> str:
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dt.date, dt.time, dt.datetime)):
        return value.isoformat()
    return str(value)


def _cap_rows(
    rows: Iterator[list[str]],
    max_rows: int,
) -> tuple[list[list[str]], int]:
    """Take up to ``max_rows`` rows and count the rest."""
    kept: list[list[str]] = []
    total = 0
    for row in rows:
        total += 1
        if len(kept) < max_rows:
            kept.append(row)
    return kept, total


def _delimited_rows(path: Path, limits: SizeLimits) -> tuple[list[str], list[list[str]], int]:
    delimiter = '\t' if extension_of(path) == 'tsv' else ','
    text = _decode(_read_bounded(path, limits.spreadsheet_max), path)
    reader = csv.reader(io.StringIO(text, newline=''), delimiter=delimiter, strict=True)
    try:
        header = next(reader, [])
        rows, total = _cap_rows(iter(reader), limits.max_table_rows)
    except csv.Error as e:
        raise FormatError(str(path), f'invalid delimited data at line {reader.line_num}: {e}')
    return header, rows, total


def _xlsx_rows(path: Path, limits: SizeLimits) -> tuple[str, list[str], list[list[str]], int]:
    try:
        workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    except FileNotFoundError:
        raise
    except Exception as e:
        # openpyxl surfaces corruption as zipfile, KeyError or XML errors
        raise FormatError(str(path), f'corrupt or unsupported workbook: {e}') from e
    try:
        if not workbook.worksheets:
            raise FormatError(str(path), 'no sheets found in workbook')
        sheet = workbook.worksheets[0]
        values = ([_cell_text(v) for v in row] for row in sheet.iter_rows(values_only=True))
        header = next(values, [])
        rows, total = _cap_rows(values, limits.max_table_rows)
        return sheet.title, header, rows, total
    except FormatError:
        raise
    except Exception as e:
        raise FormatError(str(path), f'corrupt worksheet: {e}') from e
    finally:
        workbook.close()


def _xls_rows(path: Path, limits: SizeLimits) -> tuple[str, list[str], list[list[str]], int]:
    try:
        book = xlrd.open_workbook(str(path), on_demand=True)
    except FileNotFoundError:
        raise
    except Exception as e:
        # xlrd reports bad BIFF data as XLRDError, struct or assertion errors
        raise FormatError(str(path), f'corrupt or unsupported workbook: {e}') from e
    try:
        if book.nsheets == 0:
            raise FormatError(str(path), 'no sheets found in workbook')
        sheet = book.sheet_by_index(0)
        values = ([_cell_text(v) for v in sheet.row_values(i)] for i in range(sheet.nrows))
        header = next(values, [])
        rows, total = _cap_rows(values, limits.max_table_rows)
        return sheet.name, header, rows, total
    except FormatError:
        raise
    except Exception as e:
        raise FormatError(str(path), f'corrupt worksheet: {e}') from e
    finally:
        book.release_resources()


def truncation_marker(shown: int, total: int) -> str:
    return f'... and {total - shown} more rows (showing first {shown} rows)'


def render_table(path: Path, limits: SizeLimits) -> FormattedDocument:
    ext = extension_of(path)
    sheet = None
    if ext in ('csv', 'tsv'):
        header, rows, total = _delimited_rows(path, limits)
    elif ext == 'xlsx':
        sheet, header, rows, total = _xlsx_rows(path, limits)
    elif ext == 'xls':
        sheet, header, rows, total = _xls_rows(path, limits)
    else:
        raise FormatError(str(path), f'no table renderer for .{ext}')

    truncated = total > len(rows)
    return FormattedDocument(
        kind='table',
        name=path.name,
        strategy=RenderStrategy.RENDER_TABULAR.value,
        format=ext,
        columns=header,
        rows=rows,
        sheet=sheet,
        truncated=truncated,
        total_rows=total,
        truncation_marker=truncation_marker(len(rows), total) if truncated else None,
    )


# ── Notebooks ──


def _execution_count(value: Any) -> int | None:
    # hand-edited notebooks carry strings or floats here
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _joined(source: Any) -> str:
    if isinstance(source, list):
        return ''.join(str(part) for part in source)
    if source is None:
        return ''
    return str(source)


def _output_cells(outputs: Iterable[Any]) -> Iterator[NotebookCell]:
    for output in outputs:
        if not isinstance(output, dict):
            continue
        output_type = output.get('output_type', 'unknown')
        if output_type == 'stream':
            text = _joined(output.get('text'))
        elif output_type == 'error':
            text = f"{output.get('ename', 'Error')}: {output.get('evalue', '')}"
        else:
            data = output.get('data') or {}
            if 'text/plain' in data:
                text = _joined(data['text/plain'])
            elif data:
                text = f"[{', '.join(sorted(data))} output]"
            else:
                # nbformat 3 kept text/plain at the top level
                text = _joined(output.get('text'))
        yield NotebookCell(
            kind='output',
            source=text,
            execution_count=_execution_count(output.get('execution_count')),
            output_type=output_type,
        )


def render_notebook(path: Path, limits: SizeLimits) -> FormattedDocument:
    text = _decode(_read_bounded(path, limits.notebook_max), path)
    try:
        notebook = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(str(path), f'invalid notebook JSON at line {e.lineno}: {e.msg}')
    if not isinstance(notebook, dict):
        raise FormatError(str(path), 'notebook root is not an object')

    raw_cells = notebook.get('cells')
    worksheets = notebook.get('worksheets')
    if raw_cells is None and worksheets:
        if not isinstance(worksheets, list) or not isinstance(worksheets[0], dict):
            raise FormatError(str(path), 'notebook worksheets is not a list of objects')
        raw_cells = worksheets[0].get('cells')
    if not isinstance(raw_cells, list):
        raise FormatError(str(path), 'notebook has no cell list')

    cells: list[NotebookCell] = []
    for raw in raw_cells:
        if not isinstance(raw, dict):
            raise FormatError(str(path), 'notebook cell is not an object')
        cell_type = raw.get('cell_type')
        if cell_type == 'code':
            cells.append(NotebookCell(
                kind='code',
                source=_joined(raw.get('source', raw.get('input'))),
                execution_count=_execution_count(raw.get('execution_count', raw.get('prompt_number'))),
            ))
            outputs = raw.get('outputs') or []
            if not isinstance(outputs, list):
                raise FormatError(str(path), 'notebook cell outputs is not a list')
            cells.extend(_output_cells(outputs))
        elif cell_type in ('markdown', 'heading'):
            cells.append(NotebookCell(kind='markdown', source=_joined(raw.get('source'))))
        else:
            cells.append(NotebookCell(kind='raw', source=_joined(raw.get('source'))))

    return FormattedDocument(
        kind='cells',
        name=path.name,
        strategy=RenderStrategy.RENDER_NOTEBOOK.value,
        format='ipynb',
        cells=cells,
    )


def format_document(path: Path, strategy: RenderStrategy, limits: SizeLimits) -> FormattedDocument:
    """Produce the display-ready document for a formatter strategy.

    Raises:
        FormatError: If the file cannot be read or parsed
    """
    try:
        if strategy is RenderStrategy.FORMAT_STRUCTURED:
            fmt, text = format_structured(path, limits)
            return FormattedDocument(
                kind='tree', name=path.name, strategy=strategy.value, format=fmt, text=text,
            )
        if strategy is RenderStrategy.RENDER_TABULAR:
            return render_table(path, limits)
        if strategy is RenderStrategy.RENDER_NOTEBOOK:
            return render_notebook(path, limits)
    except (FileNotFoundError, IsADirectoryError):
        raise
    except OSError as e:
        raise FormatError(str(path), f'read failed: {e}') from e
    except (ValidationError, ValueError, TypeError, KeyError, IndexError, RecursionError) as e:
        # shapes the parsers above do not check explicitly
        raise FormatError(str(path), f'unexpected content: {type(e).__name__}: {e}') from e
    raise ValueError(f'{strategy.value} is not a formatter strategy')


def diagnostic_document(
    path: Path,
    strategy: RenderStrategy,
    error: FormatError,
    fallback_url: str,
) -> FormattedDocument:
    return FormattedDocument(
        kind='diagnostic',
        name=path.name,
        strategy=strategy.value,
        format=extension_of(path),
        diagnostic=error.reason,
        fallback_url=fallback_url,
    )
