"""Pydantic schemas for share routes and notifications."""
from typing import Literal, Optional

from pydantic import BaseModel, Field


class NotebookCell(BaseModel):
    """One display cell of a notebook, in notebook order."""
    kind: Literal['code', 'markdown', 'raw', 'output']
    source: str
    execution_count: Optional[int] = None
    output_type: Optional[str] = None


class FormattedDocument(BaseModel):
    """Display-ready form of a structured file.

    Exactly one payload is populated depending on ``kind``:
    ``tree`` -> text, ``table`` -> columns/rows, ``cells`` -> cells,
    ``diagnostic`` -> diagnostic + fallback_url.
    """
    kind: Literal['tree', 'table', 'cells', 'diagnostic']
    name: str
    strategy: str
    format: str
    text: Optional[str] = None
    columns: list[str] = Field(default_factory=list)
    rows: list[list[str]] = Field(default_factory=list)
    sheet: Optional[str] = None
    cells: list[NotebookCell] = Field(default_factory=list)
    truncated: bool = False
    total_rows: Optional[int] = None
    truncation_marker: Optional[str] = None
    diagnostic: Optional[str] = None
    fallback_url: Optional[str] = None


class ShareListItem(BaseModel):
    token: str
    name: str
    size: Optional[int] = None
    strategy: Optional[str] = None
    url: str
    created_at: float


class ShareListResponse(BaseModel):
    shares: list[ShareListItem]


class ShareNotification(BaseModel):
    """Webhook payload sent when a file is shared."""
    file_id: str
    file_name: str
    file_path: str
    share_url: str
    file_size: Optional[int] = None
    mime_type: str
    timestamp: int
