"""Select a rendering strategy for a shared file.

Deterministic mapping from extension, size and (for unknown extensions) a
sniff of the first bytes to one :class:`RenderStrategy`. Nothing is cached;
the share route classifies on every request.

Decision order:
  1. hard size ceiling            -> DOWNLOAD_ONLY, whatever the type
  2. known binary/media extension -> image, media, raw or download
  3. known text/code extension    -> code, structured, tabular, notebook,
                                     markdown (each with its own ceiling)
  4. unknown extension            -> sniff: text -> HIGHLIGHT_CODE,
                                     binary -> DOWNLOAD_ONLY
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..sniffing import looks_like_text, read_sniff_sample
from .config import SizeLimits


class RenderStrategy(str, Enum):
    STREAM_RAW = 'stream-raw'
    STREAM_MEDIA = 'stream-media-with-range'
    DISPLAY_IMAGE = 'display-image'
    HIGHLIGHT_CODE = 'highlight-code'
    FORMAT_STRUCTURED = 'format-structured-data'
    RENDER_TABULAR = 'render-tabular'
    RENDER_NOTEBOOK = 'render-notebook'
    RENDER_MARKDOWN = 'render-markdown'
    DOWNLOAD_ONLY = 'download-only'


# Strategies whose body is the file's bytes (range-capable).
STREAMED_STRATEGIES = frozenset({
    RenderStrategy.STREAM_RAW,
    RenderStrategy.STREAM_MEDIA,
    RenderStrategy.DISPLAY_IMAGE,
    RenderStrategy.HIGHLIGHT_CODE,
    RenderStrategy.RENDER_MARKDOWN,
    RenderStrategy.DOWNLOAD_ONLY,
})

# Strategies whose body is produced by the server-side formatter.
FORMATTED_STRATEGIES = frozenset({
    RenderStrategy.FORMAT_STRUCTURED,
    RenderStrategy.RENDER_TABULAR,
    RenderStrategy.RENDER_NOTEBOOK,
})


MEDIA_TYPES: dict[str, str] = {
    # Web files
    'html': 'text/html', 'htm': 'text/html', 'css': 'text/css',
    'js': 'application/javascript', 'xml': 'application/xml',
    # Text files
    'txt': 'text/plain', 'rst': 'text/plain', 'log': 'text/plain',
    'md': 'text/markdown', 'markdown': 'text/markdown', 'mdx': 'text/markdown',
    'json': 'application/json', 'geojson': 'application/geo+json',
    'ipynb': 'application/x-ipynb+json',
    # Programming languages
    'py': 'text/x-python', 'rs': 'text/x-rust', 'go': 'text/x-go',
    'php': 'text/x-php', 'rb': 'text/x-ruby', 'swift': 'text/x-swift',
    'kt': 'text/x-kotlin', 'c': 'text/x-c', 'h': 'text/x-c', 'cpp': 'text/x-c++',
    'hpp': 'text/x-c++', 'java': 'text/x-java', 'ts': 'text/plain', 'sh': 'text/x-shellscript',
    'sql': 'text/plain',
    # Config files
    'yml': 'text/x-yaml', 'yaml': 'text/x-yaml', 'toml': 'text/x-toml',
    'ini': 'text/plain', 'cfg': 'text/plain', 'conf': 'text/plain',
    # Images
    'jpg': 'image/jpeg', 'jpeg': 'image/jpeg', 'png': 'image/png', 'gif': 'image/gif',
    'svg': 'image/svg+xml', 'webp': 'image/webp', 'bmp': 'image/bmp', 'ico': 'image/x-icon',
    # Videos
    'mp4': 'video/mp4', 'm4v': 'video/mp4', 'mkv': 'video/webm', 'webm': 'video/webm',
    'ogv': 'video/ogg', 'mov': 'video/quicktime', 'avi': 'video/x-msvideo',
    'wmv': 'video/x-ms-wmv', 'flv': 'video/x-flv',
    # Audio
    'mp3': 'audio/mpeg', 'wav': 'audio/wav', 'm4a': 'audio/mp4', 'aac': 'audio/aac',
    'oga': 'audio/ogg', 'ogg': 'audio/ogg', 'flac': 'audio/flac',
    # Documents
    'pdf': 'application/pdf',
    # Spreadsheets
    'csv': 'text/csv', 'tsv': 'text/tab-separated-values',
    'xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    'xls': 'application/vnd.ms-excel',
    # Archives
    'zip': 'application/zip', 'tar': 'application/x-tar', 'gz': 'application/gzip',
    '7z': 'application/x-7z-compressed', 'rar': 'application/vnd.rar',
}

DEFAULT_MEDIA_TYPE = 'application/octet-stream'

IMAGE_EXTS = frozenset({'jpg', 'jpeg', 'png', 'gif', 'svg', 'webp', 'bmp', 'ico'})
MEDIA_EXTS = frozenset({
    'mp4', 'm4v', 'mkv', 'webm', 'ogv', 'mov', 'avi', 'wmv', 'flv',
    'mp3', 'wav', 'm4a', 'aac', 'oga', 'ogg', 'flac',
})
RAW_BINARY_EXTS = frozenset({'pdf'})
DOWNLOAD_EXTS = frozenset({
    'zip', 'tar', 'gz', '7z', 'rar', 'exe', 'dll', 'so', 'dylib', 'bin', 'iso', 'dmg',
})
STRUCTURED_EXTS = frozenset({'json', 'geojson', 'xml', 'yml', 'yaml', 'toml'})
TABULAR_TEXT_EXTS = frozenset({'csv', 'tsv'})
TABULAR_BINARY_EXTS = frozenset({'xlsx', 'xls'})
NOTEBOOK_EXTS = frozenset({'ipynb'})
MARKDOWN_EXTS = frozenset({'md', 'markdown', 'mdx'})
CODE_EXTS = frozenset({
    'txt', 'rst', 'log', 'html', 'htm', 'css', 'js', 'ts',
    'py', 'rs', 'c', 'cpp', 'h', 'hpp', 'java', 'go', 'php', 'rb', 'swift', 'kt', 'sh', 'sql',
    'ini', 'cfg', 'conf',
})


@dataclass(frozen=True)
class Classification:
    strategy: RenderStrategy
    media_type: str
    reason: str

    @property
    def is_streamed(self) -> bool:
        return self.strategy in STREAMED_STRATEGIES


def extension_of(path: Path | str) -> str:
    return Path(path).suffix.lower().lstrip('.')


def media_type_for(path: Path | str) -> str:
    return MEDIA_TYPES.get(extension_of(path), DEFAULT_MEDIA_TYPE)


def classify(
    path: Path | str,
    size: int,
    limits: SizeLimits | None = None,
    sniff: bytes | None = None,
) -> Classification:
    """Choose the rendering strategy for ``path`` of ``size`` bytes.

    ``sniff`` is the first bytes of the file; it is only read (from disk,
    when not supplied) for unknown extensions.
    """
    limits = limits or SizeLimits()
    path = Path(path)
    ext = extension_of(path)
    media_type = media_type_for(path)

    if size > limits.hard_ceiling:
        return Classification(RenderStrategy.DOWNLOAD_ONLY, media_type, 'exceeds hard size ceiling')

    if ext in IMAGE_EXTS:
        return Classification(RenderStrategy.DISPLAY_IMAGE, media_type, 'image')
    if ext in MEDIA_EXTS:
        return Classification(RenderStrategy.STREAM_MEDIA, media_type, 'audio/video')
    if ext in RAW_BINARY_EXTS:
        return Classification(RenderStrategy.STREAM_RAW, media_type, 'inline document')
    if ext in DOWNLOAD_EXTS:
        return Classification(RenderStrategy.DOWNLOAD_ONLY, media_type, 'archive or binary')

    if ext in STRUCTURED_EXTS:
        if size > limits.structured_server_max:
            return Classification(RenderStrategy.STREAM_RAW, media_type, 'structured, too large to format')
        if size > limits.structured_client_max:
            return Classification(RenderStrategy.FORMAT_STRUCTURED, media_type, 'structured, server formats')
        return Classification(RenderStrategy.HIGHLIGHT_CODE, media_type, 'structured, client formats')
    if ext in TABULAR_TEXT_EXTS:
        if size > limits.spreadsheet_max:
            return Classification(RenderStrategy.STREAM_RAW, media_type, 'table too large to render')
        return Classification(RenderStrategy.RENDER_TABULAR, media_type, 'delimited table')
    if ext in TABULAR_BINARY_EXTS:
        if size > limits.spreadsheet_max:
            return Classification(RenderStrategy.DOWNLOAD_ONLY, media_type, 'spreadsheet too large to render')
        return Classification(RenderStrategy.RENDER_TABULAR, media_type, 'spreadsheet')
    if ext in NOTEBOOK_EXTS:
        if size > limits.notebook_max:
            return Classification(RenderStrategy.DOWNLOAD_ONLY, media_type, 'notebook too large to render')
        return Classification(RenderStrategy.RENDER_NOTEBOOK, media_type, 'notebook')
    if ext in MARKDOWN_EXTS:
        if size > limits.markdown_max:
            return Classification(RenderStrategy.STREAM_RAW, 'text/plain', 'markdown too large to render')
        return Classification(RenderStrategy.RENDER_MARKDOWN, media_type, 'markdown')
    if ext in CODE_EXTS:
        return Classification(RenderStrategy.HIGHLIGHT_CODE, media_type, 'text/code')

    if sniff is None:
        try:
            sniff = read_sniff_sample(path)
        except OSError:
            return Classification(RenderStrategy.DOWNLOAD_ONLY, DEFAULT_MEDIA_TYPE, 'unreadable, cannot sniff')
    if looks_like_text(sniff):
        return Classification(RenderStrategy.HIGHLIGHT_CODE, 'text/plain', 'sniffed as text')
    return Classification(RenderStrategy.DOWNLOAD_ONLY, DEFAULT_MEDIA_TYPE, 'sniffed as binary')
