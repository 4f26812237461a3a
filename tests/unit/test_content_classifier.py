"""Unit tests for rendering-strategy selection."""
import pytest

from filepilot.api.config import MiB, SizeLimits
from filepilot.api.content_classifier import (
    FORMATTED_STRATEGIES,
    STREAMED_STRATEGIES,
    RenderStrategy,
    classify,
    extension_of,
    media_type_for,
)
from filepilot.sniffing import looks_like_text


class TestStrategySets:

    def test_every_strategy_is_streamed_or_formatted(self):
        assert STREAMED_STRATEGIES | FORMATTED_STRATEGIES == set(RenderStrategy)
        assert not STREAMED_STRATEGIES & FORMATTED_STRATEGIES


class TestHelpers:

    def test_extension_is_lowercased(self):
        assert extension_of('Movie.MP4') == 'mp4'
        assert extension_of('Makefile') == ''

    def test_media_type_lookup(self):
        assert media_type_for('a.png') == 'image/png'
        assert media_type_for('a.unknownext') == 'application/octet-stream'

    def test_looks_like_text(self):
        assert looks_like_text(b'')
        assert looks_like_text(b'hello world\nsecond line\t\n')
        assert looks_like_text('héllo ünïcode'.encode('utf-8'))
        assert not looks_like_text(b'abc\x00def')
        assert not looks_like_text(bytes(range(1, 32)) * 10)

    def test_truncated_multibyte_tail_is_text(self):
        sample = ('x' * 100 + 'é').encode('utf-8')[:-1]
        assert looks_like_text(sample)


class TestClassify:

    @pytest.mark.parametrize('name,strategy', [
        ('photo.jpg', RenderStrategy.DISPLAY_IMAGE),
        ('clip.mp4', RenderStrategy.STREAM_MEDIA),
        ('song.flac', RenderStrategy.STREAM_MEDIA),
        ('paper.pdf', RenderStrategy.STREAM_RAW),
        ('bundle.zip', RenderStrategy.DOWNLOAD_ONLY),
        ('main.py', RenderStrategy.HIGHLIGHT_CODE),
        ('data.json', RenderStrategy.HIGHLIGHT_CODE),
        ('table.csv', RenderStrategy.RENDER_TABULAR),
        ('book.xlsx', RenderStrategy.RENDER_TABULAR),
        ('analysis.ipynb', RenderStrategy.RENDER_NOTEBOOK),
        ('README.md', RenderStrategy.RENDER_MARKDOWN),
    ])
    def test_small_files_by_extension(self, name, strategy):
        assert classify(name, 1024).strategy is strategy

    def test_large_structured_is_formatted_by_server(self):
        result = classify('data.json', 6 * MiB)
        assert result.strategy is RenderStrategy.FORMAT_STRUCTURED
        assert result.media_type == 'application/json'

    def test_structured_beyond_server_limit_streams_raw(self):
        assert classify('data.yaml', 200 * MiB).strategy is RenderStrategy.STREAM_RAW

    def test_large_csv_streams_raw(self):
        assert classify('big.csv', 11 * MiB).strategy is RenderStrategy.STREAM_RAW

    def test_large_spreadsheet_downloads(self):
        assert classify('big.xlsx', 11 * MiB).strategy is RenderStrategy.DOWNLOAD_ONLY

    def test_large_notebook_downloads(self):
        assert classify('big.ipynb', 51 * MiB).strategy is RenderStrategy.DOWNLOAD_ONLY

    def test_large_markdown_streams_as_plain_text(self):
        result = classify('notes.md', 6 * MiB)
        assert result.strategy is RenderStrategy.STREAM_RAW
        assert result.media_type == 'text/plain'

    def test_hard_ceiling_overrides_type(self):
        limits = SizeLimits(hard_ceiling=1000)
        assert classify('clip.mp4', 1001, limits).strategy is RenderStrategy.DOWNLOAD_ONLY
        assert classify('clip.mp4', 1000, limits).strategy is RenderStrategy.STREAM_MEDIA

    def test_custom_limits(self):
        limits = SizeLimits(structured_client_max=10)
        assert classify('a.json', 11, limits).strategy is RenderStrategy.FORMAT_STRUCTURED

    def test_unknown_extension_text_sniff(self):
        result = classify('Makefile', 20, sniff=b'all:\n\techo hi\n')
        assert result.strategy is RenderStrategy.HIGHLIGHT_CODE
        assert result.media_type == 'text/plain'

    def test_unknown_extension_binary_sniff(self):
        result = classify('blob.dat', 20, sniff=b'\x7fELF\x00\x00\x01')
        assert result.strategy is RenderStrategy.DOWNLOAD_ONLY

    def test_sniffs_from_disk(self, tmp_path):
        script = tmp_path / 'runme'
        script.write_text('#!/bin/sh\necho hello\n')
        binary = tmp_path / 'blob'
        binary.write_bytes(b'\x00\x01\x02' * 100)
        assert classify(script, 22).strategy is RenderStrategy.HIGHLIGHT_CODE
        assert classify(binary, 300).strategy is RenderStrategy.DOWNLOAD_ONLY

    def test_unreadable_unknown_file_downloads(self, tmp_path):
        result = classify(tmp_path / 'missing', 10)
        assert result.strategy is RenderStrategy.DOWNLOAD_ONLY

    def test_is_deterministic(self):
        assert classify('x.csv', 500) == classify('x.csv', 500)
