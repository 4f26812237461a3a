"""Route tests for the share server app (GET /file, /raw, /list, /health, /metrics)."""
import json
import os
from dataclasses import replace

import pytest
from httpx import AsyncClient, ASGITransport

from filepilot.api.app import create_app
from filepilot.api.share_registry import ShareRegistry

CONTENT = bytes(range(256)) * 40  # 10240 bytes


@pytest.fixture
def registry():
    return ShareRegistry()


@pytest.fixture
def app(config, registry):
    config.limits = replace(config.limits, structured_client_max=10)
    return create_app(config, registry)


@pytest.fixture
def media_file(tmp_path):
    f = tmp_path / 'clip.mp4'
    f.write_bytes(CONTENT)
    return f


def _client(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url='http://test')


class TestFullAndPartialContent:

    @pytest.mark.asyncio
    async def test_full_body(self, app, registry, media_file):
        token = registry.register(media_file)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.status_code == 200
        assert r.content == CONTENT
        assert r.headers['accept-ranges'] == 'bytes'
        assert r.headers['content-length'] == str(len(CONTENT))
        assert r.headers['content-type'] == 'video/mp4'
        assert r.headers['x-render-strategy'] == 'stream-media-with-range'
        assert 'x-request-id' in r.headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize('start,end', [(0, 0), (0, 99), (100, 4095), (5000, 10239), (10239, 10239)])
    async def test_range_returns_exact_slice(self, app, registry, media_file, start, end):
        token = registry.register(media_file)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}', headers={'Range': f'bytes={start}-{end}'})
        assert r.status_code == 206
        assert r.content == CONTENT[start:end + 1]
        assert r.headers['content-range'] == f'bytes {start}-{end}/{len(CONTENT)}'
        assert r.headers['content-length'] == str(end - start + 1)

    @pytest.mark.asyncio
    async def test_suffix_and_open_ranges(self, app, registry, media_file):
        token = registry.register(media_file)
        async with _client(app) as client:
            suffix = await client.get(f'/file/{token}', headers={'Range': 'bytes=-10'})
            open_ended = await client.get(f'/file/{token}', headers={'Range': 'bytes=10200-'})
        assert suffix.status_code == 206
        assert suffix.content == CONTENT[-10:]
        assert open_ended.content == CONTENT[10200:]
        assert open_ended.headers['content-range'] == 'bytes 10200-10239/10240'

    @pytest.mark.asyncio
    @pytest.mark.parametrize('header', ['bytes=10240-', 'bytes=20000-30000', 'bytes=500-100', 'bytes=x-y'])
    async def test_unsatisfiable_range(self, app, registry, media_file, header):
        token = registry.register(media_file)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}', headers={'Range': header})
        assert r.status_code == 416
        assert r.headers['content-range'] == f'bytes */{len(CONTENT)}'

    @pytest.mark.asyncio
    async def test_length_comes_from_current_file(self, app, registry, media_file):
        token = registry.register(media_file)
        media_file.write_bytes(CONTENT[:100])
        async with _client(app) as client:
            r = await client.get(f'/file/{token}', headers={'Range': 'bytes=50-'})
            stale = await client.get(f'/file/{token}', headers={'Range': 'bytes=200-'})
        assert r.headers['content-range'] == 'bytes 50-99/100'
        assert r.content == CONTENT[50:100]
        assert stale.status_code == 416
        assert stale.headers['content-range'] == 'bytes */100'

    @pytest.mark.asyncio
    async def test_empty_file(self, app, registry, tmp_path):
        empty = tmp_path / 'empty.txt'
        empty.write_bytes(b'')
        token = registry.register(empty)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.status_code == 200
        assert r.content == b''


class TestStrategies:

    @pytest.mark.asyncio
    async def test_code_is_served_as_text(self, app, registry, tmp_path):
        page = tmp_path / 'index.html'
        page.write_text('<script>alert(1)</script>')
        token = registry.register(page)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.headers['x-render-strategy'] == 'highlight-code'
        assert r.headers['content-type'].startswith('text/plain')

    @pytest.mark.asyncio
    async def test_archive_is_attachment(self, app, registry, tmp_path):
        archive = tmp_path / 'backup.zip'
        archive.write_bytes(b'PK\x03\x04' + b'\x00' * 50)
        token = registry.register(archive)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}', headers={'Range': 'bytes=0-3'})
        assert r.status_code == 206
        assert r.content == b'PK\x03\x04'
        assert r.headers['content-disposition'].startswith('attachment;')

    @pytest.mark.asyncio
    async def test_raw_route_forces_download(self, app, registry, media_file):
        token = registry.register(media_file)
        async with _client(app) as client:
            r = await client.get(f'/raw/{token}', headers={'Range': 'bytes=0-9'})
        assert r.status_code == 206
        assert r.content == CONTENT[:10]
        assert r.headers['x-render-strategy'] == 'download-only'
        assert r.headers['content-disposition'].startswith('attachment;')

    @pytest.mark.asyncio
    async def test_structured_document(self, app, registry, tmp_path):
        data = tmp_path / 'data.json'
        data.write_text('{"b": [1, 2], "a": {"c": null}}')
        token = registry.register(data)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.status_code == 200
        body = r.json()
        assert body['kind'] == 'tree'
        assert body['format'] == 'json'
        assert json.loads(body['text']) == {'b': [1, 2], 'a': {'c': None}}
        assert '\n  ' in body['text']

    @pytest.mark.asyncio
    async def test_csv_capped_at_row_limit(self, app, registry, tmp_path):
        table = tmp_path / 'big.csv'
        lines = ['id,name'] + [f'{i},row{i}' for i in range(5000)]
        table.write_text('\n'.join(lines) + '\n')
        token = registry.register(table)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        body = r.json()
        assert body['kind'] == 'table'
        assert body['columns'] == ['id', 'name']
        assert len(body['rows']) == 1000
        assert body['rows'][0] == ['0', 'row0']
        assert body['truncated'] is True
        assert body['total_rows'] == 5000
        assert body['truncation_marker'] == '... and 4000 more rows (showing first 1000 rows)'

    @pytest.mark.asyncio
    async def test_malformed_json_degrades_and_server_keeps_serving(self, app, registry, tmp_path, media_file):
        broken = tmp_path / 'broken.json'
        broken.write_text('{"a": 1,, "b": }')
        bad_token = registry.register(broken)
        good_token = registry.register(media_file)
        async with _client(app) as client:
            r = await client.get(f'/file/{bad_token}')
            after = await client.get(f'/file/{good_token}', headers={'Range': 'bytes=0-9'})
        assert r.status_code == 200
        body = r.json()
        assert body['kind'] == 'diagnostic'
        assert 'invalid JSON' in body['diagnostic']
        assert body['fallback_url'] == f'/raw/{bad_token}'
        assert after.status_code == 206
        assert after.content == CONTENT[:10]

    @pytest.mark.asyncio
    @pytest.mark.parametrize('content', [
        '{"cells": [{"cell_type": "code", "source": "x", "outputs": 5}]}',
        '{"worksheets": {"a": 1}}',
    ])
    async def test_malformed_notebook_degrades(self, app, registry, tmp_path, content):
        nb = tmp_path / 'broken.ipynb'
        nb.write_text(content)
        token = registry.register(nb)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.status_code == 200
        assert r.json()['kind'] == 'diagnostic'

    @pytest.mark.asyncio
    async def test_notebook_with_odd_execution_count(self, app, registry, tmp_path):
        nb = tmp_path / 'odd.ipynb'
        nb.write_text('{"cells": [{"cell_type": "code", "source": "x", "execution_count": "abc", "outputs": []}]}')
        token = registry.register(nb)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.status_code == 200
        body = r.json()
        assert body['kind'] == 'cells'
        assert body['cells'][0]['execution_count'] is None


class TestErrors:

    @pytest.mark.asyncio
    async def test_unknown_token(self, app):
        async with _client(app) as client:
            r = await client.get('/file/0123456789abcdef')
        assert r.status_code == 404
        assert r.json()['error_code'] == 'share_not_found'

    @pytest.mark.asyncio
    async def test_vanished_file(self, app, registry, media_file):
        token = registry.register(media_file)
        os.remove(media_file)
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
            raw = await client.get(f'/raw/{token}')
        assert r.status_code == 404
        assert r.json()['error_code'] == 'shared_file_missing'
        assert r.json()['details']['path'] == str(media_file.resolve())
        assert raw.status_code == 404

    @pytest.mark.asyncio
    async def test_path_replaced_by_directory(self, app, registry, media_file):
        token = registry.register(media_file)
        os.remove(media_file)
        media_file.mkdir()
        async with _client(app) as client:
            r = await client.get(f'/file/{token}')
        assert r.status_code == 404


class TestListingAndHealth:

    @pytest.mark.asyncio
    async def test_list(self, app, registry, media_file):
        token = registry.register(media_file)
        async with _client(app) as client:
            r = await client.get('/list')
        shares = r.json()['shares']
        assert len(shares) == 1
        assert shares[0]['token'] == token
        assert shares[0]['name'] == 'clip.mp4'
        assert shares[0]['size'] == len(CONTENT)
        assert shares[0]['strategy'] == 'stream-media-with-range'
        assert shares[0]['url'] == f'http://test/file/{token}'

    @pytest.mark.asyncio
    async def test_health(self, app, registry, media_file):
        registry.register(media_file)
        async with _client(app) as client:
            r = await client.get('/health')
        assert r.json() == {'status': 'ok', 'shares': 1}

    @pytest.mark.asyncio
    async def test_metrics(self, app, registry, media_file):
        token = registry.register(media_file)
        async with _client(app) as client:
            await client.get(f'/file/{token}', headers={'Range': 'bytes=0-1'})
            r = await client.get('/metrics')
        assert r.status_code == 200
        assert 'filepilot_range_requests_total' in r.text
        assert 'path="/file/{token}"' in r.text
        assert token not in r.text
