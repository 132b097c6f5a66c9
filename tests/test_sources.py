import pytest
import requests

from sheetflow.api.schemas.shared import SourceKind, SourceReference
from sheetflow.core.errors import SourceUnreadable
from sheetflow.domain.uploads import sources
from sheetflow.domain.uploads.sources import _iter_text_lines, count_data_rows, open_source

URL_SOURCE = SourceReference(kind=SourceKind.URL, location="https://example.com/data.csv", original_name="data.csv")


class FakeResponse:
    def __init__(self, chunks, status_code=200, encoding=None):
        self._chunks = chunks
        self.status_code = status_code
        self.encoding = encoding
        self.closed = False

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def iter_content(self, chunk_size=1):
        for chunk in self._chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    def close(self):
        self.closed = True


def test_url_source_streams_rows_across_chunk_boundaries(monkeypatch):
    response = FakeResponse([b"name,amo", b"unt\nA,1", b'0\n"B, Jr.",20\n'])
    calls = {}

    def fake_get(url, stream, timeout):
        calls.update(url=url, stream=stream, timeout=timeout)
        return response

    monkeypatch.setattr(sources.requests, "get", fake_get)

    with open_source(URL_SOURCE, timeout=3) as rows:
        assert list(rows) == [["name", "amount"], ["A", "10"], ["B, Jr.", "20"]]

    assert calls == {"url": URL_SOURCE.location, "stream": True, "timeout": 3}
    assert response.closed


def test_url_http_error_is_source_unreadable(monkeypatch):
    monkeypatch.setattr(sources.requests, "get", lambda url, stream, timeout: FakeResponse([], status_code=404))

    with pytest.raises(SourceUnreadable):
        with open_source(URL_SOURCE):
            pass


def test_url_connection_error_is_source_unreadable(monkeypatch):
    def refuse(url, stream, timeout):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(sources.requests, "get", refuse)

    with pytest.raises(SourceUnreadable):
        with open_source(URL_SOURCE):
            pass


def test_mid_stream_failure_is_source_unreadable(monkeypatch):
    response = FakeResponse([b"name\nA\n", requests.ConnectionError("reset by peer")])
    monkeypatch.setattr(sources.requests, "get", lambda url, stream, timeout: response)

    with pytest.raises(SourceUnreadable):
        with open_source(URL_SOURCE) as rows:
            list(rows)


def test_file_source_skips_blank_lines_and_bom(write_csv):
    source = write_csv("bom.csv", "\ufeffname,amount\n\nA,10\n,\n")

    with open_source(source) as rows:
        assert list(rows) == [["name", "amount"], ["A", "10"]]


def test_count_data_rows_for_files_and_urls(write_csv):
    source = write_csv("sales.csv", "name,amount\nA,10\nB,20\n")

    assert count_data_rows(source, has_header=True) == 2
    assert count_data_rows(source, has_header=False) == 3
    assert count_data_rows(URL_SOURCE, has_header=True) is None


def test_iter_text_lines_keeps_multibyte_characters_split_across_chunks():
    data = "città,€\n".encode("utf-8")
    chunks = [data[:4], data[4:9], data[9:]]

    assert "".join(_iter_text_lines(chunks)) == "città,€\n"
