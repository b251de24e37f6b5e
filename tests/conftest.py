"""Shared fixtures: fake HTTP responses for mocked ``requests`` sessions."""

import json
from unittest.mock import MagicMock

import pytest


def make_response(status=200, json_data=None, text=None, links=None, chunks=None, reason=None):
    """Build a MagicMock standing in for ``requests.Response``."""
    res = MagicMock()
    res.status_code = status
    res.reason = reason if reason is not None else ("OK" if status == 200 else "Not Found")
    if text is None:
        text = json.dumps(json_data) if json_data is not None else ""
    res.text = text
    if json_data is not None:
        res.json.return_value = json_data
    else:
        res.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    res.links = links or {}
    res.iter_content.side_effect = lambda chunk_size=1: iter(chunks or [])
    return res


@pytest.fixture
def response_factory():
    """Factory fixture for fake responses."""
    return make_response


@pytest.fixture
def url_router():
    """Build a ``session.get`` side effect dispatching on the requested URL.

    Unknown URLs get a 404 response. The returned callable records every
    requested URL in its ``calls`` list.
    """
    def _build(routes):
        def _get(url, *args, **kwargs):
            _get.calls.append(url)
            res = routes.get(url)
            if res is None:
                return make_response(status=404, text="not found")
            return res
        _get.calls = []
        return _get
    return _build
