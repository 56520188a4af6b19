import json

import httpx
import pytest

import gateway
from auth.session_store import MemoryKeyValueStore, SessionStore

from tests.gateway_helpers import make_client


def _install_client(monkeypatch, handler) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    async def recording_handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    async def create_client():
        return make_client(
            SessionStore(MemoryKeyValueStore()),
            transport=httpx.MockTransport(recording_handler),
        )

    monkeypatch.setattr(gateway, "create_client", create_client)
    return seen


def test_main_prints_json_result(monkeypatch, capsys) -> None:
    seen = _install_client(monkeypatch, lambda request: httpx.Response(200, json={"data": []}))

    assert gateway.main(["get", "/cases", "--param", "page=2"]) == 0

    assert json.loads(capsys.readouterr().out) == {"data": []}
    assert seen[0].url.params["page"] == "2"
    assert seen[0].headers["Authorization"] == "Bearer old"


def test_main_sends_json_body(monkeypatch, capsys) -> None:
    seen = _install_client(monkeypatch, lambda request: httpx.Response(201, json={"id": "c-1"}))

    assert gateway.main(["post", "/contracts", "--data", '{"title": "NDA"}']) == 0

    assert json.loads(seen[0].content) == {"title": "NDA"}
    assert json.loads(capsys.readouterr().out) == {"id": "c-1"}


def test_main_reports_api_errors(monkeypatch, capsys) -> None:
    _install_client(
        monkeypatch,
        lambda request: httpx.Response(422, json={"message": "title is required"}),
    )

    assert gateway.main(["post", "/contracts", "--data", "{}"]) == 1

    assert "title is required" in capsys.readouterr().err


def test_main_requires_path(monkeypatch, capsys) -> None:
    _install_client(monkeypatch, lambda request: httpx.Response(200, json={}))

    assert gateway.main(["get"]) == 1

    assert "needs an API path" in capsys.readouterr().err


def test_parse_params_rejects_malformed() -> None:
    assert gateway.parse_params(["page=2", "q=a=b"]) == {"page": "2", "q": "a=b"}

    with pytest.raises(ValueError):
        gateway.parse_params(["page"])


def test_unknown_command_exits() -> None:
    with pytest.raises(SystemExit):
        gateway.main(["put", "/cases"])


def test_main_rejects_params_on_body_verbs(monkeypatch, capsys) -> None:
    seen = _install_client(monkeypatch, lambda request: httpx.Response(201, json={}))

    assert gateway.main(["post", "/contracts", "--param", "draft=true"]) == 1

    assert "post does not take --param" in capsys.readouterr().err
    assert seen == []


def test_main_rejects_data_on_get(monkeypatch, capsys) -> None:
    seen = _install_client(monkeypatch, lambda request: httpx.Response(200, json={}))

    assert gateway.main(["get", "/cases", "--data", "{}"]) == 1

    assert "get does not take --data" in capsys.readouterr().err
    assert seen == []


def test_version_flag(capsys) -> None:
    with pytest.raises(SystemExit) as exit_info:
        gateway.main(["--version"])

    assert exit_info.value.code == 0
    assert capsys.readouterr().out.strip() == "lexgate 0.1.0"
