from __future__ import annotations

from pathlib import Path

import pytest

from apps.provider_server import cli
from apps.provider_server.runtime import ServeOptions
from tests.helpers.example_provider import ExampleProvider

_EXAMPLE = "tests.helpers.example_provider"


def test_parse_args_defaults() -> None:
    args = cli.parse_args(["--provider", f"{_EXAMPLE}:ExampleProvider"])
    assert args.provider == f"{_EXAMPLE}:ExampleProvider"
    assert args.host is None
    assert args.port is None
    assert args.shutdown_timeout is None
    assert args.http is False
    assert args.log_level is None


def test_parse_args_requires_provider() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args([])


def test_parse_args_rejects_unknown_log_level() -> None:
    with pytest.raises(SystemExit):
        cli.parse_args(["--provider", "x:y", "--log-level", "TRACE"])


@pytest.mark.parametrize(
    "target",
    [
        f"{_EXAMPLE}:ExampleProvider",
        f"{_EXAMPLE}:build_example_provider",
        f"{_EXAMPLE}:SHARED_EXAMPLE_PROVIDER",
    ],
)
def test_load_provider_accepts_class_factory_and_instance(target: str) -> None:
    assert isinstance(cli.load_provider(target), ExampleProvider)


def test_load_provider_rejects_non_providers() -> None:
    with pytest.raises(TypeError):
        cli.load_provider(f"{_EXAMPLE}:SERVER_SCHEMA")


@pytest.mark.parametrize("target", ["no_colon", ":attr", "module:"])
def test_load_provider_requires_module_and_attribute(target: str) -> None:
    with pytest.raises(ValueError):
        cli.load_provider(target)


def test_resolve_options_precedence(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HEMMER_PROVIDER_SHUTDOWN_TIMEOUT", raising=False)
    config = tmp_path / "serve.yaml"
    config.write_text("port: 7000\nshutdown_timeout: 5\n", encoding="utf-8")
    monkeypatch.setenv("HEMMER_PROVIDER_HOST", "0.0.0.0")
    monkeypatch.setenv("HEMMER_PROVIDER_PORT", "6000")

    args = cli.parse_args(
        ["--provider", f"{_EXAMPLE}:ExampleProvider", "--config", str(config), "--shutdown-timeout", "2.5"]
    )
    options = cli.resolve_options(args)

    assert options == ServeOptions(shutdown_timeout=2.5, host="0.0.0.0", port=7000)


def test_main_runs_json_rpc_server(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, object] = {}

    async def fake_serve(provider: object, options: ServeOptions, **kwargs: object) -> None:
        seen["provider"] = provider
        seen["options"] = options

    monkeypatch.setattr(cli, "serve_with_options", fake_serve)
    monkeypatch.delenv("HEMMER_PROVIDER_PORT", raising=False)
    monkeypatch.delenv("HEMMER_PROVIDER_HOST", raising=False)
    monkeypatch.delenv("HEMMER_PROVIDER_SHUTDOWN_TIMEOUT", raising=False)

    code = cli.main(["--provider", f"{_EXAMPLE}:ExampleProvider", "--port", "0", "--log-level", "ERROR"])

    assert code == 0
    assert isinstance(seen["provider"], ExampleProvider)
    assert seen["options"] == ServeOptions()


def test_main_http_uses_uvicorn_level(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: dict[str, object] = {}

    async def fake_serve_http(provider: object, options: ServeOptions, *, log_level: str) -> None:
        seen["log_level"] = log_level

    monkeypatch.setattr(cli, "serve_http", fake_serve_http)
    assert cli.main(["--provider", f"{_EXAMPLE}:ExampleProvider", "--http", "--log-level", "WARN"]) == 0
    assert seen["log_level"] == "warning"
