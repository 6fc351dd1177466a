from pathlib import Path

import pytest
from pydantic import ValidationError

from ztp.core.config import (
    PACKAGED_META_TEMPLATES_DIR,
    MCPConfig,
    Settings,
    TemplatesConfig,
    get_settings,
)


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "ENVIRONMENT",
        "DEBUG",
        "MCP_TRANSPORT",
        "MCP_ADDRESS",
        "TEMPLATES__BUNDLES_DIR",
        "TEMPLATES__STRICT_PARAMETERS",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    settings = Settings()

    assert settings.templates.meta_templates_dir == PACKAGED_META_TEMPLATES_DIR
    assert settings.templates.meta_template_suffix == ".templ"
    assert settings.templates.strict_parameters is True
    assert settings.mcp.transport == "stdio"
    assert settings.observability.log_level == "INFO"


def test_nested_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEMPLATES__BUNDLES_DIR", str(tmp_path / "bundles"))
    monkeypatch.setenv("TEMPLATES__STRICT_PARAMETERS", "false")

    settings = get_settings()

    assert settings.templates.bundles_dir == (tmp_path / "bundles").resolve()
    assert settings.templates.strict_parameters is False
    assert get_settings() is settings


def test_legacy_mcp_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_TRANSPORT", "HTTP")
    monkeypatch.setenv("MCP_ADDRESS", ":9000")

    settings = Settings()

    assert settings.mcp.transport == "streamable-http"
    assert settings.mcp.host == "127.0.0.1"
    assert settings.mcp.port == 9000


def test_legacy_address_with_host(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_ADDRESS", "0.0.0.0:8080")

    settings = Settings()

    assert (settings.mcp.host, settings.mcp.port) == ("0.0.0.0", 8080)


def test_unknown_transport_rejected() -> None:
    with pytest.raises(ValidationError):
        MCPConfig(transport="carrier-pigeon")


def test_debug_rejected_in_production() -> None:
    with pytest.raises(ValidationError):
        Settings(environment="production", debug=True)


def test_suffix_and_paths_are_normalized(tmp_path: Path) -> None:
    config = TemplatesConfig(
        bundles_dir=str(tmp_path / "a" / ".." / "b"), meta_template_suffix="j2"
    )

    assert config.meta_template_suffix == ".j2"
    assert config.bundles_dir == (tmp_path / "b").resolve()


def test_export_safe_config_is_json_ready(tmp_path: Path) -> None:
    settings = Settings(templates=TemplatesConfig(bundles_dir=tmp_path))

    exported = settings.export_safe_config()

    assert exported["templates"]["bundles_dir"] == str(tmp_path.resolve())
    assert exported["mcp"]["transport"] == "stdio"
