from pathlib import Path
from typing import Any

import pytest

from ztp.core.config import PACKAGED_META_TEMPLATES_DIR, get_settings
from ztp.templates import (
    FileSystemTemplateStore,
    TemplateCatalog,
    TemplateExecutor,
    TemplateGenerator,
)


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def bundles_dir(tmp_path: Path) -> Path:
    path = tmp_path / "templates"
    path.mkdir()
    return path


@pytest.fixture
def store(bundles_dir: Path) -> FileSystemTemplateStore:
    return FileSystemTemplateStore(bundles_dir)


@pytest.fixture
def generator(store: FileSystemTemplateStore) -> TemplateGenerator:
    return TemplateGenerator(store, PACKAGED_META_TEMPLATES_DIR)


@pytest.fixture
def catalog(store: FileSystemTemplateStore) -> TemplateCatalog:
    return TemplateCatalog(store)


@pytest.fixture
def executor(store: FileSystemTemplateStore) -> TemplateExecutor:
    return TemplateExecutor(store)


@pytest.fixture
def k3s_definition() -> dict[str, Any]:
    return {
        "id": "cpu_k3s_demo",
        "description": "Single node k3s cluster",
        "parameters": [
            {"name": "Host", "description": "Address of the k3s server"},
            {"name": "Token", "description": "Cluster join token"},
        ],
        "packages": ["curl"],
        "commands": ["curl -sfL https://get.k3s.io | sh -"],
    }
