"""集成测试配置和共享 fixtures."""

import json
from pathlib import Path
from typing import Generator

import pytest

from placard.core.config_manager import get_config
from placard.models.scene_document import SceneDocument


@pytest.fixture(autouse=True)
def reset_config() -> Generator[None, None, None]:
    """每个测试结束后清除配置覆盖值."""
    yield
    get_config().reset_to_defaults()


@pytest.fixture
def template_file(tmp_path: Path, headline_document: SceneDocument) -> Path:
    """带名称包装的模板文件."""
    path = tmp_path / "poster.json"
    path.write_text(
        json.dumps({"name": "CLI 海报", "document": headline_document.to_dict()}, ensure_ascii=False),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def rows_file(tmp_path: Path) -> Path:
    """数据行文件."""
    path = tmp_path / "rows.json"
    path.write_text(
        json.dumps({"data": [{"headline": "第一行"}, {"headline": "Second row"}]}, ensure_ascii=False),
        encoding="utf-8",
    )
    return path
