"""Pytest 配置和共享 fixtures."""

from pathlib import Path
from typing import Generator

import pytest
from PIL import Image

from placard.models.app_settings import Settings
from placard.models.scene_document import (
    Binding,
    RectangleElement,
    SceneDocument,
    TextElement,
)
from placard.services.database_service import DatabaseService
from placard.services.job_store import JobStore
from placard.services.rendering_service import RenderingService
from placard.services.template_store import TemplateStore


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """测试用设置：所有数据写入临时目录."""
    return Settings(
        data_dir=tmp_path,
        pool_size=2,
        acquire_timeout=2.0,
        render_timeout=30.0,
        asset_timeout=2.0,
        inline_base64=True,
        asset_roots=[tmp_path],
    )


@pytest.fixture
def db(settings: Settings) -> Generator[DatabaseService, None, None]:
    """已建表的临时数据库."""
    service = DatabaseService(settings.db_path)
    service.init_db()
    yield service
    service.close()


@pytest.fixture
def template_store(db: DatabaseService) -> TemplateStore:
    """模板存储."""
    return TemplateStore(db)


@pytest.fixture
def job_store(db: DatabaseService) -> JobStore:
    """任务存储."""
    return JobStore(db)


@pytest.fixture
def rendering_service(settings: Settings) -> Generator[RenderingService, None, None]:
    """渲染服务，测试结束时关闭."""
    service = RenderingService(settings)
    yield service
    if not service.is_closed:
        service.shutdown()


@pytest.fixture
def red_image_file(tmp_path: Path) -> Path:
    """40x30 纯红色 PNG."""
    path = tmp_path / "red.png"
    Image.new("RGBA", (40, 30), (255, 0, 0, 255)).save(path)
    return path


@pytest.fixture
def headline_document() -> SceneDocument:
    """含一个绑定文字和一个矩形的文档."""
    return SceneDocument(
        width=300,
        height=200,
        background_color="#ffffff",
        elements=[
            RectangleElement(id="bar", x=0, y=150, width=300, height=50, fill="#336699"),
            TextElement(
                id="headline",
                x=20,
                y=20,
                width=260,
                height=60,
                content="{{headline}}",
                font_size=32,
                binding=Binding(variable_name="headline"),
            ),
        ],
    )
