"""应用初始化和管理."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from placard.utils.logger import set_log_dir, set_log_level, setup_logger

if TYPE_CHECKING:
    from placard.core.bulk_generator import BulkGenerator
    from placard.models.app_settings import Settings
    from placard.services.database_service import DatabaseService
    from placard.services.job_store import JobStore
    from placard.services.rendering_service import RenderingService
    from placard.services.template_store import TemplateStore

logger = setup_logger(__name__)


class Application:
    """应用管理类.

    组装数据库、存储、渲染服务与批量生成编排器，负责启动与关闭顺序。

    Example:
        >>> with Application() as app:
        ...     template = app.templates.import_file("poster.json")
        ...     response = asyncio.run(app.generator.generate(template.id, "png", rows))
    """

    def __init__(self, settings: Optional["Settings"] = None) -> None:
        """初始化应用管理器.

        Args:
            settings: 应用设置，默认从配置管理器加载
        """
        self._settings = settings
        self._db_service: Optional["DatabaseService"] = None
        self._rendering: Optional["RenderingService"] = None
        self._templates: Optional["TemplateStore"] = None
        self._jobs: Optional["JobStore"] = None
        self._generator: Optional["BulkGenerator"] = None
        self._initialized: bool = False

    def initialize(self) -> None:
        """初始化应用.

        执行以下初始化步骤:
        1. 加载配置
        2. 确保数据目录存在
        3. 初始化数据库
        4. 初始化服务
        """
        if self._initialized:
            logger.warning("应用已初始化，跳过重复初始化")
            return

        logger.info("开始初始化应用...")
        self._load_settings()
        self._ensure_data_directory()
        self._init_database()
        self._init_services()

        self._initialized = True
        logger.info("应用初始化完成")

    def _load_settings(self) -> None:
        """加载应用设置."""
        if self._settings is None:
            from placard.core.config_manager import get_config

            self._settings = get_config().settings

        set_log_dir(self._settings.logs_path)
        set_log_level(self._settings.log_level)
        logger.debug(f"日志级别: {self._settings.log_level}")

    def _ensure_data_directory(self) -> None:
        """确保数据与输出目录存在."""
        settings = self.settings
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        settings.output_path.mkdir(parents=True, exist_ok=True)
        logger.debug(f"数据目录: {settings.data_dir}，输出目录: {settings.output_path}")

    def _init_database(self) -> None:
        """初始化数据库."""
        from placard.services.database_service import DatabaseService

        self._db_service = DatabaseService(self.settings.db_path)
        self._db_service.init_db()
        logger.debug("数据库初始化完成")

    def _init_services(self) -> None:
        """初始化各服务."""
        from placard.core.bulk_generator import BulkGenerator
        from placard.services.job_store import JobStore
        from placard.services.rendering_service import RenderingService
        from placard.services.template_store import TemplateStore

        self._templates = TemplateStore(self._db_service)
        self._jobs = JobStore(self._db_service)
        self._rendering = RenderingService(self.settings)
        self._generator = BulkGenerator(self._templates, self._jobs, self._rendering, self.settings)
        logger.debug("服务初始化完成")

    def cleanup(self) -> None:
        """清理应用资源."""
        logger.info("开始清理应用资源...")

        try:
            if self._rendering:
                self._rendering.shutdown()
        finally:
            if self._db_service:
                self._db_service.close()
                logger.debug("数据库连接已关闭")
            self._initialized = False

        logger.info("应用资源清理完成")

    def __enter__(self) -> "Application":
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()

    def _require(self, service):
        if not self._initialized or service is None:
            raise RuntimeError("应用尚未初始化，请先调用 initialize()")
        return service

    @property
    def is_initialized(self) -> bool:
        """返回应用是否已初始化."""
        return self._initialized

    @property
    def settings(self) -> "Settings":
        """应用设置."""
        if self._settings is None:
            raise RuntimeError("应用设置尚未加载")
        return self._settings

    @property
    def db_service(self) -> "DatabaseService":
        """数据库服务."""
        return self._require(self._db_service)

    @property
    def templates(self) -> "TemplateStore":
        """模板存储."""
        return self._require(self._templates)

    @property
    def jobs(self) -> "JobStore":
        """任务存储."""
        return self._require(self._jobs)

    @property
    def rendering(self) -> "RenderingService":
        """渲染服务."""
        return self._require(self._rendering)

    @property
    def generator(self) -> "BulkGenerator":
        """批量生成编排器."""
        return self._require(self._generator)
