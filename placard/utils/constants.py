"""应用常量定义."""

from pathlib import Path

# ===================
# 应用信息
# ===================
APP_NAME = "Placard 模板批量出图服务"
APP_VERSION = "0.3.0"

# ===================
# 路径常量
# ===================
# 应用数据目录
APP_DATA_DIR = Path.home() / ".placard"

# 数据库文件路径
DATABASE_PATH = APP_DATA_DIR / "placard.db"

# 日志目录
LOG_DIR = APP_DATA_DIR / "logs"

# 输出目录
OUTPUT_DIR = APP_DATA_DIR / "output"

# 输出文件对外访问前缀
PUBLIC_URL_PREFIX = "/output"

# ===================
# 渲染常量
# ===================
# 支持的输出格式
SUPPORTED_OUTPUT_FORMATS = ("png", "jpeg")

# 默认 JPEG 质量 (1-100)
DEFAULT_JPEG_QUALITY = 90

# 最大画布边长
MAX_CANVAS_SIDE = 8192

# 文字自适应缩小时允许的最小字号
MIN_FIT_FONT_SIZE = 4

# ===================
# 渲染池设置
# ===================
DEFAULT_POOL_SIZE = 2
DEFAULT_ACQUIRE_TIMEOUT = 30.0  # 秒
DEFAULT_RENDER_TIMEOUT = 60.0  # 秒
DEFAULT_ASSET_TIMEOUT = 15.0  # 秒
DEFAULT_ASSET_CACHE_MB = 128

# ===================
# 标识符
# ===================
TEMPLATE_ID_PREFIX = "tmpl_"
JOB_ID_PREFIX = "job_"
ID_LENGTH = 10
