"""Placard 模板批量出图服务 - 命令行入口."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

from placard.utils.constants import APP_NAME, APP_VERSION


def _print_json(payload: Any, stream=None) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str), file=stream or sys.stdout)


def _load_rows(source: str) -> Any:
    """读取数据行：JSON 文件路径，或 ``-`` 表示标准输入.

    文件内容可以是行数组，也可以是 ``{"data": [...]}``。
    """
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    payload = json.loads(text)
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


def build_parser() -> argparse.ArgumentParser:
    """构建命令行参数解析器."""
    parser = argparse.ArgumentParser(prog="placard", description=APP_NAME)
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("--log-level", default=None, help="日志级别 (DEBUG/INFO/WARNING/ERROR)")
    parser.add_argument("--data-dir", type=Path, default=None, help="数据目录")

    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import-template", help="从 JSON 文件导入模板")
    p_import.add_argument("file", type=Path, help="场景文档 JSON 文件")
    p_import.add_argument("--name", default=None, help="模板名称，默认取文件名")

    p_generate = sub.add_parser("generate", help="按数据行批量生成图片")
    p_generate.add_argument("template_id", help="模板ID")
    p_generate.add_argument("data", help="数据行 JSON 文件，- 表示标准输入")
    p_generate.add_argument("--format", default="png", help="输出格式 (png / jpeg)")
    p_generate.add_argument("--no-base64", action="store_true", help="响应中不内联 Base64")

    p_job = sub.add_parser("job", help="查询任务状态")
    p_job.add_argument("job_id", help="任务ID")

    sub.add_parser("list-templates", help="列出所有模板")
    return parser


def _run(app: Any, args: argparse.Namespace) -> Any:
    if args.command == "import-template":
        template = app.templates.import_file(args.file, name=args.name)
        return {
            "id": template.id,
            "name": template.name,
            "width": template.width,
            "height": template.height,
            "variables": template.variables,
        }

    if args.command == "generate":
        rows = _load_rows(args.data)
        response = asyncio.run(app.generator.generate(args.template_id, args.format, rows))
        return response.to_dict()

    if args.command == "job":
        return app.generator.get_job_status(args.job_id).to_dict()

    if args.command == "list-templates":
        return [
            {
                "id": t.id,
                "name": t.name,
                "width": t.width,
                "height": t.height,
                "variables": t.variables,
                "updatedAt": t.updated_at.isoformat() if t.updated_at else None,
            }
            for t in app.templates.list()
        ]

    raise ValueError(f"未知命令: {args.command}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """应用主入口函数.

    Returns:
        退出码，0 表示成功
    """
    from placard.app import Application
    from placard.core.config_manager import get_config
    from placard.utils.error_handler import to_error_response
    from placard.utils.exceptions import AppException
    from placard.utils.logger import setup_logger

    logger = setup_logger(__name__)
    args = build_parser().parse_args(argv)

    overrides: dict[str, Any] = {}
    if args.log_level:
        overrides["log_level"] = args.log_level
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if getattr(args, "no_base64", False):
        overrides["inline_base64"] = False

    try:
        config = get_config()
        settings = config.override(**overrides) if overrides else config.settings
        with Application(settings) as app:
            result = _run(app, args)
    except AppException as e:
        status, body = to_error_response(e)
        body["status"] = status
        _print_json(body, sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"输入读取失败: {e}")
        _print_json({"error": str(e)}, sys.stderr)
        return 1

    _print_json(result)
    if isinstance(result, dict) and result.get("status") == "failed":
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
