"""工具模块."""
