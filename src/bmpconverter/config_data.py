"""配置处理模块"""

from dataclasses import dataclass
from pathlib import Path

from .converter import FORMATS, get_output_ext

OUTPUT_DIR_NAME = "converted_multi"


class ConfigError(Exception):
    """配置错误（参数数量、进程数等）"""


@dataclass
class BatchConfig:
    """批量转换配置"""

    input_path: str = ""
    workers: int = 1
    source_ext: str = ".bmp"
    output_format: str = "png"
    output_dir: str | None = None
    quality: int = 90
    start_method: str | None = None

    def validate(self) -> None:
        """校验配置，不访问文件系统"""
        if not self.input_path:
            raise ConfigError("缺少输入路径")
        if isinstance(self.workers, bool) or not isinstance(self.workers, int):
            raise ConfigError(f"进程数必须是整数：{self.workers!r}")
        if self.workers < 1:
            raise ConfigError(f"进程数必须大于 0：{self.workers}")
        if not 0 <= self.quality <= 100:
            raise ConfigError(f"质量必须在 0-100 之间：{self.quality}")
        if self.output_format not in FORMATS:
            raise ConfigError(f"未知输出格式：{self.output_format}")
        if not self.source_ext.startswith(".") or len(self.source_ext) < 2:
            raise ConfigError(f"源扩展名必须以点开头：{self.source_ext}")

    def resolve_output_path(self) -> Path:
        """解析输出路径，如果未指定则使用当前目录下的 converted_multi"""
        if self.output_dir:
            return Path(self.output_dir).absolute()
        return Path.cwd() / OUTPUT_DIR_NAME

    @property
    def output_ext(self) -> str:
        return get_output_ext(self.output_format)

    @property
    def conversion_direction(self) -> str:
        """获取转换方向描述"""
        return f"{self.source_ext.lstrip('.').upper()} → {self.output_format.upper()}"
