#!/usr/bin/env python3
"""
BMP 多进程批量转换器
把目录树中的 BMP 图片并行转换为 PNG（或其他格式）
用法：uv run python -m bmpconverter <输入路径> <进程数>
"""

import argparse
import sys

from .batch import BatchProcessor, SpawnError
from .config_data import BatchConfig, ConfigError
from .converter import FORMATS, DiscoveryError


class _ArgumentParser(argparse.ArgumentParser):
    """参数错误统一以退出码 1 结束"""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"❌ {self.prog}: {message}\n")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"进程数必须是整数：{value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"进程数必须大于 0：{number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    p = _ArgumentParser(prog="bmpconverter", description="BMP 多进程批量转换器")
    p.add_argument("input_path", help="输入文件或目录")
    p.add_argument("workers", type=positive_int, help="工作进程数")
    p.add_argument("--source-ext", default=".bmp", help="源文件扩展名，区分大小写 (默认 .bmp)")
    p.add_argument("--to", dest="output_format", default="png", choices=sorted(FORMATS), help="输出格式")
    p.add_argument("-o", "--output-dir", default=None, help="输出目录 (默认 ./converted_multi)")
    p.add_argument("-q", "--quality", type=int, default=90, help="有损格式的质量 (0-100)")
    return p


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    config = BatchConfig(
        input_path=args.input_path,
        workers=args.workers,
        source_ext=args.source_ext,
        output_format=args.output_format,
        output_dir=args.output_dir,
        quality=args.quality,
    )

    try:
        BatchProcessor().process(config)
    except ConfigError as e:
        print(f"❌ 配置错误：{e}", file=sys.stderr, flush=True)
        return 1
    except DiscoveryError as e:
        print(f"❌ {e.strerror}", file=sys.stderr, flush=True)
        return 1
    except SpawnError as e:
        print(f"❌ {e}", file=sys.stderr, flush=True)
        return 1
    except OSError as e:
        print(f"❌ 文件系统错误：{e}", file=sys.stderr, flush=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
