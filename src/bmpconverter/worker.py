"""工作进程初始化和分块转换"""

import sys
from dataclasses import dataclass, field
from pathlib import Path

from .converter import convert_file

_initialized = False


@dataclass
class ChunkResult:
    """单个工作进程的执行结果"""

    index: int
    converted: list[Path] = field(default_factory=list)
    failed: list[tuple[Path, str]] = field(default_factory=list)
    crashed: bool = False


def init_worker() -> None:
    """
    每个进程初始化一次 - 注册所有格式插件

    fork 出来的进程可能已经继承了父进程的注册状态，重复注册无害。
    """
    global _initialized
    if _initialized:
        return

    from pillow_heif import register_heif_opener, options

    try:
        from pillow_avif import AvifImagePlugin  # noqa: F401
    except ImportError:
        pass

    try:
        from pillow_jxl import JpegXLImagePlugin  # noqa: F401
    except ImportError:
        pass

    # 每个进程只负责一个分块，HEIF 解码不再额外开线程
    options.DECODE_THREADS = 1
    register_heif_opener()
    _initialized = True


def process_chunk(index: int, chunk: list[tuple[Path, Path]], codec) -> ChunkResult:
    """
    按顺序转换一个分块中的所有文件

    单个文件失败只记录并跳过，不会中断整个分块。

    Args:
        index: 工作进程编号
        chunk: [(输入文件，输出文件), ...]
        codec: 提供 decode/encode 的编解码器

    Returns:
        分块执行结果
    """
    result = ChunkResult(index=index)

    for inp, out in chunk:
        success, error = convert_file(inp, out, codec)
        if success:
            result.converted.append(out)
        else:
            result.failed.append((inp, error))
            print(f"✗ {inp} - {error}", file=sys.stderr, flush=True)

    return result


def run_chunk(index: int, chunk: list[tuple[Path, Path]], codec, conn) -> None:
    """工作进程入口：转换分块并通过管道把结果交回协调进程"""
    try:
        init_worker()
        result = process_chunk(index, chunk, codec)
        conn.send(result)
    finally:
        conn.close()
