"""
BMP 多进程批量转换器

示例用法:
    from bmpconverter import BatchConfig, BatchProcessor

    config = BatchConfig(input_path="/path/to/bitmaps", workers=4)
    result = BatchProcessor().process(config)
    print(result.output_dir, result.elapsed)
"""

__version__ = "1.0.0"

from .batch import BatchProcessor, BatchResult, BatchState, SpawnError, partition
from .config_data import BatchConfig, ConfigError
from .converter import (
    DecodeError,
    DiscoveryError,
    EncodeError,
    PillowCodec,
    convert_file,
    find_files,
    get_output_ext,
    output_path_for,
    plan_outputs,
)
from .worker import ChunkResult, init_worker, process_chunk

__all__ = [
    "__version__",
    "BatchConfig",
    "BatchProcessor",
    "BatchResult",
    "BatchState",
    "ChunkResult",
    "ConfigError",
    "DecodeError",
    "DiscoveryError",
    "EncodeError",
    "PillowCodec",
    "SpawnError",
    "convert_file",
    "find_files",
    "get_output_ext",
    "init_worker",
    "output_path_for",
    "partition",
    "plan_outputs",
    "process_chunk",
]
