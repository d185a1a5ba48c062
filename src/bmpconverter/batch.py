"""分块与多进程任务执行模块"""

import multiprocessing
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Sequence, Tuple

from . import converter
from .config_data import BatchConfig, ConfigError
from .worker import ChunkResult, run_chunk


class SpawnError(Exception):
    """工作进程创建失败"""


class BatchState(Enum):
    """协调进程的状态"""

    INIT = "init"
    DISCOVERING = "discovering"
    PARTITIONING = "partitioning"
    SPAWNING = "spawning"
    RUNNING = "running"
    JOINING = "joining"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


def partition(items: Sequence, workers: int) -> List[list]:
    """
    把序列切成 workers 个连续分块

    分块大小为 ceil(N / workers)，最后一块取走剩余的全部元素，
    因此最后一块可能更小甚至为空。

    Raises:
        ConfigError: workers 小于 1
    """
    if workers < 1:
        raise ConfigError(f"进程数必须大于 0：{workers}")

    items = list(items)
    size = -(-len(items) // workers)
    chunks = [items[i * size:(i + 1) * size] for i in range(workers - 1)]
    chunks.append(items[(workers - 1) * size:])
    return chunks


@dataclass
class BatchResult:
    """批量转换结果"""

    output_dir: Path
    total: int = 0
    converted: List[Path] = field(default_factory=list)
    failed: List[Tuple[Path, str]] = field(default_factory=list)
    crashed_workers: List[int] = field(default_factory=list)
    elapsed: float = 0.0
    state: BatchState = BatchState.INIT


@dataclass
class WorkerHandle:
    """已启动的工作进程及其结果管道"""

    index: int
    process: multiprocessing.process.BaseProcess
    conn: object
    size: int


class BatchProcessor:
    """批量转换协调器（多进程版）"""

    def __init__(self, codec=None, show_info: bool = True):
        """
        初始化协调器

        Args:
            codec: 编解码器，默认按配置创建 PillowCodec
            show_info: 是否打印任务信息
        """
        self.codec = codec
        self.show_info = show_info
        self.state = BatchState.INIT

    def process(self, config: BatchConfig) -> BatchResult:
        """
        执行一次完整的批量转换

        发现文件、创建输出目录、分块、每块启动一个工作进程，
        等待全部进程结束后汇报耗时与输出目录。

        Args:
            config: 批量转换配置

        Returns:
            批量转换结果

        Raises:
            ConfigError: 配置无效
            DiscoveryError: 输入路径不存在或不可读
            SpawnError: 工作进程创建失败
        """
        self.state = BatchState.INIT
        try:
            config.validate()
        except ConfigError:
            self.state = BatchState.FAILED
            raise

        input_path = Path(config.input_path)
        output_dir = config.resolve_output_path()

        self.state = BatchState.DISCOVERING
        try:
            files = converter.find_files(input_path, config.source_ext)
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            self.state = BatchState.FAILED
            raise

        if self.show_info:
            self._print_task_info(config, input_path, output_dir, len(files))
        if not files:
            print(f"⚠️  未找到文件 (格式：{config.source_ext})", flush=True)

        tasks = converter.plan_outputs(files, output_dir, config.output_ext)

        self.state = BatchState.PARTITIONING
        chunks = partition(tasks, config.workers)

        codec = self.codec
        if codec is None:
            codec = converter.PillowCodec(config.output_format, config.quality)
        ctx = multiprocessing.get_context(config.start_method)

        start_time = time.perf_counter()

        self.state = BatchState.SPAWNING
        try:
            handles = self._spawn(ctx, chunks, codec)
        except SpawnError:
            self.state = BatchState.FAILED
            raise

        self.state = BatchState.JOINING
        results = self._join(handles)

        elapsed = time.perf_counter() - start_time

        self.state = BatchState.REPORTING
        result = BatchResult(output_dir=output_dir, total=len(tasks), elapsed=elapsed)
        for chunk_result in results:
            result.converted.extend(chunk_result.converted)
            result.failed.extend(chunk_result.failed)
            if chunk_result.crashed:
                result.crashed_workers.append(chunk_result.index)

        print(
            f"✅ 转换完成，耗时: {elapsed:.3f} 秒 (成功:{len(result.converted)}, "
            f"失败:{len(result.failed)})，文件已保存在 {output_dir}",
            flush=True,
        )

        self.state = BatchState.DONE
        result.state = self.state
        return result

    def _spawn(self, ctx, chunks: List[list], codec) -> List[WorkerHandle]:
        """每个分块启动一个工作进程；任一进程启动失败则终止已启动的进程"""
        handles = []

        for index, chunk in enumerate(chunks):
            reader = writer = None
            try:
                reader, writer = ctx.Pipe(duplex=False)
                process = ctx.Process(
                    target=run_chunk,
                    args=(index, chunk, codec, writer),
                    name=f"bmpconverter-worker-{index}",
                )
                process.start()
            except OSError as e:
                for conn in (reader, writer):
                    if conn is not None:
                        conn.close()
                self._abort(handles)
                raise SpawnError(f"工作进程 {index} 启动失败：{e}") from e

            # 父进程不写管道，关闭后子进程退出时 recv 才能收到 EOF
            writer.close()
            handles.append(WorkerHandle(index, process, reader, len(chunk)))

        self.state = BatchState.RUNNING
        return handles

    def _join(self, handles: List[WorkerHandle]) -> List[ChunkResult]:
        """等待所有工作进程结束并收集结果"""
        results = []

        for handle in handles:
            try:
                result = handle.conn.recv()
            except EOFError:
                result = ChunkResult(index=handle.index, crashed=True)
            finally:
                handle.conn.close()

            handle.process.join()
            if result.crashed:
                print(
                    f"❌ 工作进程 {handle.index} 异常退出 (exitcode={handle.process.exitcode})，"
                    f"{handle.size} 个文件结果未知",
                    file=sys.stderr,
                    flush=True,
                )
            handle.process.close()
            results.append(result)

        return results

    def _abort(self, handles: List[WorkerHandle]) -> None:
        """终止并回收已启动的工作进程"""
        for handle in handles:
            handle.process.terminate()
        for handle in handles:
            handle.process.join()
            handle.process.close()
            handle.conn.close()

    def _print_task_info(
        self, config: BatchConfig, input_path: Path, output_dir: Path, total: int
    ) -> None:
        """打印任务信息"""
        separator = "=" * 60
        print(f"{separator}", flush=True)
        print(f"   输入：{input_path}", flush=True)
        print(f"   输出：{output_dir}", flush=True)
        print(f"   转换：{config.conversion_direction}", flush=True)
        print(f"   文件：{total}", flush=True)
        print(f"   进程：{config.workers}", flush=True)
        print(f"{separator}", flush=True)
