"""核心转换功能模块"""

import os
from dataclasses import dataclass
from pathlib import Path

from PIL import Image


class CodecError(Exception):
    """单个文件编解码失败"""


class DecodeError(CodecError):
    """源文件无法读取或已损坏"""


class EncodeError(CodecError):
    """目标文件写入失败"""


class DiscoveryError(OSError):
    """输入路径不存在或不可读"""


# 目标格式 -> (扩展名, Pillow 格式名)
FORMATS = {
    "png": (".png", "PNG"),
    "jpg": (".jpg", "JPEG"),
    "webp": (".webp", "WEBP"),
    "tiff": (".tiff", "TIFF"),
    "heic": (".heic", "HEIF"),
    "avif": (".avif", "AVIF"),
    "jxl": (".jxl", "JXL"),
}

LOSSY_FORMATS = {"jpg", "webp", "heic", "avif", "jxl"}


def decode_image(inp: Path) -> Image.Image:
    """
    读取源图片并完整解码

    Args:
        inp: 输入文件路径

    Returns:
        解码后的图像（已脱离文件句柄）

    Raises:
        DecodeError: 文件无法识别、被截断或不可读
    """
    try:
        with Image.open(inp) as img:
            img.load()
            # 复制一份避免引用已关闭的文件
            return img.copy()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise DecodeError(f"无法读取图片: {inp} ({e})") from e


def _flatten_alpha(img: Image.Image) -> Image.Image:
    """带透明通道的图片，转换为白色背景的 RGB"""
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode != "RGBA":
            img = img.convert("RGBA")
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def encode_image(img: Image.Image, out: Path, fmt: str = "png", quality: int = 90) -> None:
    """
    将图像编码写入目标路径

    Args:
        img: 解码后的图像
        out: 输出文件路径
        fmt: 输出格式 (png/jpg/webp/tiff/heic/avif/jxl)
        quality: 质量 (0-100)，仅对有损格式生效

    Raises:
        EncodeError: 未知格式或写入失败
    """
    if fmt not in FORMATS:
        raise EncodeError(f"未知格式：{fmt}")
    _, pillow_format = FORMATS[fmt]
    exif = img.info.get("exif")

    try:
        if fmt == "jpg":
            img = _flatten_alpha(img)
        elif fmt in ("heic", "avif", "jxl") and img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGB")

        if fmt == "heic":
            from pillow_heif import from_pillow
            heif = from_pillow(img)
            heif.save(out, quality=quality, exif=exif)
        elif fmt in LOSSY_FORMATS:
            if exif:
                img.save(out, format=pillow_format, quality=quality, exif=exif)
            else:
                img.save(out, format=pillow_format, quality=quality)
        else:
            img.save(out, format=pillow_format)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeError(f"无法写入图片: {out} ({e})") from e


@dataclass(frozen=True)
class PillowCodec:
    """基于 Pillow 的编解码器，可在进程间传递"""

    output_format: str = "png"
    quality: int = 90

    def decode(self, path: Path) -> Image.Image:
        return decode_image(path)

    def encode(self, img: Image.Image, path: Path) -> None:
        encode_image(img, path, self.output_format, self.quality)


def convert_file(inp: Path, out: Path, codec) -> tuple[bool, str]:
    """
    转换单个文件：先解码再编码

    Args:
        inp: 输入文件路径
        out: 输出文件路径
        codec: 提供 decode/encode 的编解码器

    Returns:
        (成功标志，错误信息)
    """
    try:
        img = codec.decode(inp)
        codec.encode(img, out)
        return True, ""
    except CodecError as e:
        return False, str(e)


def _raise_walk_error(err: OSError) -> None:
    raise DiscoveryError(err.errno, f"目录不可读：{err.filename}", err.filename) from err


def find_files(path: Path, source_ext: str = ".bmp") -> list[Path]:
    """
    查找源文件

    单个文件时仅在扩展名匹配（区分大小写）时返回；目录时深度优先递归，
    每层按名称排序，当前目录的文件先于子目录的文件。

    Args:
        path: 输入文件或目录
        source_ext: 源文件扩展名（包含点）

    Returns:
        文件路径列表，顺序稳定

    Raises:
        DiscoveryError: 路径不存在或不可读
    """
    path = Path(path)
    try:
        exists = path.exists()
        is_file = exists and path.is_file()
        is_dir = exists and path.is_dir()
    except OSError as e:
        raise DiscoveryError(e.errno, f"路径不可读：{path} ({e.strerror})", str(path)) from e

    if not exists:
        raise DiscoveryError(2, f"路径不存在：{path}", str(path))
    if is_file:
        return [path] if path.suffix == source_ext else []
    if not is_dir:
        return []

    files = []
    for dirpath, dirnames, filenames in os.walk(path, onerror=_raise_walk_error):
        dirnames.sort()
        for name in sorted(filenames):
            f = Path(dirpath) / name
            if f.suffix == source_ext and f.is_file():
                files.append(f)
    return files


def get_output_ext(output_format: str) -> str:
    """
    获取输出文件扩展名

    Args:
        output_format: 输出格式

    Returns:
        输出扩展名（包含点）
    """
    if output_format in FORMATS:
        return FORMATS[output_format][0]
    return f".{output_format}"


def output_path_for(source: Path, output_dir: Path, out_ext: str) -> Path:
    """只取源文件名，替换扩展名后放到输出目录下"""
    return Path(output_dir) / f"{Path(source).stem}{out_ext}"


def plan_outputs(files: list[Path], output_dir: Path, out_ext: str) -> list[tuple[Path, Path]]:
    """
    为全部源文件规划输出路径

    不同子目录下的同名文件会落到同一个输出路径上，后出现的文件改名为
    ``<stem>_<n><ext>``（n 取未被占用的最小值）并打印警告。

    Returns:
        [(输入文件，输出文件), ...]，与 files 顺序一致
    """
    planned = []
    taken = {output_path_for(f, output_dir, out_ext).name for f in files}
    used = set()

    for f in files:
        out = output_path_for(f, output_dir, out_ext)
        if out.name in used:
            n = 1
            while f"{f.stem}_{n}{out_ext}" in taken or f"{f.stem}_{n}{out_ext}" in used:
                n += 1
            renamed = out.with_name(f"{f.stem}_{n}{out_ext}")
            print(f"⚠️  文件名冲突：{f} -> {renamed.name}", flush=True)
            out = renamed
        used.add(out.name)
        planned.append((f, out))

    return planned
