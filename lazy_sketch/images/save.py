from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from ..utils.io import (
    compress_image_bytes_to_jpg,
    download_http_resource,
    infer_image_mime,
    save_file,
)
from ..utils.log import logger

SKETCH_FILENAME_PREFIX = "sketch"
SKETCH_SUFFIX = ".jpg"
MAX_PROMPT_FRAGMENT_LENGTH = 50
JPEG_MIME = "image/jpeg"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass(slots=True)
class SaveSketchImageResult:
    path: Path
    """写入磁盘的绝对路径"""
    relative_path: str
    """相对数据根目录的 POSIX 路径，用于 markdown 链接。"""
    mime: str
    """下载内容的原始 MIME"""
    converted: bool = False
    """是否由其他格式转码为 JPEG"""

    def to_metadata_dict(self) -> dict[str, object]:
        """转换为可安全写入 JSON 的摘要信息。"""
        return {
            "filename": self.path.name,
            "relative_path": self.relative_path,
            "mime": self.mime,
            "converted": self.converted,
        }


def sanitize_prompt_fragment(
    prompt: str, max_length: int = MAX_PROMPT_FRAGMENT_LENGTH
) -> str:
    """非字母数字字符替换为 `_`，再截断到 max_length。"""
    return _UNSAFE_FILENAME_CHARS.sub("_", prompt)[:max_length]


def build_sketch_filename(prompt: str, timestamp_ms: int) -> str:
    return (
        f"{SKETCH_FILENAME_PREFIX}_{sanitize_prompt_fragment(prompt)}"
        f"_{timestamp_ms}{SKETCH_SUFFIX}"
    )


def _resolve_image_mime_for_save(content: bytes) -> str:
    """解析保存阶段使用的图片 MIME，非图片直接报错。"""
    inferred_mime = infer_image_mime(content, default_mime="")
    if inferred_mime.startswith("image/"):
        return inferred_mime
    raise ValueError("image mime type is not valid.")


async def save_sketch_image(
    *,
    image_url: str,
    prompt: str,
    target_dir: Path,
    timestamp_ms: int,
    base_dir: Path | None = None,
    jpeg_quality: int = 80,
    http_timeout_sec: int = 60,
) -> SaveSketchImageResult:
    """下载图片并以 `sketch_<prompt>_<timestamp>.jpg` 保存到目标目录，失败时抛异常。

    base_dir 用于计算 relative_path，缺省时取 target_dir 的父目录。
    """
    content = await download_http_resource(
        image_url,
        timeout_sec=http_timeout_sec,
    )
    mime = _resolve_image_mime_for_save(content)
    converted = False
    if mime != JPEG_MIME:
        content = compress_image_bytes_to_jpg(content, quality=jpeg_quality)
        converted = True

    output_path = target_dir / build_sketch_filename(prompt, timestamp_ms)
    save_file(output_path, content)

    root = base_dir if base_dir is not None else target_dir.parent
    try:
        relative_path = output_path.relative_to(root).as_posix()
    except ValueError:
        relative_path = output_path.as_posix()

    result = SaveSketchImageResult(
        path=output_path,
        relative_path=relative_path,
        mime=mime,
        converted=converted,
    )
    logger.info("sketch.saved", result.to_metadata_dict())
    return result
