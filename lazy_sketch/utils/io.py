from __future__ import annotations

from io import BytesIO
from pathlib import Path

from .http import send_request


def infer_image_mime(image_bytes: bytes, default_mime: str = "image/png") -> str:
    """根据图片字节头推断 MIME，无法识别时回退默认值。"""
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"GIF87a") or image_bytes.startswith(b"GIF89a"):
        return "image/gif"
    if image_bytes.startswith(b"RIFF") and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes.startswith(b"BM"):
        return "image/bmp"
    if image_bytes.startswith(b"II*\x00") or image_bytes.startswith(b"MM\x00*"):
        return "image/tiff"

    from PIL import Image, UnidentifiedImageError

    try:
        with Image.open(BytesIO(image_bytes)) as image:
            format_name = (image.format or "").upper()
            mime = Image.MIME.get(format_name)
            if isinstance(mime, str) and mime:
                return mime
    except (UnidentifiedImageError, OSError, ValueError):
        return default_mime

    return default_mime


async def download_http_resource(url: str, timeout_sec: int = 60) -> bytes:
    """异步下载 HTTP 资源并返回原始字节。"""
    response = await send_request(
        "GET",
        url=url,
        timeout_sec=timeout_sec,
        source="Image download",
        log_body=False,
    )
    return response.body


def save_file(path: Path, content: bytes | str, encoding: str = "utf-8") -> Path:
    """将内容保存到指定路径，自动创建父目录并返回目标路径。"""
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding=encoding)
    return path


def compress_image_bytes_to_jpg(
    image_bytes: bytes,
    quality: int = 80,
) -> bytes:
    """将图像二进制转换为 JPG（二进制）。"""
    if quality < 1 or quality > 95:
        raise ValueError("quality must be in [1, 95].")

    from PIL import Image

    with Image.open(BytesIO(image_bytes)) as image:
        # JPEG 不支持透明通道，这里将透明像素合成到白色背景。
        if image.mode in {"RGBA", "LA"} or (
            image.mode == "P" and "transparency" in image.info
        ):
            alpha = image.convert("RGBA")
            background = Image.new("RGB", alpha.size, (255, 255, 255))
            background.paste(alpha, mask=alpha.split()[-1])
            rgb_image = background
        else:
            rgb_image = image.convert("RGB")

        output = BytesIO()
        rgb_image.save(output, format="JPEG", quality=quality, optimize=True)
        return output.getvalue()
