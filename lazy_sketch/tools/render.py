from __future__ import annotations

from ..utils.errors import PluginErrorCode, PluginException, error_message_of


def build_markdown_image_link(
    prompt: str,
    image_path: str,
    *,
    replace_selection: bool = False,
) -> str:
    """构造 markdown 图片链接；插入到光标处时追加换行，替换选区时不追加。"""
    link = f"![{prompt}]({image_path})"
    if replace_selection:
        return link
    return f"{link}\n"


def build_error_notice(exc: BaseException) -> str:
    """把任意异常转换为一条面向用户的提示。"""
    if isinstance(exc, PluginException) and exc.code == PluginErrorCode.PERMISSION_DENIED:
        return "请先在插件配置中填写 Replicate API token。"
    message = error_message_of(exc).rstrip(".。")
    return f"生成失败：{message}。"


def build_progress_text(prompt: str, width: int, height: int, estimated_seconds: int) -> str:
    return "\n".join(
        [
            "正在生成草图...",
            f"尺寸={width}x{height}  预计耗时=~{estimated_seconds}s",
            f"prompt={prompt}",
        ]
    )
