from __future__ import annotations

from dataclasses import dataclass

from ..settings.schema import LazySketchSettings


@dataclass(frozen=True, slots=True)
class SizePreset:
    name: str
    width: int
    height: int
    label: str


DEFAULT_PRESET = "default"
CUSTOM_PRESET = "custom"

SIZE_PRESETS: dict[str, SizePreset] = {
    DEFAULT_PRESET: SizePreset(DEFAULT_PRESET, 1024, 512, "default / 2:1"),
    "wide": SizePreset("wide", 1024, 256, "wide / 4:1"),
    "ultrawide": SizePreset("ultrawide", 1536, 192, "ultra-wide / 8:1"),
}

PRESET_ALIASES: dict[str, str] = {
    "ultra-wide": "ultrawide",
    "ultra": "ultrawide",
}


def _normalize_preset_name(token: str) -> str:
    normalized = token.strip().lower()
    return PRESET_ALIASES.get(normalized, normalized)


def parse_sketch_args(args_text: str) -> tuple[str, str]:
    """解析 sketch 参数，返回 `(preset, prompt)`。

    只有第一个 token 可以是尺寸预设（含 `custom`），其余内容原样作为提示词。
    第一个 token 不是预设时使用 default。
    """
    tokens = args_text.split()
    if not tokens:
        return DEFAULT_PRESET, ""

    head = _normalize_preset_name(tokens[0])
    if head in SIZE_PRESETS or head == CUSTOM_PRESET:
        return head, " ".join(tokens[1:]).strip()
    return DEFAULT_PRESET, " ".join(tokens).strip()


def resolve_size(preset: str, settings: LazySketchSettings) -> tuple[int, int]:
    """将预设名解析为 `(width, height)`，custom 使用设置中的自定义尺寸。"""
    name = _normalize_preset_name(preset)
    if name == CUSTOM_PRESET:
        return settings.custom_width, settings.custom_height
    size_preset = SIZE_PRESETS.get(name)
    if size_preset is None:
        raise ValueError(f"Unknown size preset: {preset}")
    return size_preset.width, size_preset.height


def describe_size_presets() -> str:
    """列出可用尺寸预设，用于指令帮助文本。"""
    labels = [preset.label for preset in SIZE_PRESETS.values()]
    return ", ".join([*labels, CUSTOM_PRESET])


def split_pattern_args(args_text: str) -> tuple[str, str]:
    """拆分 `<name> <template>`，模板正文中的空格与换行原样保留。"""
    parts = args_text.strip().split(None, 1)
    if not parts:
        return "", ""
    if len(parts) == 1:
        return parts[0], ""
    return parts[0], parts[1].strip()


def parse_size_args(args_text: str) -> tuple[int, int]:
    """解析 `<width> <height>` 或 `<width>x<height>`。"""
    normalized = args_text.strip().lower().replace("x", " ")
    parts = normalized.split()
    if len(parts) != 2:
        raise ValueError("Expected '<width> <height>'.")
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError as exc:
        raise ValueError("Width and height must be integers.") from exc
    if width <= 0 or height <= 0:
        raise ValueError("Width and height must be positive.")
    return width, height
