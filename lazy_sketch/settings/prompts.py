from __future__ import annotations

from collections.abc import Mapping

from .schema import LazySketchSettings, PromptPattern

PROMPT_PLACEHOLDER = "{prompt}"
PATTERN_TEXT_SEPARATOR = ":"


def validate_prompt_template(template: str) -> str:
    """校验模板恰好包含一个占位符，返回去除首尾空白后的模板。"""
    normalized = template.strip()
    count = normalized.count(PROMPT_PLACEHOLDER)
    if count != 1:
        raise ValueError(
            f"Prompt template must contain {PROMPT_PLACEHOLDER} exactly once, got {count}."
        )
    return normalized


def _parse_prompt_pattern(raw: object) -> PromptPattern | None:
    """解析单个模板项，支持 `{"name", "pattern"}` 映射或 `"name: template"` 文本。

    名称不能包含 `:`，否则写回配置面板的文本形式后无法还原。
    """
    if isinstance(raw, Mapping):
        name = raw.get("name")
        pattern = raw.get("pattern")
    elif isinstance(raw, str) and PATTERN_TEXT_SEPARATOR in raw:
        name, pattern = raw.split(PATTERN_TEXT_SEPARATOR, 1)
    else:
        return None

    if not isinstance(name, str) or not isinstance(pattern, str):
        return None
    name = name.strip()
    pattern = pattern.strip()
    if not name or not pattern or PATTERN_TEXT_SEPARATOR in name:
        return None
    return PromptPattern(name=name, pattern=pattern)


def normalize_prompt_patterns(raw_patterns: object) -> list[PromptPattern]:
    """规范化模板列表：丢弃非法项，同名模板只保留第一个。"""
    if not isinstance(raw_patterns, list):
        return []
    normalized: list[PromptPattern] = []
    seen: set[str] = set()
    for item in raw_patterns:
        parsed = _parse_prompt_pattern(item)
        if parsed is None or parsed.name in seen:
            continue
        seen.add(parsed.name)
        normalized.append(parsed)
    return normalized


def serialize_prompt_patterns(patterns: list[PromptPattern]) -> list[str]:
    """转换为宿主配置面板使用的 `"name: template"` 文本列表。"""
    return [
        f"{pattern.name}{PATTERN_TEXT_SEPARATOR} {pattern.pattern}"
        for pattern in patterns
    ]


def resolve_prompt_pattern(settings: LazySketchSettings) -> PromptPattern:
    """返回当前选中的模板，名称不存在时回退到第一个模板。"""
    if not settings.prompt_patterns:
        raise ValueError("No prompt patterns configured.")
    for pattern in settings.prompt_patterns:
        if pattern.name == settings.selected_pattern:
            return pattern
    return settings.prompt_patterns[0]


def format_prompt(pattern: PromptPattern | str, user_prompt: str) -> str:
    """用用户输入替换模板中的第一个占位符。

    模板缺少占位符时把用户输入追加在末尾，避免输入被静默丢弃。
    """
    template = pattern.pattern if isinstance(pattern, PromptPattern) else pattern
    user_text = user_prompt.strip()
    if PROMPT_PLACEHOLDER not in template:
        return f"{template.rstrip()} {user_text}".strip()
    return template.replace(PROMPT_PLACEHOLDER, user_text, 1)
