from .prompts import PROMPT_PLACEHOLDER, format_prompt, resolve_prompt_pattern
from .schema import DEFAULT_SETTINGS, LazySketchSettings, PromptPattern
from .store import SettingsStore, read_settings

__all__ = [
    "DEFAULT_SETTINGS",
    "LazySketchSettings",
    "PROMPT_PLACEHOLDER",
    "PromptPattern",
    "SettingsStore",
    "format_prompt",
    "read_settings",
    "resolve_prompt_pattern",
]
