from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace

from ..utils.log import StructuredLogEmitter
from .keys import (
    CONFIG_API_TOKEN_KEY,
    CONFIG_BASE_URL_KEY,
    CONFIG_CUSTOM_HEIGHT_KEY,
    CONFIG_CUSTOM_WIDTH_KEY,
    CONFIG_FILES_DIR_KEY,
    CONFIG_LORA_WEIGHTS_KEY,
    CONFIG_MAX_POLL_ATTEMPTS_KEY,
    CONFIG_MODEL_KEY,
    CONFIG_POLL_INTERVAL_SEC_KEY,
    CONFIG_PROMPT_PATTERNS_KEY,
    CONFIG_TIMEOUT_SEC_KEY,
    LAST_GENERATION_TIME_MS_KEY,
    PLUGIN_STATE_KEY,
    SELECTED_PATTERN_KEY,
)
from .prompts import (
    normalize_prompt_patterns,
    serialize_prompt_patterns,
    validate_prompt_template,
)
from .schema import DEFAULT_SETTINGS, LazySketchSettings, PromptPattern

structured_log = StructuredLogEmitter(logger=logging.getLogger(__name__))

# KV 访问函数签名（通过函数注入而非硬编码依赖）：
# - kv_get(key, default) -> 已存值或 default
# - kv_put(key, value) -> 持久化写入
# - save_config() -> 将宿主配置写回磁盘（可选）
KVGet = Callable[[str, object], Awaitable[object | None]]
KVPut = Callable[[str, object], Awaitable[None]]
SaveConfig = Callable[[], None]
PluginState = dict[str, object]


def _coerce_str(value: object, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return fallback


def _coerce_positive_int(value: object, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value if value > 0 else fallback
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return fallback
        return parsed if parsed > 0 else fallback
    return fallback


def _coerce_positive_float(value: object, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (int, float)):
        return float(value) if value > 0 else fallback
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return fallback
        return parsed if parsed > 0 else fallback
    return fallback


def _normalize_plugin_state(raw_state: object) -> PluginState:
    """将 KV 中的原始状态归一化，只保留字符串键与 str/int 值。"""
    if not isinstance(raw_state, Mapping):
        return {}
    normalized: PluginState = {}
    for key, value in raw_state.items():
        if not isinstance(key, str) or isinstance(value, bool):
            continue
        if isinstance(value, (str, int)):
            normalized[key] = value
    return normalized


def read_settings(
    config: Mapping[str, object],
    state: Mapping[str, object],
) -> LazySketchSettings:
    """按 默认值 -> 宿主配置 -> 运行时状态 的顺序合并出设置。

    非法值不会报错，而是回退到上一层的值。
    """
    defaults = DEFAULT_SETTINGS
    prompt_patterns = normalize_prompt_patterns(
        config.get(CONFIG_PROMPT_PATTERNS_KEY)
    ) or [replace(pattern) for pattern in defaults.prompt_patterns]
    pattern_names = [pattern.name for pattern in prompt_patterns]

    selected_pattern = state.get(SELECTED_PATTERN_KEY)
    if not isinstance(selected_pattern, str) or selected_pattern not in pattern_names:
        selected_pattern = (
            defaults.selected_pattern
            if defaults.selected_pattern in pattern_names
            else pattern_names[0]
        )

    api_token = config.get(CONFIG_API_TOKEN_KEY)
    return LazySketchSettings(
        api_token=api_token.strip() if isinstance(api_token, str) else "",
        model=_coerce_str(config.get(CONFIG_MODEL_KEY), defaults.model),
        lora_weights=_coerce_str(
            config.get(CONFIG_LORA_WEIGHTS_KEY), defaults.lora_weights
        ),
        selected_pattern=selected_pattern,
        prompt_patterns=prompt_patterns,
        custom_width=_coerce_positive_int(
            config.get(CONFIG_CUSTOM_WIDTH_KEY), defaults.custom_width
        ),
        custom_height=_coerce_positive_int(
            config.get(CONFIG_CUSTOM_HEIGHT_KEY), defaults.custom_height
        ),
        last_generation_time_ms=_coerce_positive_int(
            state.get(LAST_GENERATION_TIME_MS_KEY),
            defaults.last_generation_time_ms,
        ),
        base_url=_coerce_str(config.get(CONFIG_BASE_URL_KEY), defaults.base_url),
        timeout_sec=_coerce_positive_int(
            config.get(CONFIG_TIMEOUT_SEC_KEY), defaults.timeout_sec
        ),
        poll_interval_sec=_coerce_positive_float(
            config.get(CONFIG_POLL_INTERVAL_SEC_KEY), defaults.poll_interval_sec
        ),
        max_poll_attempts=_coerce_positive_int(
            config.get(CONFIG_MAX_POLL_ATTEMPTS_KEY), defaults.max_poll_attempts
        ),
        files_dir=_coerce_str(config.get(CONFIG_FILES_DIR_KEY), defaults.files_dir),
    )


def _require_positive_int(name: str, value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}.")
    return value


class SettingsStore:
    """插件设置管理器：宿主配置保存面板类设置，KV 保存运行时状态，每次修改都会持久化。"""

    def __init__(
        self,
        *,
        config: dict[str, object],
        kv_get: KVGet,
        kv_put: KVPut,
        save_config: SaveConfig | None = None,
    ) -> None:
        self._config = config
        self._kv_get = kv_get
        self._kv_put = kv_put
        self._save_config = save_config
        self._state: PluginState = {}
        self._settings = read_settings(config, {})
        self._lock = asyncio.Lock()

    async def initialize(self) -> LazySketchSettings:
        """激活时调用一次：读取 KV 状态、合并设置、修正模板选择后全量写回 KV。"""
        async with self._lock:
            raw_state = await self._kv_get(PLUGIN_STATE_KEY, {})
            self._state = _normalize_plugin_state(raw_state)
            self._settings = read_settings(self._config, self._state)

            if not self._settings.api_token:
                structured_log.warning(
                    "settings.api_token_empty",
                    {"config_keys": sorted(self._config.keys())},
                )

            self._state[SELECTED_PATTERN_KEY] = self._settings.selected_pattern
            self._state[LAST_GENERATION_TIME_MS_KEY] = (
                self._settings.last_generation_time_ms
            )
            await self._sync_to_kv_locked()
            return self.snapshot()

    def snapshot(self) -> LazySketchSettings:
        """返回当前设置的副本，调用方修改副本不会影响存储。"""
        return replace(
            self._settings,
            prompt_patterns=[
                replace(pattern) for pattern in self._settings.prompt_patterns
            ],
        )

    async def select_pattern(self, name: str) -> LazySketchSettings:
        """切换当前模板，名称必须存在于模板列表中。"""
        async with self._lock:
            target = name.strip()
            if target not in self._settings.pattern_names:
                raise ValueError(f"Unknown prompt pattern: {target}")
            if self._state.get(SELECTED_PATTERN_KEY) == target:
                return self.snapshot()
            self._state[SELECTED_PATTERN_KEY] = target
            await self._sync_to_kv_locked()
            self._settings = read_settings(self._config, self._state)
            return self.snapshot()

    async def set_pattern_template(
        self, name: str, template: str
    ) -> LazySketchSettings:
        """替换指定模板正文，模板必须恰好包含一个 `{prompt}`。"""
        async with self._lock:
            target = name.strip()
            normalized_template = validate_prompt_template(template)
            if target not in self._settings.pattern_names:
                raise ValueError(f"Unknown prompt pattern: {target}")
            patterns = [
                PromptPattern(name=pattern.name, pattern=normalized_template)
                if pattern.name == target
                else replace(pattern)
                for pattern in self._settings.prompt_patterns
            ]
            self._config[CONFIG_PROMPT_PATTERNS_KEY] = serialize_prompt_patterns(
                patterns
            )
            self._persist_config_locked()
            self._settings = read_settings(self._config, self._state)
            return self.snapshot()

    async def set_custom_size(self, width: int, height: int) -> LazySketchSettings:
        """设置自定义尺寸，宽高都必须是正整数。"""
        async with self._lock:
            valid_width = _require_positive_int("width", width)
            valid_height = _require_positive_int("height", height)
            self._config[CONFIG_CUSTOM_WIDTH_KEY] = valid_width
            self._config[CONFIG_CUSTOM_HEIGHT_KEY] = valid_height
            self._persist_config_locked()
            self._settings = read_settings(self._config, self._state)
            return self.snapshot()

    async def set_api_token(self, token: str) -> LazySketchSettings:
        async with self._lock:
            self._config[CONFIG_API_TOKEN_KEY] = token.strip()
            self._persist_config_locked()
            self._settings = read_settings(self._config, self._state)
            return self.snapshot()

    async def record_generation_time(self, elapsed_ms: int) -> LazySketchSettings:
        """记录最近一次生成耗时，供下次预估等待时间。"""
        async with self._lock:
            self._state[LAST_GENERATION_TIME_MS_KEY] = _require_positive_int(
                "elapsed_ms", elapsed_ms
            )
            await self._sync_to_kv_locked()
            self._settings = read_settings(self._config, self._state)
            return self.snapshot()

    async def sync_to_kv(self) -> None:
        """将内存状态全量同步到 KV。"""
        async with self._lock:
            await self._sync_to_kv_locked()

    async def _sync_to_kv_locked(self) -> None:
        await self._kv_put(PLUGIN_STATE_KEY, dict(self._state))

    def _persist_config_locked(self) -> None:
        if self._save_config is not None:
            self._save_config()
