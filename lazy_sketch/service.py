from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .images import save_sketch_image
from .providers import (
    ProviderAdapter,
    build_provider_adapter,
    provider_config_from_settings,
)
from .providers.schema import ProviderConfig, SketchGenerateInput
from .settings import SettingsStore, format_prompt, resolve_prompt_pattern
from .tools.render import build_markdown_image_link
from .utils.errors import PluginErrorCode, PluginException
from .utils.log import logger

AdapterFactory = Callable[[ProviderConfig], ProviderAdapter]


@dataclass(slots=True)
class SketchResult:
    prompt: str
    formatted_prompt: str
    image_url: str
    path: Path
    relative_path: str
    markdown: str
    elapsed_ms: int


def _now_ms() -> int:
    return int(time.time() * 1000)


class SketchService:
    """一次生成：套模板 -> 提交并轮询 -> 下载保存 -> 生成 markdown 链接。"""

    def __init__(
        self,
        *,
        settings_store: SettingsStore,
        data_root: Path,
        adapter_factory: AdapterFactory = build_provider_adapter,
        clock_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._settings_store = settings_store
        self._data_root = data_root
        self._adapter_factory = adapter_factory
        self._clock_ms = clock_ms

    def estimated_seconds(self) -> int:
        settings = self._settings_store.snapshot()
        return round(settings.last_generation_time_ms / 1000)

    def files_dir(self) -> Path:
        configured = Path(self._settings_store.snapshot().files_dir)
        if configured.is_absolute():
            return configured
        return self._data_root / configured

    async def generate_sketch(
        self,
        prompt: str,
        *,
        width: int,
        height: int,
        replace_selection: bool = False,
    ) -> SketchResult:
        user_prompt = prompt.strip()
        if not user_prompt:
            raise ValueError("Prompt must not be empty.")

        settings = self._settings_store.snapshot()
        if not settings.api_token:
            raise PluginException(
                code=PluginErrorCode.PERMISSION_DENIED,
                message="Replicate API token is not configured.",
                retryable=False,
            )

        started_at = time.perf_counter()
        pattern = resolve_prompt_pattern(settings)
        formatted_prompt = format_prompt(pattern, user_prompt)
        adapter = self._adapter_factory(provider_config_from_settings(settings))

        output = await adapter.sketch_generate(
            SketchGenerateInput(
                prompt=formatted_prompt,
                width=width,
                height=height,
            )
        )
        saved = await save_sketch_image(
            image_url=output.image_url,
            prompt=user_prompt,
            target_dir=self.files_dir(),
            timestamp_ms=self._clock_ms(),
            base_dir=self._data_root,
            http_timeout_sec=settings.timeout_sec,
        )

        elapsed_ms = max(1, int((time.perf_counter() - started_at) * 1000))
        await self._settings_store.record_generation_time(elapsed_ms)
        logger.info(
            "sketch.generated",
            {
                "pattern": pattern.name,
                "width": width,
                "height": height,
                "prediction_id": output.metadata.prediction_id,
                "poll_attempts": output.metadata.poll_attempts,
                "elapsed_ms": elapsed_ms,
            },
        )

        return SketchResult(
            prompt=user_prompt,
            formatted_prompt=formatted_prompt,
            image_url=output.image_url,
            path=saved.path,
            relative_path=saved.relative_path,
            markdown=build_markdown_image_link(
                user_prompt,
                saved.relative_path,
                replace_selection=replace_selection,
            ),
            elapsed_ms=elapsed_ms,
        )
