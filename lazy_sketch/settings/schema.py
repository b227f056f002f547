from __future__ import annotations

from dataclasses import dataclass, field

REPLICATE_DEFAULT_BASE_URL = "https://api.replicate.com/v1"
DEFAULT_MODEL = (
    "prunaai/z-image-turbo-lora:"
    "197b2db2015aa366d2bc61a941758adf4c31ac66b18573f5c66dc388ab081ca2"
)
DEFAULT_LORA_WEIGHTS = (
    "https://huggingface.co/Ttio2/Z-Image-Turbo-pencil-sketch/"
    "resolve/main/Zimage_pencil_sketch.safetensors"
)


@dataclass(slots=True)
class PromptPattern:
    name: str
    """模板名称，在模板列表中唯一，不含 `:`。"""
    pattern: str
    """模板正文，包含一个 `{prompt}` 占位符。"""


def _default_prompt_patterns() -> list[PromptPattern]:
    return [
        PromptPattern(
            name="cute",
            pattern="a color pencil sketch. clear white background. cute & fun & simple. {prompt}",
        ),
        PromptPattern(
            name="detailed",
            pattern="a detailed pencil sketch. clean white background. intricate & realistic. {prompt}",
        ),
        PromptPattern(
            name="whimsical",
            pattern="a playful pencil sketch. white background. whimsical & imaginative. {prompt}",
        ),
    ]


@dataclass(slots=True)
class LazySketchSettings:
    api_token: str = ""
    """Replicate API token"""
    model: str = DEFAULT_MODEL
    """Replicate 模型版本标识"""
    lora_weights: str = DEFAULT_LORA_WEIGHTS
    """LoRA 权重地址"""
    selected_pattern: str = "cute"
    """当前使用的提示词模板名称"""
    prompt_patterns: list[PromptPattern] = field(
        default_factory=_default_prompt_patterns
    )
    custom_width: int = 1024
    custom_height: int = 512
    last_generation_time_ms: int = 5000
    """最近一次生成耗时，用于预估等待时间。"""
    base_url: str = REPLICATE_DEFAULT_BASE_URL
    timeout_sec: int = 60
    """单次 HTTP 请求超时时间（秒）"""
    poll_interval_sec: float = 1.0
    max_poll_attempts: int = 120
    files_dir: str = "files"
    """图片保存目录，相对路径基于插件数据目录。"""

    @property
    def pattern_names(self) -> list[str]:
        return [pattern.name for pattern in self.prompt_patterns]


DEFAULT_SETTINGS = LazySketchSettings()
