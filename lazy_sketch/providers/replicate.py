"""Replicate 供应商适配器"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..settings.schema import REPLICATE_DEFAULT_BASE_URL
from ..utils.errors import PluginErrorCode, PluginException
from ..utils.http import JsonSuccessResponse, get_json, post_json
from ..utils.log import logger
from .base import ProviderAdapter
from .schema import (
    InferenceMetadata,
    PredictionJob,
    PredictionStatus,
    SketchGenerateInput,
    SketchGenerateOutput,
)

REPLICATE_SOURCE = "Replicate API"
POLL_TIMEOUT_MESSAGE = "Timeout: Polling took too long."
GENERATION_FAILED_MESSAGE = "Generation failed."
# Replicate 同步等待的上限（秒），并为本地请求超时预留余量。
REPLICATE_MAX_WAIT_SEC = 60
PREFER_WAIT_MARGIN_SEC = 5

# 固定推理参数，与 pencil-sketch LoRA 搭配使用。
REPLICATE_FIXED_INPUT: dict[str, Any] = {
    "guidance_scale": 0,
    "lora_scales": [1],
    "num_inference_steps": 8,
    "output_format": "jpg",
    "output_quality": 80,
}

SleepFunc = Callable[[float], Awaitable[Any]]


@dataclass(slots=True)
class ReplicateAdapter(ProviderAdapter):
    base_url: str
    api_token: str
    timeout_sec: int
    model: str
    lora_weights: str
    poll_interval_sec: float = 1.0
    max_poll_attempts: int = 120
    provider: str = "replicate"
    sleep: SleepFunc = field(default=asyncio.sleep, repr=False)

    def __post_init__(self) -> None:
        normalized = self.base_url.strip()
        self.base_url = normalized or REPLICATE_DEFAULT_BASE_URL

    def _require_api_token(self) -> str:
        token = self.api_token.strip()
        if not token:
            raise PluginException(
                code=PluginErrorCode.PERMISSION_DENIED,
                message="Replicate API token is not configured.",
                retryable=False,
                detail={
                    "provider": self.provider,
                    "base_url": self.base_url,
                },
            )
        return token

    def _build_prediction_payload(self, payload: SketchGenerateInput) -> dict[str, Any]:
        """构造 Replicate 创建预测的请求体。"""
        return {
            "version": self.model,
            "input": {
                **REPLICATE_FIXED_INPUT,
                "height": payload.height,
                "lora_weights": [self.lora_weights],
                "prompt": payload.prompt,
                "width": payload.width,
            },
        }

    def _prefer_wait_header(self) -> str | None:
        """返回 `Prefer: wait=<n>` 的取值，n 严格小于本地请求超时；余量不足 1 秒时不发送。"""
        wait_sec = min(REPLICATE_MAX_WAIT_SEC, int(self.timeout_sec) - PREFER_WAIT_MARGIN_SEC)
        if wait_sec < 1:
            return None
        return f"wait={wait_sec}"

    async def _create_prediction(
        self, request_payload: dict[str, Any]
    ) -> JsonSuccessResponse:
        """提交预测任务；`Prefer: wait=<n>` 让上游在短任务上直接返回终态。

        上游在等待窗口结束时返回非终态任务，由轮询继续跟进。
        """
        token = self._require_api_token()
        url = f"{self.base_url.rstrip('/')}/predictions"
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        prefer = self._prefer_wait_header()
        if prefer is not None:
            headers["Prefer"] = prefer
        return await post_json(
            url=url,
            payload=request_payload,
            headers=headers,
            timeout_sec=self.timeout_sec,
            source=REPLICATE_SOURCE,
        )

    async def _fetch_prediction(self, job: PredictionJob) -> JsonSuccessResponse:
        token = self._require_api_token()
        if not job.get_url:
            raise PluginException(
                code=PluginErrorCode.UPSTREAM_ERROR,
                message="Replicate response did not include a polling URL.",
                retryable=False,
                detail={"provider": self.provider, "prediction_id": job.id},
            )
        return await get_json(
            url=job.get_url,
            headers={"Authorization": f"Token {token}"},
            timeout_sec=self.timeout_sec,
            source=REPLICATE_SOURCE,
        )

    async def wait_for_prediction(self, job: PredictionJob) -> int:
        """按固定间隔轮询直到任务进入终态，返回实际查询次数。

        查询次数超过 `max_poll_attempts` 时抛出 TIMEOUT。
        """
        attempts = 0
        while not job.is_terminal:
            attempts += 1
            if attempts > self.max_poll_attempts:
                raise PluginException(
                    code=PluginErrorCode.TIMEOUT,
                    message=POLL_TIMEOUT_MESSAGE,
                    retryable=True,
                    detail={
                        "provider": self.provider,
                        "prediction_id": job.id,
                        "status": job.status.value,
                        "max_poll_attempts": self.max_poll_attempts,
                    },
                )

            await self.sleep(self.poll_interval_sec)

            response = await self._fetch_prediction(job)
            job.merge(response["data"])
            logger.debug(
                "replicate.poll",
                {
                    "prediction_id": job.id,
                    "attempt": attempts,
                    "status": job.status.value,
                },
            )
        return attempts

    async def sketch_generate(
        self, payload: SketchGenerateInput
    ) -> SketchGenerateOutput:
        """提交生成任务、轮询到终态并返回第一张输出图片的地址。"""
        started_at = time.perf_counter()
        request_payload = self._build_prediction_payload(payload)
        response = await self._create_prediction(request_payload)
        data = response["data"]

        job = PredictionJob.from_response(data)
        logger.debug(
            "replicate.prediction_created",
            {
                "prediction_id": job.id,
                "status": job.status.value,
                "elapsed_ms": response["elapsed_ms"],
            },
        )
        if job.error:
            raise PluginException(
                code=PluginErrorCode.UPSTREAM_ERROR,
                message=job.error,
                retryable=False,
                detail={
                    "provider": self.provider,
                    "prediction_id": job.id,
                    "status": job.status.value,
                },
            )

        poll_attempts = await self.wait_for_prediction(job)

        if job.status in {PredictionStatus.FAILED, PredictionStatus.CANCELED}:
            raise PluginException(
                code=PluginErrorCode.UPSTREAM_ERROR,
                message=job.error or GENERATION_FAILED_MESSAGE,
                retryable=False,
                detail={
                    "provider": self.provider,
                    "prediction_id": job.id,
                    "status": job.status.value,
                    "poll_attempts": poll_attempts,
                },
            )

        image_url = job.first_output
        if not image_url:
            raise PluginException(
                code=PluginErrorCode.UPSTREAM_ERROR,
                message="Replicate returned no image output.",
                retryable=True,
                detail={
                    "provider": self.provider,
                    "prediction_id": job.id,
                    "response_keys": sorted(data.keys()),
                },
            )

        return SketchGenerateOutput(
            image_url=image_url,
            prediction=job,
            metadata=InferenceMetadata(
                provider=self.provider,
                model=self.model,
                prediction_id=job.id,
                elapsed_ms=int((time.perf_counter() - started_at) * 1000),
                poll_attempts=poll_attempts,
            ),
        )
