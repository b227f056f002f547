from __future__ import annotations

from abc import ABC, abstractmethod

from .schema import SketchGenerateInput, SketchGenerateOutput


class ProviderAdapter(ABC):
    provider: str
    model: str

    @abstractmethod
    async def sketch_generate(
        self, payload: SketchGenerateInput
    ) -> SketchGenerateOutput: ...
