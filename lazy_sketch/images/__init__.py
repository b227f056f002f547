from .save import (
    SaveSketchImageResult,
    build_sketch_filename,
    sanitize_prompt_fragment,
    save_sketch_image,
)

__all__ = [
    "SaveSketchImageResult",
    "build_sketch_filename",
    "sanitize_prompt_fragment",
    "save_sketch_image",
]
