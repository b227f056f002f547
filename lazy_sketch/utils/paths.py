from __future__ import annotations

from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PLUGIN_ROOT = PACKAGE_ROOT.parent

PLUGIN_NAME = "astrbot_plugin_lazy_sketch"
