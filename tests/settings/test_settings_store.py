from __future__ import annotations

import pytest

from lazy_sketch.settings import DEFAULT_SETTINGS, SettingsStore, read_settings
from lazy_sketch.settings.keys import (
    LAST_GENERATION_TIME_MS_KEY,
    PLUGIN_STATE_KEY,
    SELECTED_PATTERN_KEY,
)


class _FakeKV:
    def __init__(self, initial: dict[str, object] | None = None) -> None:
        self.store = initial or {}
        self.put_calls: list[tuple[str, object]] = []

    async def get(self, key: str, default: object) -> object | None:
        value = self.store.get(key, default)
        return value

    async def put(self, key: str, value: object) -> None:
        self.store[key] = value
        self.put_calls.append((key, value))


class _FakeConfig(dict):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.save_calls = 0

    def save_config(self) -> None:
        self.save_calls += 1


def _make_store(
    config: dict[str, object] | None = None,
    state: dict[str, object] | None = None,
) -> tuple[SettingsStore, _FakeKV, _FakeConfig]:
    fake_config = _FakeConfig(config or {})
    kv = _FakeKV({PLUGIN_STATE_KEY: state} if state is not None else None)
    store = SettingsStore(
        config=fake_config,
        kv_get=kv.get,
        kv_put=kv.put,
        save_config=fake_config.save_config,
    )
    return store, kv, fake_config


def test_read_settings_defaults() -> None:
    """验证：空配置与空状态得到默认设置。"""
    settings = read_settings({}, {})

    assert settings == DEFAULT_SETTINGS
    assert settings.prompt_patterns is not DEFAULT_SETTINGS.prompt_patterns


def test_read_settings_layers_config_and_state() -> None:
    """验证：配置覆盖默认值，状态覆盖运行时字段，非法值回退。"""
    settings = read_settings(
        {
            "api_token": " r8_token ",
            "model": "owner/model:abc",
            "custom_width": "800",
            "custom_height": -1,
            "poll_interval_sec": "0.5",
            "max_poll_attempts": True,
            "prompt_patterns": ["ink: ink drawing of {prompt}"],
        },
        {
            SELECTED_PATTERN_KEY: "ink",
            LAST_GENERATION_TIME_MS_KEY: 7300,
        },
    )

    assert settings.api_token == "r8_token"
    assert settings.model == "owner/model:abc"
    assert settings.custom_width == 800
    assert settings.custom_height == DEFAULT_SETTINGS.custom_height
    assert settings.poll_interval_sec == 0.5
    assert settings.max_poll_attempts == DEFAULT_SETTINGS.max_poll_attempts
    assert settings.pattern_names == ["ink"]
    assert settings.selected_pattern == "ink"
    assert settings.last_generation_time_ms == 7300


def test_read_settings_unknown_selection_falls_back_to_first_pattern() -> None:
    """验证：默认模板名不在配置模板中时选中第一个模板。"""
    settings = read_settings(
        {"prompt_patterns": ["ink: {prompt}", "charcoal: {prompt}"]},
        {SELECTED_PATTERN_KEY: "missing"},
    )

    assert settings.selected_pattern == "ink"


@pytest.mark.asyncio
async def test_initialize_repairs_selection_and_syncs_state() -> None:
    """验证：KV 中模板名非法时回退并全量写回一次。"""
    store, kv, _ = _make_store(state={SELECTED_PATTERN_KEY: "gone", "junk": True})

    settings = await store.initialize()

    assert settings.selected_pattern == "cute"
    assert kv.put_calls == [
        (
            PLUGIN_STATE_KEY,
            {
                SELECTED_PATTERN_KEY: "cute",
                LAST_GENERATION_TIME_MS_KEY: DEFAULT_SETTINGS.last_generation_time_ms,
            },
        )
    ]


@pytest.mark.asyncio
async def test_select_pattern_persists_and_validates() -> None:
    """验证：切换模板会写入 KV；未知模板抛出 ValueError。"""
    store, kv, _ = _make_store()
    await store.initialize()

    settings = await store.select_pattern(" whimsical ")

    assert settings.selected_pattern == "whimsical"
    assert kv.store[PLUGIN_STATE_KEY][SELECTED_PATTERN_KEY] == "whimsical"

    with pytest.raises(ValueError, match="Unknown prompt pattern"):
        await store.select_pattern("missing")


@pytest.mark.asyncio
async def test_select_same_pattern_skips_write() -> None:
    store, kv, _ = _make_store()
    await store.initialize()
    kv.put_calls.clear()

    await store.select_pattern("cute")

    assert kv.put_calls == []


@pytest.mark.asyncio
async def test_set_pattern_template_updates_config() -> None:
    """验证：修改模板写回宿主配置并触发保存。"""
    store, _, config = _make_store()
    await store.initialize()

    settings = await store.set_pattern_template("detailed", "an ink study of {prompt}")

    assert settings.prompt_patterns[1].pattern == "an ink study of {prompt}"
    assert "detailed: an ink study of {prompt}" in config["prompt_patterns"]
    assert config.save_calls == 1


@pytest.mark.asyncio
async def test_set_pattern_template_rejects_invalid_template() -> None:
    store, _, config = _make_store()
    await store.initialize()

    with pytest.raises(ValueError, match="exactly once"):
        await store.set_pattern_template("cute", "no placeholder")
    with pytest.raises(ValueError, match="Unknown prompt pattern"):
        await store.set_pattern_template("missing", "{prompt}")
    assert config.save_calls == 0


@pytest.mark.asyncio
async def test_set_pattern_template_keeps_mapping_patterns_lossless() -> None:
    """验证：映射形式的模板写回文本配置后仍能还原，名称含 `:` 的项不会被接受。"""
    store, _, config = _make_store(
        config={
            "prompt_patterns": [
                {"name": "a:b", "pattern": "colon name {prompt}"},
                {"name": "ink", "pattern": "ink study of {prompt}"},
            ]
        }
    )
    await store.initialize()

    with pytest.raises(ValueError, match="Unknown prompt pattern"):
        await store.set_pattern_template("a:b", "{prompt}")
    settings = await store.set_pattern_template("ink", "ink: study of {prompt}")

    assert config["prompt_patterns"] == ["ink: ink: study of {prompt}"]
    assert [pattern.name for pattern in settings.prompt_patterns] == ["ink"]
    assert settings.prompt_patterns[0].pattern == "ink: study of {prompt}"


@pytest.mark.asyncio
async def test_set_custom_size() -> None:
    """验证：自定义尺寸必须为正整数。"""
    store, _, config = _make_store()
    await store.initialize()

    settings = await store.set_custom_size(640, 320)

    assert (settings.custom_width, settings.custom_height) == (640, 320)
    assert config["custom_width"] == 640
    assert config.save_calls == 1

    with pytest.raises(ValueError, match="positive integer"):
        await store.set_custom_size(0, 320)


@pytest.mark.asyncio
async def test_set_api_token() -> None:
    store, _, config = _make_store()
    await store.initialize()

    settings = await store.set_api_token("  r8_new  ")

    assert settings.api_token == "r8_new"
    assert config["api_token"] == "r8_new"


@pytest.mark.asyncio
async def test_record_generation_time() -> None:
    """验证：记录生成耗时并写入 KV。"""
    store, kv, _ = _make_store()
    await store.initialize()

    settings = await store.record_generation_time(4321)

    assert settings.last_generation_time_ms == 4321
    assert kv.store[PLUGIN_STATE_KEY][LAST_GENERATION_TIME_MS_KEY] == 4321


@pytest.mark.asyncio
async def test_snapshot_is_a_copy() -> None:
    """验证：修改快照不会影响存储中的设置。"""
    store, _, _ = _make_store()
    await store.initialize()

    snapshot = store.snapshot()
    snapshot.prompt_patterns[0].pattern = "mutated"
    snapshot.custom_width = 1

    current = store.snapshot()
    assert current.prompt_patterns[0].pattern != "mutated"
    assert current.custom_width == DEFAULT_SETTINGS.custom_width
