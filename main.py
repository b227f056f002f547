from astrbot.api import AstrBotConfig
from astrbot.api.event import AstrMessageEvent, filter
from astrbot.api.star import Context, Star, StarTools

from .lazy_sketch.service import SketchService
from .lazy_sketch.settings import SettingsStore
from .lazy_sketch.tools.render import build_error_notice, build_progress_text
from .lazy_sketch.tools.sketch_args import (
    describe_size_presets,
    parse_size_args,
    parse_sketch_args,
    resolve_size,
    split_pattern_args,
)
from .lazy_sketch.utils.args import extract_command_args
from .lazy_sketch.utils.log import logger
from .lazy_sketch.utils.paths import PLUGIN_NAME

SKETCH_USAGE = f"用法：/sketch draw [预设] <prompt>（预设：{describe_size_presets()}）"


class LazySketchPlugin(Star):
    def __init__(self, context: Context, config: AstrBotConfig):
        super().__init__(context, config=config)
        self.settings_store = SettingsStore(
            config=config,
            kv_get=self.get_kv_data,
            kv_put=self.put_kv_data,
            save_config=config.save_config,
        )
        self.sketch_service = SketchService(
            settings_store=self.settings_store,
            data_root=StarTools.get_data_dir(PLUGIN_NAME),
        )

    async def initialize(self):
        """插件激活时加载设置：默认值 <- 插件配置 <- KV 状态。"""
        await self.settings_store.initialize()

    @filter.command_group("sketch")
    def sketch(self) -> None:
        """草图指令组"""
        pass

    @sketch.command("patterns")
    async def sketch_patterns(self, event: AstrMessageEvent):
        """列出全部提示词模板，并标记当前模板。"""
        settings = self.settings_store.snapshot()
        lines = ["提示词模板", f"当前模板：{settings.selected_pattern}"]
        for pattern in settings.prompt_patterns:
            marker = "*" if pattern.name == settings.selected_pattern else "-"
            lines.append(f"{marker} {pattern.name}: {pattern.pattern}")
        yield event.plain_result("\n".join(lines))

    @filter.permission_type(filter.PermissionType.ADMIN)
    @sketch.command("use")
    async def sketch_use(self, event: AstrMessageEvent, pattern_name: str = ""):
        """切换当前提示词模板"""
        target = pattern_name.strip()
        if not target:
            yield event.plain_result("模板名不能为空。")
            return
        try:
            settings = await self.settings_store.select_pattern(target)
        except ValueError:
            yield event.plain_result(
                "模板不存在，请先执行 /sketch patterns 查看可用模板。"
            )
            return
        yield event.plain_result(f"已切换提示词模板为：{settings.selected_pattern}")

    @filter.permission_type(filter.PermissionType.ADMIN)
    @sketch.command("pattern")
    async def sketch_pattern(self, event: AstrMessageEvent):
        """修改模板正文，如 /sketch pattern cute a pencil sketch of {prompt}"""
        args_text = extract_command_args(
            event.message_str, ("sketch", "pattern"), keep_whitespace=True
        )
        name, template = split_pattern_args(args_text)
        try:
            await self.settings_store.set_pattern_template(name, template)
        except ValueError as exc:
            yield event.plain_result(f"模板无效：{exc}")
            return
        yield event.plain_result(f"已更新模板：{name}")

    @filter.permission_type(filter.PermissionType.ADMIN)
    @sketch.command("size")
    async def sketch_size(self, event: AstrMessageEvent):
        """设置 custom 预设使用的宽高，如 /sketch size 1024 512"""
        args_text = extract_command_args(event.message_str, ("sketch", "size"))
        try:
            width, height = parse_size_args(args_text)
            settings = await self.settings_store.set_custom_size(width, height)
        except ValueError as exc:
            yield event.plain_result(f"尺寸无效：{exc}")
            return
        yield event.plain_result(
            f"已设置自定义尺寸：{settings.custom_width}x{settings.custom_height}"
        )

    @sketch.command("draw")
    async def sketch_draw(self, event: AstrMessageEvent):
        """
        根据提示词生成草图并回复图片与 markdown 链接。
        第一个参数可选尺寸预设：default(2:1)、wide(4:1)、ultrawide(8:1)、custom。
        /sketch draw wide a cat sleeping on a bookshelf
        """
        args_text = extract_command_args(event.message_str, ("sketch", "draw"))
        preset, prompt = parse_sketch_args(args_text)
        if not prompt:
            yield event.plain_result(f"提示词不能为空。{SKETCH_USAGE}")
            return

        settings = self.settings_store.snapshot()
        if not settings.api_token:
            yield event.plain_result("请先在插件配置中填写 Replicate API token。")
            return

        width, height = resolve_size(preset, settings)
        yield event.plain_result(
            build_progress_text(
                prompt, width, height, self.sketch_service.estimated_seconds()
            )
        )

        try:
            result = await self.sketch_service.generate_sketch(
                prompt, width=width, height=height
            )
        except Exception as exc:
            logger.exception("sketch draw failed: %s", exc)
            yield event.plain_result(build_error_notice(exc))
            return

        yield event.image_result(str(result.path))
        yield event.plain_result(
            f"草图生成成功，耗时 {result.elapsed_ms} ms\n{result.markdown}"
        )

    async def terminate(self):
        """插件停用时把内存中的状态写回 KV。"""
        await self.settings_store.sync_to_kv()
