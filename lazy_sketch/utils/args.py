from __future__ import annotations

import re
from collections.abc import Sequence

COMMAND_PREFIXES = ("/", "!", "！")
_TOKEN_PATTERN = re.compile(r"\S+")


def _strip_command_prefix(token: str) -> str:
    for prefix in COMMAND_PREFIXES:
        if token.startswith(prefix):
            return token[len(prefix) :]
    return token


def extract_command_args(
    message_str: str,
    command_tokens: Sequence[str],
    *,
    keep_whitespace: bool = False,
) -> str:
    """提取命令后的参数文本；命令不匹配时返回整条规范化消息。

    keep_whitespace 为 True 时，命令之后的文本按原样切出（仅去掉首尾空白），
    保留其中的连续空格与换行。
    """
    matches = list(_TOKEN_PATTERN.finditer(message_str))
    tokens = [match.group() for match in matches]
    normalized_message = " ".join(tokens)

    normalized_command = [
        token.strip().lower() for token in command_tokens if token.strip()
    ]
    if not normalized_command or len(tokens) < len(normalized_command):
        return normalized_message

    head = [_strip_command_prefix(tokens[0]).lower()] + [
        token.lower() for token in tokens[1 : len(normalized_command)]
    ]
    if head != normalized_command:
        return normalized_message

    if keep_whitespace:
        return message_str[matches[len(normalized_command) - 1].end() :].strip()
    return " ".join(tokens[len(normalized_command) :])
