"""
内部调用指纹登记表

agent运行时会为安全分析发起内部LLM调用（例如提取bash命令前缀），
在bypassPermissions模式下这些结果不会被使用。每条指纹由两个条件共同确定：
请求不携带任何工具，并且system提示包含一段固定的子串。

新增拦截的内部调用时，只需在 FINGERPRINTS 末尾追加一条记录：
子串必须只出现在该调用的system提示中，模拟回复必须是调用方能接受的合法回答。
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PreflightFingerprint:
    """内部调用指纹"""

    # 日志中使用的标识
    name: str
    # system提示中唯一的固定子串
    system_prompt_match: str
    # 模拟响应的文本
    mock_response_text: str

    def matches(self, system_text: str) -> bool:
        return self.system_prompt_match in system_text


FINGERPRINTS: tuple[PreflightFingerprint, ...] = (
    # bash命令前缀提取；"none"表示没有需要提取的前缀，是调用方认可的合法回答
    PreflightFingerprint(
        name="bash_extract_prefix",
        system_prompt_match="Your task is to process Bash commands",
        mock_response_text="none",
    ),
)


def match_fingerprint(
    system_text: str,
    fingerprints: tuple[PreflightFingerprint, ...] = FINGERPRINTS,
) -> PreflightFingerprint | None:
    """按登记顺序返回第一条匹配的指纹"""
    if not system_text:
        return None
    for fingerprint in fingerprints:
        if fingerprint.matches(system_text):
            return fingerprint
    return None
