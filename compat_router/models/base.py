"""协议模型公共基类"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_serializer


class WireModel(BaseModel):
    """线上协议模型基类

    序列化时省略值为None的字段（未使用的字段不出现，而不是以null占位），
    只有 `wire_nulls` 中声明的字段会保留显式的null，例如Anthropic协议要求的
    `stop_sequence: null`。嵌套的普通dict（如工具输入参数）原样保留。
    """

    model_config = ConfigDict(populate_by_name=True)

    wire_nulls: ClassVar[frozenset[str]] = frozenset()

    @model_serializer(mode="wrap")
    def _serialize_wire(self, handler) -> dict[str, Any]:
        data = handler(self)
        return {
            key: value
            for key, value in data.items()
            if value is not None or key in self.wire_nulls
        }
