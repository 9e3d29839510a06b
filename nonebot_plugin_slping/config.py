from nonebot.plugin import get_plugin_config
from pydantic import BaseModel, Field


class ScopedConfig(BaseModel):
    language: str = Field(default="zh-cn")
    """插件回复所使用的语言"""
    type: int = Field(default=0)
    """插件发送的消息类型，0 为可读文本，1 为原始 JSON"""
    protocol_version: int = Field(default=0)
    """握手时默认声明的协议版本"""
    timeout: float = Field(default=5)
    """从握手到收到状态响应的超时时间（秒）"""
    connect_timeout: float | None = Field(default=5)
    """建立 TCP 连接的超时时间（秒），None 为不限制"""
    ping_timeout: float | None = Field(default=5)
    """Ping 阶段的超时时间（秒），None 为不限制"""
    dns_lifetime: float = Field(default=10)
    """单次 DNS 查询的超时时间（秒）"""
    http_api: bool = Field(default=True)
    """驱动器支持 ASGI 时是否注册 HTTP 查询接口"""
    http_path: str = Field(default="/mcping/java")
    """HTTP 查询接口路径"""


class Config(BaseModel):
    mcping: ScopedConfig = Field(default_factory=ScopedConfig)
    """MCPing Config"""


config: ScopedConfig = get_plugin_config(Config).mcping
