from enum import Enum
from typing import ClassVar


class ErrorKind(Enum):
    """
    SLP 查询失败的种类

    - `RESOLVE_ERROR`：DNS 查询失败
    - `NO_IP_FOUND`：DNS 查询成功，但没有可用地址
    - `TCP_CONNECT_FAILED`：无法建立连接，或连接在中途断开
    - `ENCODING_ERROR`：发出的数据包无法编码
    - `DECODING_ERROR`：收到的数据包无法解析，或数据包 ID 未知
    - `TCP_TIMEOUT`：状态交换未在限定时间内完成
    """

    def __str__(self) -> str:
        return str(self.name)

    RESOLVE_ERROR = 0
    NO_IP_FOUND = 1
    TCP_CONNECT_FAILED = 2
    ENCODING_ERROR = 3
    DECODING_ERROR = 4
    TCP_TIMEOUT = 5


class SlpError(Exception):
    """所有 SLP 查询错误的基类。

    对外只暴露“查询失败”这一结果，`kind` 仅用于日志。
    """

    kind: ClassVar[ErrorKind]


class ResolutionFailed(SlpError):
    """DNS 或 SRV 查询出错（NXDOMAIN、超时、无可用名称服务器等）。"""

    kind = ErrorKind.RESOLVE_ERROR


class NoAddressFound(SlpError):
    """查询成功但没有返回任何 A/AAAA 记录。"""

    kind = ErrorKind.NO_IP_FOUND


class TransportFailed(SlpError):
    """连接被拒绝、网络不可达，或数据流在交换途中中断。"""

    kind = ErrorKind.TCP_CONNECT_FAILED


class EncodingFailed(SlpError):
    kind = ErrorKind.ENCODING_ERROR


class DecodingFailed(SlpError):
    """收到的帧或负载格式错误，或数据包 ID 在当前协议版本中未知。"""

    kind = ErrorKind.DECODING_ERROR


class SlpTimeout(SlpError):
    kind = ErrorKind.TCP_TIMEOUT
