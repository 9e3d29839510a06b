"""
Minecraft Java 版 (1.7+) 服务器列表 Ping (SLP)

一次查询的流程：
解析地址 -> 建立连接 -> 握手 -> 状态请求 -> 状态响应 -> Ping -> Pong

协议文档见 https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from time import perf_counter, time

from nonebot import logger

from .codec import Handshake, NextState, PingRequest, StatusRequest, StatusResponse
from .connection import Session
from .exceptions import SlpError, SlpTimeout
from .resolver import AddressResolver

DEFAULT_PROTOCOL_VERSION = 0
"""握手时默认声明的协议版本"""
DEFAULT_TIMEOUT = 5
"""状态交换的默认超时时间（秒）"""


class ExchangeState(Enum):
    """
    状态交换所处的阶段

    - `IDLE`：尚未发送任何数据包
    - `HANDSHAKE_SENT`：握手包已写入缓冲区
    - `REQUEST_SENT`：状态请求已写入并随握手包一起发送
    - `AWAITING_STATUS`：正在等待状态响应
    - `STATUS_RECEIVED`：已收到状态响应
    """

    def __str__(self) -> str:
        return str(self.name)

    IDLE = 0
    HANDSHAKE_SENT = 1
    REQUEST_SENT = 2
    AWAITING_STATUS = 3
    STATUS_RECEIVED = 4


@dataclass(frozen=True)
class JavaStatus:
    resp: str
    """服务器返回的状态 JSON 原文"""
    ping: float | None = None
    """往返延迟（秒），Ping 失败或响应无法识别时为 None"""

    def to_dict(self) -> dict:
        return {"resp": self.resp, "ping": self.ping}


class StatusExchange:
    """
    在一个已建立的连接上执行状态交换。

    每次查询新建一个实例，各步骤必须按顺序调用。
    """

    def __init__(
        self,
        session: Session,
        hostname: str,
        port: int,
        protocol_version: int = DEFAULT_PROTOCOL_VERSION,
    ) -> None:
        """
        :params session: 已建立的连接
        :params hostname: 握手包中声明的服务器地址
        :params port: 握手包中声明的端口，应与实际连接的端口一致
        :params protocol_version: 握手包中声明的协议版本
        """
        self.session = session
        self.hostname = hostname
        self.port = port
        self.protocol_version = protocol_version
        self.state = ExchangeState.IDLE

    def _transition(self, expected: ExchangeState, new: ExchangeState) -> None:
        if self.state is not expected:
            raise RuntimeError(f"Cannot enter {new} from {self.state}")
        self.state = new

    def send_handshake(self) -> None:
        """写入握手包，等状态请求写入后再一并发送。"""
        self._transition(ExchangeState.IDLE, ExchangeState.HANDSHAKE_SENT)
        self.session.writer.write(
            Handshake(
                protocol_version=self.protocol_version,
                server_address=self.hostname,
                server_port=self.port,
                next_state=NextState.STATUS,
            )
        )

    async def send_request(self) -> None:
        self._transition(ExchangeState.HANDSHAKE_SENT, ExchangeState.REQUEST_SENT)
        self.session.writer.write(StatusRequest())
        await self.session.writer.flush()

    async def read_response(self) -> StatusResponse:
        """
        读取状态响应。

        在收到状态响应之前收到的其他状态阶段数据包会被丢弃；
        任何无法解析的数据包都会中止整个查询。

        :raises DecodingFailed: 收到无法解析的数据包
        :raises TransportFailed: 连接中断
        """
        self._transition(ExchangeState.REQUEST_SENT, ExchangeState.AWAITING_STATUS)
        while True:
            envelope = await self.session.reader.read_envelope()
            packet = envelope.decode_status(self.protocol_version)
            if isinstance(packet, StatusResponse):
                self.state = ExchangeState.STATUS_RECEIVED
                return packet
            logger.debug(f"Discarding {type(packet).__name__} while awaiting status")

    async def run(self) -> StatusResponse:
        self.send_handshake()
        await self.send_request()
        return await self.read_response()

    async def ping(self) -> float | None:
        """
        发送 Ping 并测量往返延迟（秒）。

        Pong 中回显的时间戳不做校验；只要响应能被识别为状态阶段的数据包，
        就认为 Ping 成功。响应无法识别时返回 None。
        """
        if self.state is not ExchangeState.STATUS_RECEIVED:
            raise RuntimeError(f"Cannot ping in {self.state}")

        self.session.writer.write(PingRequest(int(time() * 1000)))
        start = perf_counter()
        await self.session.writer.flush()
        envelope = await self.session.reader.read_envelope()
        latency = perf_counter() - start

        try:
            envelope.decode_status(self.protocol_version)
        except SlpError as e:
            logger.debug(f"Unrecognized ping reply: {e!r}")
            return None
        return latency


async def java_status(
    hostname: str,
    port: int | None = None,
    protocol_version: int = DEFAULT_PROTOCOL_VERSION,
    *,
    resolver: AddressResolver | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    connect_timeout: float | None = DEFAULT_TIMEOUT,
    ping_timeout: float | None = DEFAULT_TIMEOUT,
) -> JavaStatus:
    """
    查询 Minecraft Java 版服务器的状态与延迟。

    :params hostname: 服务器地址，同时作为握手包中声明的地址。
    :params port: 没有 SRV 记录时使用的端口，默认为 25565。
    :params protocol_version: 握手时声明的协议版本，默认为 0。
    :params resolver: 共享的地址解析器，默认新建一个。
    :params timeout: 从发送握手到收到状态响应的总超时时间。
    :params connect_timeout: 建立连接的超时时间，None 表示不限制。
    :params ping_timeout: Ping 阶段的超时时间，None 表示不限制。

    :returns: 状态 JSON 原文与延迟。收到状态响应后的任何错误都只会让延迟为 None。

    :raises SlpError: 解析、连接、编解码失败或超时。
    """
    resolver = resolver or AddressResolver()
    ip, port = await resolver.resolve(hostname, port)
    logger.debug(f"Pinging {hostname} via {ip}:{port}, protocol {protocol_version}")

    async with await Session.open(ip, port, connect_timeout) as session:
        exchange = StatusExchange(session, hostname, port, protocol_version)
        try:
            response = await asyncio.wait_for(exchange.run(), timeout)
        except asyncio.TimeoutError as e:
            raise SlpTimeout(
                f"No status response from {ip}:{port} in {timeout}s ({exchange.state})"
            ) from e

        try:
            ping = await asyncio.wait_for(exchange.ping(), ping_timeout)
        except (SlpError, asyncio.TimeoutError) as e:
            logger.debug(f"Ping to {ip}:{port} failed: {e!r}")
            ping = None

    return JavaStatus(resp=response.data, ping=ping)
