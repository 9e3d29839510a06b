import asyncio
import contextlib
from types import SimpleNamespace

import dns.resolver
import nonebot
import pytest

# 插件在导入时读取配置并注册命令，需要先初始化 NoneBot
nonebot.init(driver="~none")
nonebot.load_plugin("nonebot_plugin_slping")

from nonebot_plugin_slping.codec import Direction, State, decode
from nonebot_plugin_slping.connection import PacketReader
from nonebot_plugin_slping.exceptions import SlpError


class FakeDNS:
    """替代 dnspython 解析器，按 (qname, rdtype) 返回预设记录或抛出异常"""

    def __init__(self, records: dict | None = None) -> None:
        self.records = records or {}
        self.queries: list[tuple[str, str]] = []

    async def resolve(self, qname: str, rdtype: str):
        self.queries.append((qname, rdtype))
        answer = self.records.get((qname, rdtype))
        if answer is None:
            raise dns.resolver.NXDOMAIN()
        if isinstance(answer, Exception):
            raise answer
        return answer


def a_record(address: str) -> list:
    return [SimpleNamespace(address=address)]


def srv_record(target: str, port: int) -> list:
    return [SimpleNamespace(target=target, port=port)]


class FakeJavaServer:
    """
    脚本化的 Java 版服务器。

    按顺序记录收到的数据包；收到状态请求后发送 `status_frames`，
    收到 Ping 后发送 `pong_frames`，然后等待客户端关闭连接。
    `status_frames` 为 None 时不做任何响应。
    """

    def __init__(
        self,
        status_frames: list[bytes] | None,
        pong_frames: list[bytes] | None = None,
        close_after_status: bool = False,
    ) -> None:
        self.status_frames = status_frames
        self.pong_frames = pong_frames
        self.close_after_status = close_after_status
        self.received: list = []
        self.closed = asyncio.Event()

    async def _read(self, reader: PacketReader, state: State):
        envelope = await reader.read_envelope()
        packet = decode(
            state, Direction.SERVERBOUND, 0, envelope.packet_id, envelope.payload
        )
        self.received.append(packet)
        return packet

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        packets = PacketReader(reader)
        try:
            await self._read(packets, State.HANDSHAKING)
            await self._read(packets, State.STATUS)
            if self.status_frames is not None:
                writer.write(b"".join(self.status_frames))
                await writer.drain()
                if self.close_after_status:
                    return
                await self._read(packets, State.STATUS)
                if self.pong_frames:
                    writer.write(b"".join(self.pong_frames))
                    await writer.drain()
            # 等待客户端关闭连接
            await reader.read()
        except (SlpError, OSError):
            pass
        finally:
            self.closed.set()
            writer.close()


@contextlib.asynccontextmanager
async def serve(server: FakeJavaServer):
    listener = await asyncio.start_server(server.handle, "127.0.0.1", 0)
    port = listener.sockets[0].getsockname()[1]
    try:
        yield port
    finally:
        listener.close()
        await listener.wait_closed()


@pytest.fixture
def fake_dns():
    return FakeDNS


@pytest.fixture
def records():
    return SimpleNamespace(a=a_record, srv=srv_record)


@pytest.fixture
def java_server():
    return FakeJavaServer


@pytest.fixture
def running():
    return serve
