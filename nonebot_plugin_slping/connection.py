import asyncio
import contextlib

from nonebot import logger

from .codec import MAX_PACKET_LENGTH, VARINT_MAX_BYTES, Envelope, Packet, to_int32
from .exceptions import DecodingFailed, SlpTimeout, TransportFailed


class PacketWriter:
    """连接的发送端：`write` 只写入缓冲区，`flush` 才真正发送。"""

    def __init__(self, writer: asyncio.StreamWriter) -> None:
        self._writer = writer

    def write(self, packet: Packet) -> None:
        self._writer.write(packet.encode())

    async def flush(self) -> None:
        try:
            await self._writer.drain()
        except OSError as e:
            raise TransportFailed(f"Failed to send data: {e!r}") from e


class PacketReader:
    """连接的接收端，每次读取一个完整的帧。"""

    def __init__(self, reader: asyncio.StreamReader) -> None:
        self._reader = reader

    async def _read_exactly(self, size: int) -> bytes:
        try:
            return await self._reader.readexactly(size)
        except asyncio.IncompleteReadError as e:
            raise TransportFailed("Connection closed while reading packet") from e
        except OSError as e:
            raise TransportFailed(f"Failed to receive data: {e!r}") from e

    async def _read_varint(self) -> int:
        value = 0
        for i in range(VARINT_MAX_BYTES):
            byte = (await self._read_exactly(1))[0]
            value |= (byte & 0x7F) << 7 * i

            if not byte & 0x80:
                return to_int32(value)

        raise DecodingFailed("VarInt is too big")

    async def read_envelope(self) -> Envelope:
        """
        等待并读取一个 `[VarInt 长度][VarInt 数据包 ID][负载]` 帧。

        :raises TransportFailed: 连接在读取途中关闭或出错
        :raises DecodingFailed: 帧长度非法
        """
        length = await self._read_varint()
        if length <= 0 or length > MAX_PACKET_LENGTH:
            raise DecodingFailed(f"Invalid packet length: {length}")
        return Envelope.from_frame(await self._read_exactly(length))


class Session:
    """
    一次查询独占的 TCP 连接，分为发送端与接收端。

    用作异步上下文管理器，无论以何种方式退出都会关闭连接。
    """

    def __init__(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        self._stream = writer
        self.reader = PacketReader(reader)
        self.writer = PacketWriter(writer)

    @classmethod
    async def open(cls, host: str, port: int, timeout: float | None = None) -> "Session":
        """
        建立到 (host, port) 的连接。

        :raises SlpTimeout: 在 `timeout` 秒内未能建立连接
        :raises TransportFailed: 连接被拒绝、网络不可达等
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout
            )
        except asyncio.TimeoutError as e:
            raise SlpTimeout(f"Timed out connecting to {host}:{port}") from e
        except OSError as e:
            raise TransportFailed(f"Failed to connect to {host}:{port}: {e!r}") from e

        logger.debug(f"Established connection to {host}:{port}")
        return cls(reader, writer)

    async def close(self) -> None:
        self._stream.close()
        # 对端可能已经重置连接，关闭时的错误不影响查询结果
        with contextlib.suppress(OSError):
            await self._stream.wait_closed()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
