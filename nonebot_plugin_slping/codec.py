"""
Minecraft Java 版握手与状态阶段的数据包编解码。

每个数据包在线路上的格式为 `[VarInt 长度][VarInt 数据包 ID][负载]`，
长度包含数据包 ID 与负载。

由于 wiki.vg 站点已关闭，协议文档现在位于
https://minecraft.wiki/w/Java_Edition_protocol/Server_List_Ping
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
import struct
from typing import ClassVar

from .exceptions import DecodingFailed, EncodingFailed

VARINT_MAX_BYTES = 5
"""VarInt 最多占用的字节数"""
MAX_PACKET_LENGTH = 2097151
"""单个数据包允许的最大长度（3 字节 VarInt 的上限）"""
MAX_STRING_LENGTH = 32767
"""协议字符串允许的最大字符数"""


class State(Enum):
    def __str__(self) -> str:
        return str(self.name)

    HANDSHAKING = 0
    STATUS = 1


class Direction(Enum):
    def __str__(self) -> str:
        return str(self.name)

    SERVERBOUND = 0
    CLIENTBOUND = 1


class NextState(IntEnum):
    """握手包中声明的下一阶段（1 为状态，2 为登录）"""

    STATUS = 1
    LOGIN = 2


def to_int32(value: int) -> int:
    return value - (1 << 32) if value & 0x80000000 else value


def pack_varint(value: int) -> bytes:
    """将 32 位有符号整数打包为 VarInt，负数按补码编码为 5 字节。"""
    if not -(1 << 31) <= value < (1 << 31):
        raise EncodingFailed(f"VarInt out of range: {value}")
    value &= 0xFFFFFFFF
    ordinal = b""

    while True:
        byte = value & 0x7F
        value >>= 7
        ordinal += struct.pack("B", byte | (0x80 if value > 0 else 0))

        if value == 0:
            break

    return ordinal


def pack_string(value: str) -> bytes:
    """打包为 VarInt 字节长度 + UTF-8 内容。"""
    if len(value) > MAX_STRING_LENGTH:
        raise EncodingFailed(f"String too long: {len(value)} > {MAX_STRING_LENGTH}")
    data = value.encode("utf-8")
    return pack_varint(len(data)) + data


def pack_frame(packet_id: int, payload: bytes) -> bytes:
    data = pack_varint(packet_id) + payload
    return pack_varint(len(data)) + data


class Buffer:
    """对单个数据包负载的顺序读取，越界时抛出 `DecodingFailed`。"""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def read(self, size: int) -> bytes:
        if size < 0 or size > self.remaining:
            raise DecodingFailed(
                f"Tried to read {size} bytes, only {self.remaining} left"
            )
        data = self._data[self._pos : self._pos + size]
        self._pos += size
        return data

    def read_rest(self) -> bytes:
        return self.read(self.remaining)

    def read_varint(self) -> int:
        value = 0
        for i in range(VARINT_MAX_BYTES):
            byte = self.read(1)[0]
            value |= (byte & 0x7F) << 7 * i

            if not byte & 0x80:
                return to_int32(value)

        raise DecodingFailed("VarInt is too big")

    def read_string(self) -> str:
        length = self.read_varint()
        # UTF-8 下每个字符最多 4 字节
        if length < 0 or length > MAX_STRING_LENGTH * 4:
            raise DecodingFailed(f"Invalid string length: {length}")
        try:
            return self.read(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodingFailed(f"Invalid UTF-8 string: {e}") from e

    def read_ushort(self) -> int:
        return struct.unpack(">H", self.read(2))[0]

    def read_long(self) -> int:
        return struct.unpack(">q", self.read(8))[0]


@dataclass(frozen=True)
class Packet:
    """所有数据包的基类，子类需设置 `packet_id` 并实现 `pack`/`unpack`。"""

    packet_id: ClassVar[int]

    def pack(self) -> bytes:
        return b""

    @classmethod
    def unpack(cls, buffer: Buffer) -> "Packet":
        return cls()

    def encode(self) -> bytes:
        """编码为一个完整的帧（含长度前缀）。"""
        try:
            return pack_frame(self.packet_id, self.pack())
        except struct.error as e:
            raise EncodingFailed(f"Cannot encode {type(self).__name__}: {e}") from e


@dataclass(frozen=True)
class Handshake(Packet):
    packet_id = 0x00

    protocol_version: int
    server_address: str
    server_port: int
    next_state: NextState = NextState.STATUS

    def pack(self) -> bytes:
        return (
            pack_varint(self.protocol_version)
            + pack_string(self.server_address)
            + struct.pack(">H", self.server_port)
            + pack_varint(int(self.next_state))
        )

    @classmethod
    def unpack(cls, buffer: Buffer) -> "Handshake":
        protocol_version = buffer.read_varint()
        server_address = buffer.read_string()
        server_port = buffer.read_ushort()
        try:
            next_state = NextState(buffer.read_varint())
        except ValueError as e:
            raise DecodingFailed(f"Unknown next state: {e}") from e
        return cls(protocol_version, server_address, server_port, next_state)


@dataclass(frozen=True)
class StatusRequest(Packet):
    packet_id = 0x00


@dataclass(frozen=True)
class StatusResponse(Packet):
    packet_id = 0x00

    data: str
    """服务器返回的 JSON 文本，不做解析"""

    def pack(self) -> bytes:
        return pack_string(self.data)

    @classmethod
    def unpack(cls, buffer: Buffer) -> "StatusResponse":
        return cls(buffer.read_string())


@dataclass(frozen=True)
class PingRequest(Packet):
    packet_id = 0x01

    time: int

    def pack(self) -> bytes:
        return struct.pack(">q", self.time)

    @classmethod
    def unpack(cls, buffer: Buffer) -> "PingRequest":
        return cls(buffer.read_long())


@dataclass(frozen=True)
class PingResponse(Packet):
    packet_id = 0x01

    time: int

    def pack(self) -> bytes:
        return struct.pack(">q", self.time)

    @classmethod
    def unpack(cls, buffer: Buffer) -> "PingResponse":
        return cls(buffer.read_long())


PacketTable = dict[int, type[Packet]]

# 每个 (阶段, 方向) 对应一个按协议版本升序排列的 (起始版本, 数据包表) 列表。
# 握手与状态阶段自 Netty 重写 (13w41a) 以来没有变化，因此只有一个区间。
_PACKETS: dict[tuple[State, Direction], list[tuple[int, PacketTable]]] = {
    (State.HANDSHAKING, Direction.SERVERBOUND): [
        (-(1 << 31), {Handshake.packet_id: Handshake}),
    ],
    (State.STATUS, Direction.SERVERBOUND): [
        (
            -(1 << 31),
            {StatusRequest.packet_id: StatusRequest, PingRequest.packet_id: PingRequest},
        ),
    ],
    (State.STATUS, Direction.CLIENTBOUND): [
        (
            -(1 << 31),
            {
                StatusResponse.packet_id: StatusResponse,
                PingResponse.packet_id: PingResponse,
            },
        ),
    ],
}


def packet_table(
    state: State, direction: Direction, protocol_version: int
) -> PacketTable:
    """返回给定协议版本下某阶段、某方向可用的数据包表。"""
    table: PacketTable = {}
    for since, packets in _PACKETS.get((state, direction), []):
        if protocol_version >= since:
            table = packets
    return table


def decode(
    state: State,
    direction: Direction,
    protocol_version: int,
    packet_id: int,
    payload: bytes,
) -> Packet:
    """
    按 (阶段, 方向, 协议版本, 数据包 ID) 查表并解码负载。

    :raises DecodingFailed: 数据包 ID 未知或负载格式错误。
    """
    packet_type = packet_table(state, direction, protocol_version).get(packet_id)
    if packet_type is None:
        raise DecodingFailed(
            f"Unknown packet id 0x{packet_id:02X} "
            f"({state}/{direction}, protocol {protocol_version})"
        )
    return packet_type.unpack(Buffer(payload))


@dataclass(frozen=True)
class Envelope:
    """从线路读取的一个完整帧，尚未按当前阶段解释。"""

    packet_id: int
    payload: bytes

    @classmethod
    def from_frame(cls, frame: bytes) -> "Envelope":
        """从去掉长度前缀的帧中拆出数据包 ID 与负载。"""
        buffer = Buffer(frame)
        packet_id = buffer.read_varint()
        return cls(packet_id, buffer.read_rest())

    def decode_status(self, protocol_version: int) -> Packet:
        """按客户端方向的状态阶段数据包表解码。"""
        return decode(
            State.STATUS,
            Direction.CLIENTBOUND,
            protocol_version,
            self.packet_id,
            self.payload,
        )
