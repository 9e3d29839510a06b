import dns.asyncresolver
import dns.exception
import dns.resolver
from nonebot import logger

from .exceptions import NoAddressFound, ResolutionFailed
from .utils import is_ip_address

DEFAULT_PORT = 25565
"""没有 SRV 记录且未指定端口时使用的 TCP 端口"""
SRV_SERVICE = "_minecraft._tcp"
"""Minecraft Java 版 SRV 服务名"""


class AddressResolver:
    """
    将主机名解析为可连接的 (IP, 端口)。

    先查询 `_minecraft._tcp.<host>` 的 SRV 记录，没有记录时直接解析主机名。
    实例在插件加载时创建一次，供所有查询共享；内部不保存查询状态。
    """

    def __init__(
        self,
        resolver: dns.asyncresolver.Resolver | None = None,
        lifetime: float = 10,
    ) -> None:
        """
        :params resolver: 使用的 dnspython 异步解析器，默认在首次查询时按系统配置创建
        :params lifetime: 单次 DNS 查询的总超时时间（秒）
        """
        self._resolver = resolver
        self.lifetime = lifetime

    @property
    def resolver(self) -> dns.asyncresolver.Resolver:
        if self._resolver is None:
            self._resolver = dns.asyncresolver.Resolver()
            self._resolver.lifetime = self.lifetime
        return self._resolver

    async def resolve(self, hostname: str, port: int | None = None) -> tuple[str, int]:
        """
        解析连接目标。

        :params hostname: 服务器地址（域名或 IP）
        :params port: 没有 SRV 记录时使用的端口，默认为 25565

        :returns: (IP 地址, 端口)

        :raises ResolutionFailed: DNS 查询出错
        :raises NoAddressFound: 没有任何 A/AAAA 记录
        """
        if is_ip_address(hostname):
            return hostname, port or DEFAULT_PORT

        if srv := await self.lookup_srv(hostname):
            target, port = srv
            logger.debug(f"SRV {SRV_SERVICE}.{hostname} -> {target}:{port}")
        else:
            target, port = hostname, port or DEFAULT_PORT

        return await self.lookup_address(target), port

    async def lookup_srv(self, hostname: str) -> tuple[str, int] | None:
        """
        查询 SRV 记录，返回第一条记录的 (目标主机, 端口)。

        查询失败或没有记录时返回 None，由调用方回退到直接解析。
        """
        try:
            answer = await self.resolver.resolve(f"{SRV_SERVICE}.{hostname}", "SRV")
        except dns.exception.DNSException as e:
            logger.debug(f"No SRV record for {hostname}: {e!r}")
            return None

        for rdata in answer:
            target = str(rdata.target).rstrip(".")  # type: ignore
            # 目标为 "." 表示该服务不可用
            if not target:
                return None
            return target, int(rdata.port)  # type: ignore
        return None

    async def lookup_address(self, host: str) -> str:
        """
        解析主机的第一个地址，优先 IPv4。

        :raises ResolutionFailed: NXDOMAIN、超时或其他 DNS 错误
        :raises NoAddressFound: A 与 AAAA 均无记录
        """
        if is_ip_address(host):
            return host

        for rdtype in ("A", "AAAA"):
            try:
                answer = await self.resolver.resolve(host, rdtype)
            except dns.resolver.NoAnswer:
                continue
            except dns.exception.DNSException as e:
                raise ResolutionFailed(f"Failed to resolve {host}: {e!r}") from e

            for rdata in answer:
                return str(rdata.address)  # type: ignore

        raise NoAddressFound(f"No address found for {host}")
