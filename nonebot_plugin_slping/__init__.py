from nonebot import get_driver, logger, require
from nonebot.drivers import URL, ASGIMixin, HTTPServerSetup, Request, Response
from nonebot.plugin import PluginMetadata, inherit_supported_adapters
import ujson

from .config import Config, config
from .configs import lang_data, message_type
from .data_source import JavaStatus, java_status
from .exceptions import SlpError
from .resolver import AddressResolver
from .utils import (
    build_result,
    change_language_to,
    current_language,
    encode_host,
    handle_exception,
    i18n,
    is_qbot,
    is_validity_address,
    parse_host,
)

require("nonebot_plugin_alconna")
require("nonebot_plugin_uninfo")
from arclet.alconna import Alconna, Args, CommandMeta
from nonebot_plugin_alconna import Arparma, Image, Text, UniMessage, on_alconna
from nonebot_plugin_uninfo import Session, UniSession

__plugin_meta__ = PluginMetadata(
    name="Minecraft Java版服务器Ping",
    description="通过服务器列表Ping协议查询Java版服务器状态与延迟，支持SRV记录/Minecraft Java server list ping with SRV support",  # noqa: E501
    type="application",
    supported_adapters=inherit_supported_adapters(
        "nonebot_plugin_alconna", "nonebot_plugin_uninfo"
    ),
    config=Config,
    usage="""
    Minecraft Java版服务器状态与延迟查询
    用法：
        查服Java [地址]:[端口] [协议版本] / 查服Java [地址]
        设置语言 zh-cn
        当前语言
        语言列表
    usage:
        mcping host:port [protocol_version] / mcping host
        set_lang en
        lang_now
        lang_list
    """.strip(),
)

INT32_RANGE = range(-(1 << 31), 1 << 31)

resolver = AddressResolver(lifetime=config.dns_lifetime)
"""所有查询共享的地址解析器"""


async def query_java(address: str, port: int, protocol_version: int) -> JavaStatus:
    """按插件配置查询，`port` 为 0 时使用 SRV 记录或默认端口"""
    return await java_status(
        encode_host(address),
        port or None,
        protocol_version,
        resolver=resolver,
        timeout=config.timeout,
        connect_timeout=config.connect_timeout,
        ping_timeout=config.ping_timeout,
    )


check = on_alconna(
    Alconna("mcping", Args["host?", str]["version?", int]),
    aliases={"查服Java"},
    priority=10,
    block=True,
)


lang_change = on_alconna(
    Alconna("set_lang", Args["language", str], meta=CommandMeta(compact=True)),
    aliases={"设置语言"},
    priority=10,
    block=True,
)

lang_now = on_alconna(
    Alconna("lang_now", meta=CommandMeta(compact=True)),
    aliases={"当前语言"},
    priority=10,
    block=True,
)

lang_list = on_alconna(
    Alconna("lang_list", meta=CommandMeta(compact=True)),
    aliases={"语言列表"},
    priority=10,
    block=True,
)


async def parse_args(
    host: str | None, version: int | None
) -> tuple[str, int, int] | str:
    """
    校验命令参数。

    :params host: `地址[:端口]`
    :params version: 协议版本，为 None 时使用配置中的值。

    :returns: (地址, 端口, 协议版本)，参数有误时返回提示文本的键。
    """
    if not host:
        return "where_ip"
    address, port = await parse_host(host)

    if not 0 <= port <= 65535:
        return "where_port"

    if version is None:
        version = config.protocol_version
    elif version not in INT32_RANGE:
        return "where_version"

    if not is_validity_address(address):
        return "where_ip"

    return address, port, version


@check.handle()
async def _(p: Arparma, session: Session = UniSession()):
    args = await parse_args(p.query("host"), p.query("version"))
    if isinstance(args, str):
        await check.finish(Text(i18n(args)), reply_to=True)

    await get_info(*args, session)


async def build_reply(address: str, port: int, version: int) -> list[Image | Text]:
    try:
        status = await query_java(address, port, version)
    except SlpError as e:
        logger.warning(f"Ping {address}:{port} failed [{e.kind}]: {e}")
        return [Text(i18n("server_error"))]
    except Exception as e:
        return [handle_exception(e)]

    return build_result(status, address, message_type)


async def get_info(address: str, port: int, version: int, session: Session):
    message = await build_reply(address, port, version)
    if is_qbot(session):
        for m in message:
            await check.send(UniMessage(m), reply_to=True)
    else:
        await check.send(UniMessage(message), reply_to=True)


@lang_change.handle()
async def _(language: str):
    if language:
        await lang_change.send(Text(change_language_to(language)), reply_to=True)
    else:
        await lang_change.send(Text("Language?"), reply_to=True)


@lang_now.handle()
async def _():
    await lang_now.send(Text(f"Language: {current_language()}."), reply_to=True)


@lang_list.handle()
async def _():
    i = "\n".join(list(lang_data.keys()))
    await lang_list.send(Text(f"Language List:\n{i}"), reply_to=True)


async def http_java(request: Request) -> Response:
    """
    `GET ?hostname=&port=&version=`

    成功时返回 `{"resp": 状态 JSON 原文, "ping": 延迟秒数或 null}`，
    参数错误返回 400，查询失败一律返回 500。
    """
    query = request.url.query
    hostname = query.get("hostname")
    if not hostname or not is_validity_address(hostname):
        return Response(400)
    try:
        port = int(query.get("port") or 0)
        version = int(query.get("version") or config.protocol_version)
    except ValueError:
        return Response(400)
    if not 0 <= port <= 65535 or version not in INT32_RANGE:
        return Response(400)

    try:
        status = await query_java(hostname, port, version)
    except SlpError as e:
        logger.warning(f"Ping {hostname}:{port} failed [{e.kind}]: {e}")
        return Response(500)

    return Response(
        200,
        headers={"Content-Type": "application/json"},
        content=ujson.dumps(status.to_dict(), ensure_ascii=False),
    )


driver = get_driver()
if config.http_api and isinstance(driver, ASGIMixin):
    driver.setup_http_server(
        HTTPServerSetup(URL(config.http_path), "GET", "mcping_java", http_java)
    )
