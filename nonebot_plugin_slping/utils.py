import base64
import binascii
import re
import traceback
from typing import TYPE_CHECKING

import idna
from nonebot import logger, require
import ujson

from .configs import lang, lang_data

require("nonebot_plugin_alconna")
require("nonebot_plugin_uninfo")
from nonebot_plugin_alconna import Image, SupportScope, Text
from nonebot_plugin_uninfo import Uninfo

if TYPE_CHECKING:
    from .data_source import JavaStatus


def handle_exception(e):
    error_message = str(e)
    logger.error(traceback.format_exc())
    return Text(f"[CrashHandle]{error_message}\n>>更多信息详见日志文件<<")


def i18n(key: str) -> str:
    """获取当前语言下的文本"""
    return lang_data[lang][key]


def current_language() -> str:
    return lang


def change_language_to(language: str):
    global lang

    try:
        _ = lang_data[language]
    except KeyError:
        return f"No language named '{language}'!"
    else:
        if language == lang:
            return f"The language is already '{language}'!"
        lang = language
        return f"Change to '{language}' success!"


def parse_status(text: str) -> dict | None:
    """解析状态 JSON，格式不正确时返回 None"""
    try:
        data = ujson.loads(text)
    except ujson.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def motd_strip_formatting(raw_motd: str | dict | list) -> str:
    """
    去除 MOTD 中所有格式代码。
    支持 JSON 聊天组件（字典或列表形式）以及旧版 § 格式代码

    :params raw_motd: 原始 MOTD
    """
    stripped_motd = ""

    if isinstance(raw_motd, str):
        stripped_motd = re.sub(r"§.", "", raw_motd)

    elif isinstance(raw_motd, dict):
        stripped_motd = motd_strip_formatting(raw_motd.get("text", ""))

        if raw_motd.get("extra"):
            stripped_motd += motd_strip_formatting(raw_motd["extra"])

    elif isinstance(raw_motd, list):
        stripped_motd = "".join(motd_strip_formatting(sub) for sub in raw_motd)

    return stripped_motd


def decode_favicon(favicon: str) -> bytes | None:
    """解码 `data:image/png;base64,...` 形式的图标"""
    try:
        return base64.b64decode(favicon.split(",", 1)[1], validate=True)
    except (IndexError, binascii.Error):
        return None


def build_result(status: "JavaStatus", address: str, type: int = 0) -> list[Image | Text]:
    """
    根据类型构建并返回查询结果。

    :params status: 查询结果。
    :params address: 用户输入的服务器地址。
    :params type: 结果类型，0 为可读文本，1 为原始 JSON，默认为0。
    """
    if type == 1:
        return [Text(ujson.dumps(status.to_dict(), ensure_ascii=False))]

    delay = (
        f"{round(status.ping * 1000)}ms"
        if status.ping is not None
        else i18n("no_delay")
    )
    base_result = f"{i18n('address')}{address}\n{i18n('delay')}{delay}"

    data = parse_status(status.resp)
    if data is None:
        return [Text(f"{base_result}\n{i18n('raw')}{status.resp}")]

    version = data.get("version")
    version = version if isinstance(version, dict) else {}
    players = data.get("players")
    players = players if isinstance(players, dict) else {}
    sample = players.get("sample")
    player_list = [
        str(player.get("name", ""))
        for player in (sample if isinstance(sample, list) else [])
        if isinstance(player, dict)
    ]

    result = (
        f"{i18n('version')}{motd_strip_formatting(version.get('name', ''))}"
        f"\n{i18n('protocol_version')}{version.get('protocol', '')}"
        f"\n{base_result}"
        f"\n{i18n('motd')}{motd_strip_formatting(data.get('description', ''))}"
        f"\n{i18n('players')}{players.get('online', 0)}/{players.get('max', 0)}"
    )
    result += (
        f"\n{i18n('player_list')}{', '.join(motd_strip_formatting(p) for p in player_list)}"
        if player_list
        else ""
    )

    favicon = data.get("favicon")
    if isinstance(favicon, str) and (raw := decode_favicon(favicon)):
        return [Text(result), Text("\nFavicon:"), Image(raw=raw)]
    return [Text(result)]


async def parse_host(host_name: str) -> tuple[str, int]:
    """
    解析主机名（可选端口）。

    该函数尝试从主机名中提取IP地址和端口号。如果主机名中未指定端口，
    则默认端口号为0。

    :params host_name: 主机名，可能包含端口。

    :returns: 一个元组，包含两个元素：
    - 第一个元素是主机的地址
    - 第二个元素是主机的端口号，如果主机名中未指定端口，则为0。
    """
    pattern = r"(?:\[(.+?)\]|(.+?))(?:[:：](\d+))?$"
    if not (match := re.match(pattern, host_name)):
        return host_name, 0

    address = match[1] or match[2]
    port = int(match[3]) if match[3] else 0

    return address, port


def encode_host(address: str) -> str:
    """将国际化域名转换为 Punycode，无法转换时原样返回"""
    try:
        return idna.encode(address).decode("utf-8")
    except idna.IDNAError:
        return address


def is_validity_address(address: str) -> bool:
    """
    判断给定的地址是否为有效的域名或IP地址。

    :params address: 需要验证的地址，可以是域名地址或IP地址。

    :returns: 如果地址有效则返回True，否则返回False。
    """

    return is_domain(address) or is_ip_address(address)


def is_ip_address(address: str) -> bool:
    return is_ipv4(address) or is_ipv6(address)


def is_domain(address: str) -> bool:
    """
    判断给定的地址是否为域名。
    允许单标签主机名（如局域网内的 `myserver`）以及含下划线的标签。

    :params address: 需要验证的地址。

    :returns: 如果地址为域名则返回True，否则返回False。
    """
    try:
        punycode_address = idna.encode(address).decode("utf-8")
    except idna.IDNAError:
        # IDNA 不允许下划线，ASCII 主机名按原样校验
        if not address.isascii():
            return False
        punycode_address = address

    label = r"(?!-)[A-Za-z0-9_-]{1,63}(?<!-)"
    domain_pattern = re.compile(rf"^{label}(?:\.{label})*\.?$")
    if re.fullmatch(r"[\d.]+", punycode_address):
        return False
    return bool(domain_pattern.match(punycode_address))


def is_ipv4(address: str) -> bool:
    """
    判断给定的地址是否为IPv4地址。

    :params address: 需要验证的地址。

    :returns: 如果地址为IPv4地址则返回True，否则返回False。
    """
    ipv4_pattern = re.compile(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$")
    match_ipv4 = ipv4_pattern.match(address)

    if not match_ipv4:
        return False

    parts = address.split(".")
    return not any(not part.isdigit() or not 0 <= int(part) <= 255 for part in parts)


def is_ipv6(address: str) -> bool:
    """
    判断给定的地址是否为IPv6地址。

    :params address: 需要验证的地址。

    :returns: 如果地址为IPv6地址则返回True，否则返回False。
    """
    ipv6_pattern = re.compile(
        r"^\s*((([0-9A-Fa-f]{1,4}:){7}([0-9A-Fa-f]{1,4}|:))|(([0-9A-Fa-f]{1,4}:){6}(:[0-9A-Fa-f]{1,4}|((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3})|:))|(([0-9A-Fa-f]{1,4}:){5}(((:[0-9A-Fa-f]{1,4}){1,2})|:((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3})|:))|(([0-9A-Fa-f]{1,4}:){4}(((:[0-9A-Fa-f]{1,4}){1,3})|((:[0-9A-Fa-f]{1,4})?:((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3}))|:))|(([0-9A-Fa-f]{1,4}:){3}(((:[0-9A-Fa-f]{1,4}){1,4})|((:[0-9A-Fa-f]{1,4}){0,2}:((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3}))|:))|(([0-9A-Fa-f]{1,4}:){2}(((:[0-9A-Fa-f]{1,4}){1,5})|((:[0-9A-Fa-f]{1,4}){0,3}:((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3}))|:))|(([0-9A-Fa-f]{1,4}:){1}(((:[0-9A-Fa-f]{1,4}){1,6})|((:[0-9A-Fa-f]{1,4}){0,4}:((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3}))|:))|(:(((:[0-9A-Fa-f]{1,4}){1,7})|((:[0-9A-Fa-f]{1,4}){0,5}:((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3}))|:)))(%.+)?\s*$"
    )
    match_ipv6 = ipv6_pattern.match(address)

    return bool(match_ipv6)


def is_qbot(session: Uninfo) -> bool:
    """判断bot是否为qq官bot

    参数:
        session: Uninfo

    返回:
        bool: 是否为官bot
    """
    return session.scope == SupportScope.qq_api
