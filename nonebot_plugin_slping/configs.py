import os

from nonebot import logger
import ujson

from .config import config as plugin_config

DEFAULT_LANGUAGE = "zh-cn"
MESSAGE_TYPES = (0, 1)


def readInfo(file: str) -> dict:
    with open(
        os.path.join(os.path.dirname(__file__), file), encoding="utf-8"
    ) as f:
        return ujson.loads((f.read()).strip())


lang_data = readInfo("language.json")

lang = plugin_config.language
if lang not in lang_data:
    logger.warning(f"Unknown language '{lang}', falling back to '{DEFAULT_LANGUAGE}'")
    lang = DEFAULT_LANGUAGE

message_type = plugin_config.type
if message_type not in MESSAGE_TYPES:
    logger.warning(f"Unknown message type {message_type}, falling back to 0")
    message_type = 0
