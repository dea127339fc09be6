"""
日志记录模块
============

提供统一的日志记录功能，支持彩色输出、调用位置追踪和数据帧十六进制格式化。
"""

import datetime
import logging
import sys
from typing import Optional, Union
from pathlib import Path

DEFAULT_LOGGER_NAME = "modbus_rtu_master"


class ColoredFormatter(logging.Formatter):
    """彩色日志格式化器"""

    # ANSI颜色代码
    COLORS = {
        "DEBUG": "\033[36m",  # 青色
        "INFO": "\033[0m",  # 默认色
        "WARNING": "\033[33m",  # 黄色
        "ERROR": "\033[31m",  # 红色
        "CRITICAL": "\033[35m",  # 紫色
        "RESET": "\033[0m",  # 重置
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record):
        """格式化日志记录"""
        # 调用位置: 文件名.函数名():行号
        caller = f"{Path(record.pathname).name}.{record.funcName}():{record.lineno}"

        created = datetime.datetime.fromtimestamp(record.created)
        timestamp = created.strftime("%Y-%m-%d %H:%M:%S") + f".{int(record.msecs):03d}"

        message = f"[{timestamp}] [{record.levelname}] {record.getMessage()} [{caller}]"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        if not self.use_color:
            return message
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        return f"{color}{message}{self.COLORS['RESET']}"


# 已配置的日志器
_loggers = {}


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    console_output: bool = True,
) -> logging.Logger:
    """
    设置日志器

    Args:
        name: 日志器名称
        level: 日志级别
        log_file: 日志文件路径，None表示不写入文件
        console_output: 是否输出到控制台

    Returns:
        配置好的日志器
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # 清除已有的处理器
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # 控制台处理器
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(ColoredFormatter(sys.stderr.isatty()))
        logger.addHandler(console_handler)

    # 文件处理器
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        logger.addHandler(file_handler)

    # 防止重复输出
    logger.propagate = False

    _loggers[name] = logger
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    获取日志器实例

    包内模块的日志器挂在根日志器之下，由根日志器统一输出。

    Args:
        name: 日志器名称，一般传入__name__

    Returns:
        日志器实例
    """
    if name in _loggers:
        return _loggers[name]
    if name.startswith(DEFAULT_LOGGER_NAME + "."):
        get_logger(DEFAULT_LOGGER_NAME)
        logger = logging.getLogger(name)
        logger.setLevel(logging.NOTSET)
        _loggers[name] = logger
        return logger
    return setup_logger(name)


def set_level(level: Union[int, str], name: str = DEFAULT_LOGGER_NAME) -> None:
    """调整日志级别，例如命令行的--verbose"""
    get_logger(name).setLevel(level)


def format_frame(data: Union[bytes, bytearray, memoryview]) -> str:
    """
    将数据帧格式化为十六进制字符串

    Examples:
        >>> format_frame(b'\\x01\\x03\\x00\\x00\\x00\\x0a\\xc5\\xcd')
        '01 03 00 00 00 0A C5 CD'
    """
    return " ".join(f"{byte:02X}" for byte in bytes(data))
