"""
配置模块
=======

包含协议常量定义和主站配置。
"""

from .constants import *
from .settings import *

__all__ = [
    # 常量
    "FunctionCode",
    "ExceptionCode",
    "FlowControl",
    "PduSizePolicy",
    "PDU_SIZE_POLICY",
    "DEFAULT_BAUDRATE",
    "DEFAULT_TIMEOUT",
    "FRAME_ADDRESS_SIZE",
    "FRAME_CRC_SIZE",
    "MIN_FRAME_SIZE",
    # 配置
    "MasterConfig",
]
