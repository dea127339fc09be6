"""
Modbus RTU主站
==============

基于串口的Modbus RTU主站驱动，把请求打包成RTU数据帧发送，并校验解析从站的响应。

主要功能：
- CRC16校验
- 请求帧打包与响应帧校验
- 单次请求/响应交换，超时受限
- 明确区分的错误类型

作者: lanford
版本: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "lanford"
__email__ = ""
__description__ = "基于串口的Modbus RTU主站驱动"

# 导出主要类
from .config.settings import MasterConfig
from .config.constants import FunctionCode, FlowControl
from .core.master import ModbusRtuMaster, ExchangeOutcome, ExchangeState
from .core.frame_handler import RtuFrameHandler
from .core.checksum import crc16
from .core.pdu import (
    PduCodec,
    ReadCoilsRequest,
    ReadDiscreteInputsRequest,
    ReadHoldingRegistersRequest,
    ReadInputRegistersRequest,
    WriteSingleCoilRequest,
    WriteSingleRegisterRequest,
    WriteMultipleCoilsRequest,
    WriteMultipleRegistersRequest,
)
from .core.exceptions import ModbusError

__all__ = [
    "MasterConfig",
    "FunctionCode",
    "FlowControl",
    "ModbusRtuMaster",
    "ExchangeOutcome",
    "ExchangeState",
    "RtuFrameHandler",
    "crc16",
    "PduCodec",
    "ReadCoilsRequest",
    "ReadDiscreteInputsRequest",
    "ReadHoldingRegistersRequest",
    "ReadInputRegistersRequest",
    "WriteSingleCoilRequest",
    "WriteSingleRegisterRequest",
    "WriteMultipleCoilsRequest",
    "WriteMultipleRegistersRequest",
    "ModbusError",
]
