"""
核心模块
========

包含CRC校验、PDU编解码、数据帧处理、串口管理和主站交换等核心功能。
"""

from .checksum import crc16, calculate_crc16_modbus
from .exceptions import (
    ModbusError,
    TransportError,
    PortUnavailable,
    PortConfigurationFailed,
    WriteFailed,
    ReadTimeout,
    FrameError,
    FrameTooShort,
    CrcMismatch,
    UnexpectedSlaveAddress,
    PduDecodeError,
)
from .frame_handler import RtuFrameHandler, DecodedFrame
from .serial_manager import SerialManager
from .master import ModbusRtuMaster, ExchangeOutcome, ExchangeState

__all__ = [
    "crc16",
    "calculate_crc16_modbus",
    "ModbusError",
    "TransportError",
    "PortUnavailable",
    "PortConfigurationFailed",
    "WriteFailed",
    "ReadTimeout",
    "FrameError",
    "FrameTooShort",
    "CrcMismatch",
    "UnexpectedSlaveAddress",
    "PduDecodeError",
    "RtuFrameHandler",
    "DecodedFrame",
    "SerialManager",
    "ModbusRtuMaster",
    "ExchangeOutcome",
    "ExchangeState",
]
