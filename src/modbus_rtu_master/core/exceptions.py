"""
异常定义
========

Modbus RTU交换过程中的错误分类。传输类错误与帧/协议类错误分属不同分支，
调用方可以据此区分线路问题和数据完整性问题。
"""

from typing import Optional


class ModbusError(Exception):
    """所有交换错误的基类"""

    pass


class TransportError(ModbusError):
    """串口传输层错误"""

    def __init__(self, message: str, port: Optional[str] = None):
        super().__init__(message)
        self.port = port


class PortUnavailable(TransportError):
    """串口不存在、被占用或无法打开"""

    pass


class PortConfigurationFailed(TransportError):
    """串口线路参数或流控无法设置"""

    pass


class WriteFailed(TransportError):
    """写入未完成"""

    pass


class ReadTimeout(TransportError):
    """超时时间内未收到完整响应"""

    def __init__(
        self,
        message: str,
        port: Optional[str] = None,
        expected: int = 0,
        received: bytes = b"",
    ):
        super().__init__(message, port)
        self.expected = expected
        self.received = received


class FrameError(ModbusError):
    """响应帧校验失败"""

    pass


class FrameTooShort(FrameError):
    def __init__(self, length: int, minimum: int):
        super().__init__(f"数据长度不足一帧: {length} < {minimum}")
        self.length = length
        self.minimum = minimum


class CrcMismatch(FrameError):
    def __init__(self, received: int, calculated: int):
        super().__init__(
            f"CRC校验错误: 接收=0x{received:04X}, 计算=0x{calculated:04X}"
        )
        self.received = received
        self.calculated = calculated


class UnexpectedSlaveAddress(FrameError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"从站地址不匹配: 期望={expected}, 实际={actual}")
        self.expected = expected
        self.actual = actual


class PduDecodeError(FrameError):
    """PDU内容无法解析"""

    def __init__(self, message: str, pdu: bytes = b""):
        super().__init__(message)
        self.pdu = bytes(pdu)
