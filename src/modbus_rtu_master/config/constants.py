"""
系统常量定义
============

定义Modbus RTU协议中使用的功能码、帧格式和默认配置。
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
import struct
from typing import Final, Dict


class FunctionCode(IntEnum):
    """Modbus功能码枚举"""

    # 读操作
    READ_COILS = 0x01  # 读线圈
    READ_DISCRETE_INPUTS = 0x02  # 读离散输入
    READ_HOLDING_REGISTERS = 0x03  # 读保持寄存器
    READ_INPUT_REGISTERS = 0x04  # 读输入寄存器

    # 写操作
    WRITE_SINGLE_COIL = 0x05  # 写单个线圈
    WRITE_SINGLE_REGISTER = 0x06  # 写单个寄存器
    WRITE_MULTIPLE_COILS = 0x0F  # 写多个线圈
    WRITE_MULTIPLE_REGISTERS = 0x10  # 写多个寄存器


class ExceptionCode(IntEnum):
    """从站异常码枚举"""

    ILLEGAL_FUNCTION = 0x01
    ILLEGAL_DATA_ADDRESS = 0x02
    ILLEGAL_DATA_VALUE = 0x03
    SLAVE_DEVICE_FAILURE = 0x04
    ACKNOWLEDGE = 0x05
    SLAVE_DEVICE_BUSY = 0x06
    MEMORY_PARITY_ERROR = 0x08
    GATEWAY_PATH_UNAVAILABLE = 0x0A
    GATEWAY_TARGET_NO_RESPONSE = 0x0B


class FlowControl(str, Enum):
    """串口流控模式"""

    NONE = "none"
    RTS_CTS = "rtscts"
    XON_XOFF = "xonxoff"
    DSR_DTR = "dsrdtr"


# 异常响应时功能码最高位置1
EXCEPTION_OFFSET: Final[int] = 0x80

# 数据帧格式定义: | 从站地址(1B) | PDU(NB) | CRC(2B) |
FRAME_ADDRESS_FORMAT: Final[str] = ">B"  # 从站地址(1字节)
FRAME_CRC_FORMAT: Final[str] = ">H"  # CRC(2字节)，已按线上顺序交换高低字节

FRAME_ADDRESS_SIZE: Final[int] = struct.calcsize(FRAME_ADDRESS_FORMAT)
FRAME_CRC_SIZE: Final[int] = struct.calcsize(FRAME_CRC_FORMAT)
FRAME_FORMAT_SIZE: Final[int] = FRAME_ADDRESS_SIZE + FRAME_CRC_SIZE
MIN_FRAME_SIZE: Final[int] = FRAME_FORMAT_SIZE + 1  # 地址 + 至少1字节PDU + CRC
MAX_FRAME_SIZE: Final[int] = 256  # RTU帧最大长度

# 响应头: 从站地址 + 功能码
REPLY_HEADER_SIZE: Final[int] = 2
EXCEPTION_FRAME_SIZE: Final[int] = 5  # 地址 + 功能码 + 异常码 + CRC

# 从站地址范围
BROADCAST_ADDRESS: Final[int] = 0
MIN_SLAVE_ADDRESS: Final[int] = 1
MAX_SLAVE_ADDRESS: Final[int] = 247

# 协议数量限制
MAX_ADDRESS: Final[int] = 0xFFFF
MAX_READ_BITS: Final[int] = 2000
MAX_READ_REGISTERS: Final[int] = 125
MAX_WRITE_COILS: Final[int] = 1968
MAX_WRITE_REGISTERS: Final[int] = 123

COIL_ON: Final[int] = 0xFF00
COIL_OFF: Final[int] = 0x0000

# 串口配置默认值
DEFAULT_BAUDRATE: Final[int] = 9600  # 默认波特率
DEFAULT_TIMEOUT: Final[float] = 1.0  # 默认读超时时间(秒)
DEFAULT_SLAVE_ADDRESS: Final[int] = 1  # 默认从站地址

# 帧间静默时间
BITS_PER_CHARACTER: Final[int] = 11  # 起始位 + 8数据位 + 校验位/停止位 + 停止位
SILENT_CHARACTERS: Final[float] = 3.5
FIXED_SILENCE_BAUDRATE: Final[int] = 19200  # 高于该波特率时使用固定静默时间
FIXED_SILENCE_SECONDS: Final[float] = 0.00175


@dataclass(frozen=True)
class PduSizePolicy:
    """PDU长度规则: 固定头部 + 按数据项数计算的数据段"""

    header_size: int  # 功能码及固定字段长度
    item_bits: int = 0  # 每个数据项占用的位数，0表示定长

    @property
    def is_fixed(self) -> bool:
        return self.item_bits == 0

    def values_size(self, item_count: int) -> int:
        """数据段字节数，按位打包后向上取整"""
        return (item_count * self.item_bits + 7) // 8

    def pdu_length(self, item_count: int = 0) -> int:
        """计算请求PDU的总长度"""
        if self.is_fixed:
            return self.header_size
        return self.header_size + self.values_size(item_count)


# 功能码 -> 请求PDU长度规则
PDU_SIZE_POLICY: Final[Dict[FunctionCode, PduSizePolicy]] = {
    FunctionCode.READ_COILS: PduSizePolicy(header_size=5),
    FunctionCode.READ_DISCRETE_INPUTS: PduSizePolicy(header_size=5),
    FunctionCode.READ_HOLDING_REGISTERS: PduSizePolicy(header_size=5),
    FunctionCode.READ_INPUT_REGISTERS: PduSizePolicy(header_size=5),
    FunctionCode.WRITE_SINGLE_COIL: PduSizePolicy(header_size=5),
    FunctionCode.WRITE_SINGLE_REGISTER: PduSizePolicy(header_size=5),
    # 功能码(1) + 起始地址(2) + 数量(2) + 字节数(1) + 数据段
    FunctionCode.WRITE_MULTIPLE_COILS: PduSizePolicy(header_size=6, item_bits=1),
    FunctionCode.WRITE_MULTIPLE_REGISTERS: PduSizePolicy(header_size=6, item_bits=16),
}


def calculate_frame_silence(baudrate: int) -> float:
    """
    计算RTU帧间静默时间

    Args:
        baudrate: 波特率

    Returns:
        3.5个字符时间(秒)，高于19200波特率时固定为1.75ms
    """
    if baudrate <= 0:
        raise ValueError("baudrate必须大于0")
    if baudrate > FIXED_SILENCE_BAUDRATE:
        return FIXED_SILENCE_SECONDS
    return SILENT_CHARACTERS * BITS_PER_CHARACTER / baudrate
