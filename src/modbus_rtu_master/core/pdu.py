"""
PDU编解码模块
=============

定义Modbus请求/响应的数据结构，以及功能码相关的PDU编码和解码。

PDU格式：| 功能码(1B) | 功能相关数据(NB) |
"""

import struct
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, Iterable, Optional, Tuple

from ..config.constants import (
    COIL_OFF,
    COIL_ON,
    EXCEPTION_OFFSET,
    MAX_ADDRESS,
    MAX_READ_BITS,
    MAX_READ_REGISTERS,
    MAX_WRITE_COILS,
    MAX_WRITE_REGISTERS,
    ExceptionCode,
    FunctionCode,
)
from .exceptions import PduDecodeError


def pack_bits(values: Iterable[bool]) -> bytes:
    """
    按Modbus规则打包线圈值

    每字节低位在前，最后一个字节不足8位时高位补0。

    Examples:
        >>> pack_bits([True, False, True])
        b'\\x05'
    """
    values = list(values)
    packed = bytearray((len(values) + 7) // 8)
    for index, value in enumerate(values):
        if value:
            packed[index // 8] |= 1 << (index % 8)
    return bytes(packed)


def unpack_bits(data: bytes, count: Optional[int] = None) -> Tuple[bool, ...]:
    """解包线圈/离散输入值，count为空时返回全部位"""
    bits = tuple(bool(byte >> bit & 1) for byte in data for bit in range(8))
    if count is not None:
        bits = bits[:count]
    return bits


def _check_range(name: str, value: int, minimum: int, maximum: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name}必须是整数，实际为{type(value).__name__}")
    if value < minimum or value > maximum:
        raise ValueError(f"{name}必须在 {minimum} 到 {maximum} 之间，实际为{value}")


# ---------------------------------------------------------------------------
# 请求
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModbusRequest:
    """Modbus请求基类"""

    function_code: ClassVar[FunctionCode]

    address: int  # 起始地址

    def __post_init__(self):
        _check_range("address", self.address, 0, MAX_ADDRESS)

    @property
    def item_count(self) -> int:
        """请求涉及的数据项数量"""
        return 1

    def pack_body(self) -> bytes:
        """打包功能码之后的数据"""
        raise NotImplementedError

    def expected_response_length(self) -> int:
        """正常响应的PDU长度"""
        raise NotImplementedError


@dataclass(frozen=True)
class _ReadRequest(ModbusRequest):
    """读请求: | 功能码 | 起始地址(2B) | 数量(2B) |"""

    max_count: ClassVar[int]
    item_bits: ClassVar[int]

    count: int

    def __post_init__(self):
        super().__post_init__()
        _check_range("count", self.count, 1, self.max_count)
        if self.address + self.count - 1 > MAX_ADDRESS:
            raise ValueError(f"读取范围超出地址空间: {self.address}+{self.count}")

    @property
    def item_count(self) -> int:
        return self.count

    def pack_body(self) -> bytes:
        return struct.pack(">HH", self.address, self.count)

    def expected_response_length(self) -> int:
        # 功能码 + 字节数 + 数据
        return 2 + (self.count * self.item_bits + 7) // 8


@dataclass(frozen=True)
class ReadCoilsRequest(_ReadRequest):
    function_code = FunctionCode.READ_COILS
    max_count = MAX_READ_BITS
    item_bits = 1


@dataclass(frozen=True)
class ReadDiscreteInputsRequest(_ReadRequest):
    function_code = FunctionCode.READ_DISCRETE_INPUTS
    max_count = MAX_READ_BITS
    item_bits = 1


@dataclass(frozen=True)
class ReadHoldingRegistersRequest(_ReadRequest):
    function_code = FunctionCode.READ_HOLDING_REGISTERS
    max_count = MAX_READ_REGISTERS
    item_bits = 16


@dataclass(frozen=True)
class ReadInputRegistersRequest(_ReadRequest):
    function_code = FunctionCode.READ_INPUT_REGISTERS
    max_count = MAX_READ_REGISTERS
    item_bits = 16


@dataclass(frozen=True)
class WriteSingleCoilRequest(ModbusRequest):
    """写单个线圈，线上值为0xFF00(ON)或0x0000(OFF)"""

    function_code = FunctionCode.WRITE_SINGLE_COIL

    value: bool

    def pack_body(self) -> bytes:
        return struct.pack(">HH", self.address, COIL_ON if self.value else COIL_OFF)

    def expected_response_length(self) -> int:
        return 5


@dataclass(frozen=True)
class WriteSingleRegisterRequest(ModbusRequest):
    function_code = FunctionCode.WRITE_SINGLE_REGISTER

    value: int

    def __post_init__(self):
        super().__post_init__()
        _check_range("value", self.value, 0, 0xFFFF)

    def pack_body(self) -> bytes:
        return struct.pack(">HH", self.address, self.value)

    def expected_response_length(self) -> int:
        return 5


@dataclass(frozen=True)
class WriteMultipleCoilsRequest(ModbusRequest):
    """写多个线圈: | 功能码 | 起始地址(2B) | 数量(2B) | 字节数(1B) | 打包的线圈值 |"""

    function_code = FunctionCode.WRITE_MULTIPLE_COILS

    values: Tuple[bool, ...]

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "values", tuple(bool(v) for v in self.values))
        _check_range("线圈数量", len(self.values), 1, MAX_WRITE_COILS)

    @property
    def item_count(self) -> int:
        return len(self.values)

    def pack_body(self) -> bytes:
        data = pack_bits(self.values)
        return struct.pack(">HHB", self.address, len(self.values), len(data)) + data

    def expected_response_length(self) -> int:
        return 5


@dataclass(frozen=True)
class WriteMultipleRegistersRequest(ModbusRequest):
    """写多个寄存器: | 功能码 | 起始地址(2B) | 数量(2B) | 字节数(1B) | 寄存器值(2B*N) |"""

    function_code = FunctionCode.WRITE_MULTIPLE_REGISTERS

    values: Tuple[int, ...]

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(self, "values", tuple(self.values))
        _check_range("寄存器数量", len(self.values), 1, MAX_WRITE_REGISTERS)
        for value in self.values:
            _check_range("寄存器值", value, 0, 0xFFFF)

    @property
    def item_count(self) -> int:
        return len(self.values)

    def pack_body(self) -> bytes:
        count = len(self.values)
        return struct.pack(f">HHB{count}H", self.address, count, count * 2, *self.values)

    def expected_response_length(self) -> int:
        return 5


# ---------------------------------------------------------------------------
# 响应
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModbusResponse:
    """Modbus响应基类，保留原始PDU"""

    is_exception: ClassVar[bool] = False

    function_code: int
    pdu: bytes


@dataclass(frozen=True)
class ReadBitsResponse(ModbusResponse):
    bits: Tuple[bool, ...]


@dataclass(frozen=True)
class ReadRegistersResponse(ModbusResponse):
    registers: Tuple[int, ...]


@dataclass(frozen=True)
class WriteSingleResponse(ModbusResponse):
    address: int
    value: int


@dataclass(frozen=True)
class WriteMultipleResponse(ModbusResponse):
    address: int
    quantity: int


@dataclass(frozen=True)
class ExceptionResponse(ModbusResponse):
    """从站异常响应，function_code为原始请求的功能码"""

    is_exception: ClassVar[bool] = True

    exception_code: int

    @property
    def exception_name(self) -> str:
        try:
            return ExceptionCode(self.exception_code).name
        except ValueError:
            return f"UNKNOWN_0x{self.exception_code:02X}"


# ---------------------------------------------------------------------------
# 编解码器
# ---------------------------------------------------------------------------


def _decode_read_bits(function_code: int, pdu: bytes):
    _checked_byte_count(pdu)
    return ReadBitsResponse(function_code, pdu, unpack_bits(pdu[2:]))


def _decode_read_registers(function_code: int, pdu: bytes):
    byte_count = _checked_byte_count(pdu)
    if byte_count % 2:
        raise PduDecodeError(f"寄存器字节数必须为偶数: {byte_count}", pdu)
    registers = struct.unpack(f">{byte_count // 2}H", pdu[2:])
    return ReadRegistersResponse(function_code, pdu, registers)


def _decode_write_single(function_code: int, pdu: bytes):
    _check_length(pdu, 5)
    address, value = struct.unpack(">HH", pdu[1:5])
    return WriteSingleResponse(function_code, pdu, address, value)


def _decode_write_multiple(function_code: int, pdu: bytes):
    _check_length(pdu, 5)
    address, count = struct.unpack(">HH", pdu[1:5])
    return WriteMultipleResponse(function_code, pdu, address, count)


def _checked_byte_count(pdu: bytes) -> int:
    if len(pdu) < 2:
        raise PduDecodeError(f"PDU缺少字节数字段: {len(pdu)}", pdu)
    byte_count = pdu[1]
    _check_length(pdu, 2 + byte_count)
    return byte_count


def _check_length(pdu: bytes, expected: int) -> None:
    if len(pdu) != expected:
        raise PduDecodeError(f"PDU长度错误: 期望={expected}, 实际={len(pdu)}", pdu)


_Decoder = Callable[[int, bytes], ModbusResponse]


class PduCodec:
    """按功能码分派的PDU编解码器"""

    _DECODERS: ClassVar[Dict[FunctionCode, _Decoder]] = {
        FunctionCode.READ_COILS: _decode_read_bits,
        FunctionCode.READ_DISCRETE_INPUTS: _decode_read_bits,
        FunctionCode.READ_HOLDING_REGISTERS: _decode_read_registers,
        FunctionCode.READ_INPUT_REGISTERS: _decode_read_registers,
        FunctionCode.WRITE_SINGLE_COIL: _decode_write_single,
        FunctionCode.WRITE_SINGLE_REGISTER: _decode_write_single,
        FunctionCode.WRITE_MULTIPLE_COILS: _decode_write_multiple,
        FunctionCode.WRITE_MULTIPLE_REGISTERS: _decode_write_multiple,
    }

    def encode(self, request: ModbusRequest) -> bytes:
        """
        将请求编码为PDU

        Args:
            request: 请求对象

        Returns:
            功能码 + 请求数据
        """
        return struct.pack(">B", int(request.function_code)) + request.pack_body()

    def decode(self, function_code: int, pdu: bytes) -> ModbusResponse:
        """
        将响应PDU解码为响应对象

        只检查PDU自身的格式，与请求数量的对应关系由帧处理器检查。

        Args:
            function_code: 请求使用的功能码
            pdu: 地址与CRC之间的字节

        Returns:
            响应对象；从站返回异常时为ExceptionResponse

        Raises:
            PduDecodeError: PDU为空、功能码不符或数据格式错误
        """
        pdu = bytes(pdu)
        if not pdu:
            raise PduDecodeError("PDU为空", pdu)

        received_code = pdu[0]
        if received_code == function_code | EXCEPTION_OFFSET:
            _check_length(pdu, 2)
            return ExceptionResponse(function_code, pdu, pdu[1])
        if received_code != function_code:
            raise PduDecodeError(
                f"功能码不匹配: 期望=0x{function_code:02X}, 实际=0x{received_code:02X}",
                pdu,
            )

        try:
            decoder = self._DECODERS[FunctionCode(function_code)]
        except (ValueError, KeyError):
            raise PduDecodeError(f"不支持的功能码: 0x{function_code:02X}", pdu) from None
        return decoder(function_code, pdu)
