"""
数据帧处理模块
==============

负责Modbus RTU数据帧的封装和解析。

数据帧格式：| 从站地址(1B) | PDU(NB) | CRC16(2B, 低字节在前) |
"""

import struct
from dataclasses import dataclass, replace
from typing import Optional

from ..config.constants import (
    BROADCAST_ADDRESS,
    EXCEPTION_OFFSET,
    FRAME_ADDRESS_FORMAT,
    FRAME_ADDRESS_SIZE,
    FRAME_CRC_FORMAT,
    FRAME_CRC_SIZE,
    FRAME_FORMAT_SIZE,
    MAX_FRAME_SIZE,
    MAX_SLAVE_ADDRESS,
    MIN_FRAME_SIZE,
    PDU_SIZE_POLICY,
    FunctionCode,
)
from .checksum import crc16
from .exceptions import (
    CrcMismatch,
    FrameTooShort,
    PduDecodeError,
    UnexpectedSlaveAddress,
)
from .pdu import (
    ModbusRequest,
    ModbusResponse,
    PduCodec,
    ReadBitsResponse,
    WriteMultipleResponse,
)
from ..utils.logger import format_frame, get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecodedFrame:
    """解析后的响应帧"""

    slave_address: int
    function_code: int
    pdu: bytes
    crc: int
    response: ModbusResponse


def validate_slave_address(slave_address: int) -> None:
    """检查从站地址，0为广播地址"""
    if not isinstance(slave_address, int) or not (
        BROADCAST_ADDRESS <= slave_address <= MAX_SLAVE_ADDRESS
    ):
        raise ValueError(
            f"从站地址必须在 {BROADCAST_ADDRESS} 到 {MAX_SLAVE_ADDRESS} 之间: {slave_address}"
        )


def expected_frame_length(request: ModbusRequest) -> int:
    """正常响应帧的总长度: 地址 + 响应PDU + CRC"""
    return FRAME_FORMAT_SIZE + request.expected_response_length()


class RtuFrameHandler:
    """RTU数据帧处理器"""

    def __init__(self, codec: Optional[PduCodec] = None, strict_address: bool = True):
        """
        初始化帧处理器

        Args:
            codec: PDU编解码器，默认使用PduCodec
            strict_address: 是否要求响应地址与请求地址一致
        """
        self.codec = codec if codec is not None else PduCodec()
        self.strict_address = strict_address

    def encode(self, slave_address: int, request: ModbusRequest) -> bytes:
        """
        将请求打包成RTU数据帧

        Args:
            slave_address: 目标从站地址
            request: 请求对象

        Returns:
            可直接发送的完整数据帧

        Raises:
            ValueError: 从站地址超出范围，或PDU长度与功能码规则不符

        Examples:
            >>> handler = RtuFrameHandler()
            >>> handler.encode(1, ReadHoldingRegistersRequest(0, 10)).hex()
            '01030000000ac5cd'
        """
        validate_slave_address(slave_address)
        pdu = self.codec.encode(request)
        self._check_pdu_size(request, pdu)

        # 缓冲区长度按实际编码的PDU计算
        buffer = bytearray(FRAME_ADDRESS_SIZE + len(pdu) + FRAME_CRC_SIZE)
        struct.pack_into(FRAME_ADDRESS_FORMAT, buffer, 0, slave_address)
        buffer[FRAME_ADDRESS_SIZE : FRAME_ADDRESS_SIZE + len(pdu)] = pdu

        crc = crc16(buffer[:-FRAME_CRC_SIZE])
        struct.pack_into(FRAME_CRC_FORMAT, buffer, len(buffer) - FRAME_CRC_SIZE, crc)

        if len(buffer) > MAX_FRAME_SIZE:
            raise ValueError(f"数据帧超过最大长度: {len(buffer)} > {MAX_FRAME_SIZE}")

        logger.debug(
            f"打包请求帧: 从站={slave_address}, 功能码={request.function_code:#04x}, "
            f"帧={format_frame(buffer)}"
        )
        return bytes(buffer)

    def decode(
        self,
        expected_slave_address: int,
        raw: bytes,
        request: Optional[ModbusRequest] = None,
    ) -> DecodedFrame:
        """
        校验并解析响应数据帧

        依次检查帧长度、CRC、从站地址，再交给PDU编解码器。

        Args:
            expected_slave_address: 请求发往的从站地址
            raw: 从串口读取的原始字节
            request: 对应的请求，用于确定功能码和数据数量；为空时取帧中的功能码

        Returns:
            DecodedFrame

        Raises:
            FrameTooShort: 少于4字节
            CrcMismatch: CRC校验失败
            UnexpectedSlaveAddress: 严格模式下地址不一致
            PduDecodeError: PDU无法解析
        """
        raw = bytes(raw)
        if len(raw) < MIN_FRAME_SIZE:
            raise FrameTooShort(len(raw), MIN_FRAME_SIZE)

        body = raw[:-FRAME_CRC_SIZE]
        (received_crc,) = struct.unpack(FRAME_CRC_FORMAT, raw[-FRAME_CRC_SIZE:])
        calculated_crc = crc16(body)
        if received_crc != calculated_crc:
            raise CrcMismatch(received_crc, calculated_crc)

        (slave_address,) = struct.unpack_from(FRAME_ADDRESS_FORMAT, raw, 0)
        if self.strict_address and slave_address != expected_slave_address:
            raise UnexpectedSlaveAddress(expected_slave_address, slave_address)

        pdu = body[FRAME_ADDRESS_SIZE:]
        if request is not None:
            function_code = int(request.function_code)
            is_exception = pdu[0] == function_code | EXCEPTION_OFFSET
            if not is_exception and len(pdu) != request.expected_response_length():
                raise PduDecodeError(
                    f"响应长度与请求不符: 期望={request.expected_response_length()}, "
                    f"实际={len(pdu)}",
                    pdu,
                )
        else:
            function_code = pdu[0] & ~EXCEPTION_OFFSET & 0xFF

        try:
            response = self.codec.decode(function_code, pdu)
        except PduDecodeError:
            raise
        except (ValueError, IndexError, struct.error) as e:
            raise PduDecodeError(f"解析PDU失败: {e}", pdu) from e

        if request is not None:
            response = self._match_request(request, response)

        logger.debug(f"解析响应帧: 从站={slave_address}, 帧={format_frame(raw)}")
        return DecodedFrame(slave_address, pdu[0], pdu, received_crc, response)

    @staticmethod
    def _match_request(request: ModbusRequest, response: ModbusResponse) -> ModbusResponse:
        """按请求数量截取线圈值，并检查批量写入的回显数量"""
        if isinstance(response, ReadBitsResponse):
            return replace(response, bits=response.bits[: request.item_count])
        if (
            isinstance(response, WriteMultipleResponse)
            and response.quantity != request.item_count
        ):
            raise PduDecodeError(
                f"写入数量不符: 期望={request.item_count}, 实际={response.quantity}",
                response.pdu,
            )
        return response

    @staticmethod
    def _check_pdu_size(request: ModbusRequest, pdu: bytes) -> None:
        try:
            policy = PDU_SIZE_POLICY[FunctionCode(request.function_code)]
        except (ValueError, KeyError):
            # 未登记的功能码直接使用编码结果
            return
        expected = policy.pdu_length(request.item_count)
        if len(pdu) != expected:
            raise ValueError(
                f"PDU长度与功能码规则不符: 功能码={request.function_code:#04x}, "
                f"期望={expected}, 实际={len(pdu)}"
            )
