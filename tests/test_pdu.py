"""
PDU编解码测试
=============

测试请求的编码、参数校验以及各功能码响应的解码。
"""

import pytest

from modbus_rtu_master.config.constants import ExceptionCode, FunctionCode
from modbus_rtu_master.core.exceptions import PduDecodeError
from modbus_rtu_master.core.pdu import (
    ExceptionResponse,
    PduCodec,
    ReadBitsResponse,
    ReadCoilsRequest,
    ReadDiscreteInputsRequest,
    ReadHoldingRegistersRequest,
    ReadInputRegistersRequest,
    ReadRegistersResponse,
    WriteMultipleCoilsRequest,
    WriteMultipleRegistersRequest,
    WriteMultipleResponse,
    WriteSingleCoilRequest,
    WriteSingleRegisterRequest,
    WriteSingleResponse,
    pack_bits,
    unpack_bits,
)


@pytest.fixture
def codec():
    return PduCodec()


class TestBitPacking:
    """线圈打包测试"""

    def test_pack_bits_lsb_first(self):
        """低位在前，不足8位补0"""
        assert pack_bits([True, False, True]) == b"\x05"
        assert pack_bits([True] * 8 + [False, True]) == b"\xff\x02"

    def test_pack_bits_17_coils_uses_3_bytes(self):
        assert len(pack_bits([True] * 17)) == 3

    def test_unpack_bits_truncates_to_count(self):
        assert unpack_bits(b"\x05", 3) == (True, False, True)
        assert len(unpack_bits(b"\xff\x01")) == 16


class TestRequestEncoding:
    """请求编码测试"""

    @pytest.mark.parametrize(
        "request_obj,expected",
        [
            (ReadCoilsRequest(0x0013, 0x25), "0100130025"),
            (ReadDiscreteInputsRequest(0x00C4, 0x16), "0200c40016"),
            (ReadHoldingRegistersRequest(0x006B, 3), "03006b0003"),
            (ReadInputRegistersRequest(0x0008, 1), "0400080001"),
            (WriteSingleCoilRequest(0x00AC, True), "0500acff00"),
            (WriteSingleCoilRequest(0x00AC, False), "0500ac0000"),
            (WriteSingleRegisterRequest(0x0001, 0x0003), "0600010003"),
        ],
    )
    def test_fixed_size_requests(self, codec, request_obj, expected):
        """定长请求的编码与Modbus规范示例一致"""
        assert codec.encode(request_obj).hex() == expected

    def test_write_multiple_coils(self, codec):
        """规范示例: 从地址19写10个线圈 CD 01"""
        values = [True, False, True, True, False, False, True, True, True, False]
        request = WriteMultipleCoilsRequest(0x0013, values)

        assert codec.encode(request).hex() == "0f0013000a02cd01"
        assert request.item_count == 10
        assert isinstance(request.values, tuple)

    def test_write_multiple_registers(self, codec):
        request = WriteMultipleRegistersRequest(0x0001, [0x000A, 0x0102])

        assert codec.encode(request).hex() == "100001000204000a0102"

    def test_expected_response_length(self):
        """正常响应PDU长度"""
        assert ReadCoilsRequest(0, 17).expected_response_length() == 2 + 3
        assert ReadHoldingRegistersRequest(0, 10).expected_response_length() == 2 + 20
        assert WriteSingleRegisterRequest(0, 1).expected_response_length() == 5
        assert WriteMultipleCoilsRequest(0, [True] * 17).expected_response_length() == 5

    def test_requests_are_immutable(self):
        request = ReadHoldingRegistersRequest(0, 1)

        with pytest.raises(AttributeError):
            request.count = 2  # type: ignore[misc]


class TestRequestValidation:
    """请求参数校验测试"""

    @pytest.mark.parametrize(
        "factory",
        [
            lambda: ReadCoilsRequest(-1, 1),
            lambda: ReadCoilsRequest(0x10000, 1),
            lambda: ReadCoilsRequest(0, 0),
            lambda: ReadCoilsRequest(0, 2001),
            lambda: ReadHoldingRegistersRequest(0, 126),
            lambda: ReadHoldingRegistersRequest(0xFFFF, 2),
            lambda: WriteSingleRegisterRequest(0, 0x10000),
            lambda: WriteMultipleCoilsRequest(0, []),
            lambda: WriteMultipleCoilsRequest(0, [True] * 1969),
            lambda: WriteMultipleRegistersRequest(0, [1] * 124),
            lambda: WriteMultipleRegistersRequest(0, [-1]),
        ],
    )
    def test_invalid_requests_rejected(self, factory):
        with pytest.raises(ValueError):
            factory()

    def test_non_integer_address_rejected(self):
        with pytest.raises(ValueError, match="address必须是整数"):
            ReadCoilsRequest("1", 1)  # type: ignore[arg-type]


class TestResponseDecoding:
    """响应解码测试"""

    def test_decode_read_coils(self, codec):
        """规范示例: 读19-55号线圈"""
        pdu = bytes.fromhex("0105cd6bb20e1b")

        response = codec.decode(FunctionCode.READ_COILS, pdu)

        assert isinstance(response, ReadBitsResponse)
        assert len(response.bits) == 40
        assert response.bits[:8] == (True, False, True, True, False, False, True, True)
        assert response.pdu == pdu

    def test_decode_read_registers(self, codec):
        pdu = bytes.fromhex("0306022b00000064")

        response = codec.decode(FunctionCode.READ_HOLDING_REGISTERS, pdu)

        assert isinstance(response, ReadRegistersResponse)
        assert response.registers == (0x022B, 0x0000, 0x0064)

    def test_decode_write_single(self, codec):
        response = codec.decode(FunctionCode.WRITE_SINGLE_REGISTER, bytes.fromhex("0600010003"))

        assert isinstance(response, WriteSingleResponse)
        assert (response.address, response.value) == (1, 3)

    def test_decode_write_multiple(self, codec):
        response = codec.decode(
            FunctionCode.WRITE_MULTIPLE_COILS, bytes.fromhex("0f0013000a")
        )

        assert isinstance(response, WriteMultipleResponse)
        assert (response.address, response.quantity) == (0x13, 10)

    def test_decode_exception_response(self, codec):
        response = codec.decode(FunctionCode.READ_INPUT_REGISTERS, b"\x84\x02")

        assert isinstance(response, ExceptionResponse)
        assert response.is_exception is True
        assert response.function_code == FunctionCode.READ_INPUT_REGISTERS
        assert response.exception_code == ExceptionCode.ILLEGAL_DATA_ADDRESS
        assert response.exception_name == "ILLEGAL_DATA_ADDRESS"

    def test_unknown_exception_code_name(self, codec):
        response = codec.decode(FunctionCode.READ_COILS, b"\x81\x7f")

        assert response.exception_name == "UNKNOWN_0x7F"

    @pytest.mark.parametrize(
        "function_code,pdu",
        [
            (FunctionCode.READ_HOLDING_REGISTERS, b""),  # 空PDU
            (FunctionCode.READ_HOLDING_REGISTERS, b"\x04\x02\x00\x01"),  # 功能码不符
            (FunctionCode.READ_HOLDING_REGISTERS, b"\x03"),  # 缺少字节数
            (FunctionCode.READ_HOLDING_REGISTERS, b"\x03\x04\x00\x01"),  # 数据不足
            (FunctionCode.READ_HOLDING_REGISTERS, b"\x03\x03\x00\x01\x02"),  # 奇数字节
            (FunctionCode.WRITE_SINGLE_COIL, b"\x05\x00\xac\xff"),  # 长度错误
            (FunctionCode.READ_COILS, b"\x81\x02\x00"),  # 异常响应长度错误
            (0x2B, b"\x2b\x0e"),  # 不支持的功能码
        ],
    )
    def test_malformed_pdu_raises(self, codec, function_code, pdu):
        with pytest.raises(PduDecodeError):
            codec.decode(function_code, pdu)

    def test_decode_error_keeps_pdu(self, codec):
        with pytest.raises(PduDecodeError) as exc_info:
            codec.decode(FunctionCode.READ_HOLDING_REGISTERS, b"\x03\x04\x00\x01")

        assert exc_info.value.pdu == b"\x03\x04\x00\x01"
