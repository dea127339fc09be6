"""
校验算法模块
============

提供Modbus RTU使用的CRC16校验算法。
"""

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]

CRC16_INIT = 0xFFFF
CRC16_POLYNOMIAL = 0xA001


def calculate_crc16_modbus(data: BytesLike) -> int:
    """
    计算CRC16校验码（Modbus格式）

    返回未交换高低字节的累加器值，其低字节是线上先发送的字节。

    Args:
        data: 需要计算CRC的字节数据

    Returns:
        CRC16累加器值

    Raises:
        TypeError: 当输入不是字节类型时抛出

    Examples:
        >>> hex(calculate_crc16_modbus(b'\\x01\\x03\\x00\\x00\\x00\\x0a'))
        '0xcdc5'
    """
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError("输入数据必须是bytes类型")

    crc = CRC16_INIT
    for byte in bytes(data):
        crc ^= byte
        for _ in range(8):
            if crc & 0x0001:
                crc = (crc >> 1) ^ CRC16_POLYNOMIAL
            else:
                crc >>= 1

    return crc & 0xFFFF


def crc16(data: BytesLike) -> int:
    """
    计算Modbus帧尾部的CRC16值

    在累加器结果上交换高低字节，按大端写入即为线上顺序（低字节在前）。

    Args:
        data: 帧中除CRC外的全部字节（地址 + PDU）

    Returns:
        交换高低字节后的16位CRC

    Examples:
        >>> hex(crc16(b'\\x01\\x03\\x00\\x00\\x00\\x0a'))
        '0xc5cd'
    """
    crc = calculate_crc16_modbus(data)
    low_byte = crc & 0xFF
    return (low_byte << 8) | (crc >> 8)
