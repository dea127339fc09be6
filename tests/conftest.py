"""
测试公共夹具
============

提供按脚本响应的串口替身和回显编解码器，避免依赖真实硬件。
"""

import struct

import pytest

from modbus_rtu_master.config.settings import MasterConfig
from modbus_rtu_master.core.checksum import crc16
from modbus_rtu_master.core.exceptions import PortUnavailable, ReadTimeout
from modbus_rtu_master.core.pdu import ModbusResponse, PduCodec


def with_crc(body: bytes) -> bytes:
    """在地址+PDU后追加CRC，构造一帧合法的响应"""
    return body + struct.pack(">H", crc16(body))


class EchoCodec:
    """请求和响应PDU对称的编解码器，响应中原样保留PDU"""

    def __init__(self):
        self._codec = PduCodec()

    def encode(self, request):
        return self._codec.encode(request)

    def decode(self, function_code, pdu):
        return ModbusResponse(function_code, bytes(pdu))


class FakeTransport:
    """按脚本响应的串口替身，同一串口同时只能被一个会话占用"""

    owned_ports = set()

    def __init__(
        self,
        config,
        reply=b"",
        open_error=None,
        configure_error=None,
        write_error=None,
    ):
        self.config = config
        self.reply = bytearray(reply)
        self.open_error = open_error
        self.configure_error = configure_error
        self.write_error = write_error
        self.written = bytearray()
        self.calls = []
        self.is_open = False

    def open(self):
        self.calls.append("open")
        if self.open_error is not None:
            raise self.open_error
        if self.config.port in FakeTransport.owned_ports:
            raise PortUnavailable(f"串口 {self.config.port} 已被占用", self.config.port)
        FakeTransport.owned_ports.add(self.config.port)
        self.is_open = True

    def configure(self):
        self.calls.append("configure")
        if self.configure_error is not None:
            raise self.configure_error

    def reset_input_buffer(self):
        self.calls.append("reset")

    def write(self, data):
        self.calls.append("write")
        if self.write_error is not None:
            raise self.write_error
        self.written += data

    def read_exact(self, size, timeout=None):
        self.calls.append(("read", size))
        chunk = bytes(self.reply[:size])
        del self.reply[:size]
        if len(chunk) < size:
            raise ReadTimeout("读取超时", self.config.port, size, chunk)
        return chunk

    def close(self):
        self.calls.append("close")
        if self.is_open:
            FakeTransport.owned_ports.discard(self.config.port)
        self.is_open = False


@pytest.fixture
def config():
    """不等待帧间静默的测试配置"""
    return MasterConfig(port="COM1", timeout=0.05, inter_frame_delay=0)


@pytest.fixture
def transport_factory():
    """
    创建串口替身工厂

    用法: factory = transport_factory(reply=...)；factory.created保存已创建的会话
    """
    created = []

    def make(**script):
        def factory(cfg):
            transport = FakeTransport(cfg, **script)
            created.append(transport)
            return transport

        factory.created = created
        return factory

    yield make
    FakeTransport.owned_ports.clear()
