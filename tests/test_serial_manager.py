#!/usr/bin/env python3
"""
串口管理器测试
==============

测试 modbus_rtu_master.core.serial_manager 模块中的串口管理功能。

串口测试涉及硬件设备，这里用mock替换pyserial的serial_for_url和端口枚举。
"""

from unittest.mock import MagicMock, patch

import pytest
import serial

from modbus_rtu_master.config.constants import FlowControl
from modbus_rtu_master.config.settings import MasterConfig
from modbus_rtu_master.core.exceptions import (
    PortConfigurationFailed,
    PortUnavailable,
    ReadTimeout,
    WriteFailed,
)
from modbus_rtu_master.core.serial_manager import SerialManager

KNOWN_PORTS = [{"device": "COM1", "description": "USB-RS485", "hwid": "USB VID:PID=1A86:7523"}]


@pytest.fixture
def known_ports():
    with patch.object(SerialManager, "list_available_ports", return_value=KNOWN_PORTS):
        yield


@pytest.fixture
def mock_port():
    port = MagicMock()
    port.is_open = True
    return port


@pytest.fixture
def opened_manager(known_ports, mock_port):
    """已打开的串口管理器"""
    with patch("serial.serial_for_url", return_value=mock_port):
        manager = SerialManager(MasterConfig(port="COM1", timeout=0.2))
        manager.open()
        yield manager


class TestIdentify:
    """串口识别测试"""

    def test_identify_known_port(self, known_ports):
        assert SerialManager.identify("COM1") == "COM1"

    def test_identify_url(self):
        """pyserial的URL不需要枚举"""
        assert SerialManager.identify("loop://") == "loop://"

    def test_identify_missing_port(self, known_ports):
        with pytest.raises(PortUnavailable) as exc_info:
            SerialManager.identify("/dev/does-not-exist-485")

        assert exc_info.value.port == "/dev/does-not-exist-485"


class TestOpenClose:
    """打开和关闭测试"""

    def test_init(self):
        config = MasterConfig(port="COM1", baudrate=19200)
        manager = SerialManager(config)

        assert manager.config == config
        assert manager.port is None
        assert manager.is_open is False

    def test_open_success(self, known_ports, mock_port):
        config = MasterConfig(port="COM1", timeout=0.2)
        manager = SerialManager(config)

        with patch("serial.serial_for_url", return_value=mock_port) as mock_for_url:
            manager.open()

        mock_for_url.assert_called_once_with(
            "COM1", do_not_open=True, timeout=0.2, exclusive=True
        )
        mock_port.open.assert_called_once()
        assert manager.is_open is True
        assert manager.port is mock_port

    def test_open_failure(self, known_ports, mock_port):
        """端口被占用等情况转换为PortUnavailable"""
        mock_port.open.side_effect = serial.SerialException("Could not exclusively lock port")
        manager = SerialManager(MasterConfig(port="COM1"))

        with patch("serial.serial_for_url", return_value=mock_port):
            with pytest.raises(PortUnavailable) as exc_info:
                manager.open()

        assert isinstance(exc_info.value.__cause__, serial.SerialException)
        assert manager.port is None
        assert manager.is_open is False

    def test_open_unknown_port(self, known_ports):
        manager = SerialManager(MasterConfig(port="/dev/does-not-exist-485"))

        with patch("serial.serial_for_url") as mock_for_url:
            with pytest.raises(PortUnavailable):
                manager.open()

        mock_for_url.assert_not_called()

    def test_open_already_open(self, opened_manager):
        """重复打开不重新创建串口对象"""
        with patch("serial.serial_for_url") as mock_for_url:
            opened_manager.open()

        mock_for_url.assert_not_called()

    def test_close(self, opened_manager, mock_port):
        opened_manager.close()

        mock_port.close.assert_called_once()
        assert opened_manager.port is None

    def test_close_is_idempotent(self, opened_manager, mock_port):
        opened_manager.close()
        opened_manager.close()

        assert mock_port.close.call_count == 1

    def test_close_error_still_releases(self, opened_manager, mock_port):
        mock_port.close.side_effect = serial.SerialException("device removed")

        opened_manager.close()

        assert opened_manager.port is None

    def test_close_when_not_open(self):
        manager = SerialManager(MasterConfig(port="COM1"))

        manager.close()

        assert manager.port is None


class TestConfigure:
    """线路参数配置测试"""

    def test_configure_applies_settings(self, known_ports, mock_port):
        config = MasterConfig(
            port="COM1",
            baudrate=19200,
            parity=serial.PARITY_EVEN,
            flow_control=FlowControl.RTS_CTS,
        )
        manager = SerialManager(config)
        with patch("serial.serial_for_url", return_value=mock_port):
            manager.open()

        manager.configure()

        mock_port.apply_settings.assert_called_once_with(config.to_serial_kwargs())
        settings = mock_port.apply_settings.call_args[0][0]
        assert settings["rtscts"] is True
        assert settings["xonxoff"] is False

    def test_configure_failure(self, opened_manager, mock_port):
        mock_port.apply_settings.side_effect = ValueError("Invalid baud rate")

        with pytest.raises(PortConfigurationFailed):
            opened_manager.configure()

    def test_configure_not_open(self):
        manager = SerialManager(MasterConfig(port="COM1"))

        with pytest.raises(PortConfigurationFailed):
            manager.configure()


class TestReadWrite:
    """读写测试"""

    def test_write_success(self, opened_manager, mock_port):
        mock_port.write.return_value = 8

        opened_manager.write(b"\x01\x03\x00\x00\x00\x0a\xc5\xcd")

        mock_port.write.assert_called_once()
        mock_port.flush.assert_called_once()

    def test_write_incomplete(self, opened_manager, mock_port):
        mock_port.write.return_value = 3

        with pytest.raises(WriteFailed, match="写入不完整"):
            opened_manager.write(b"\x01\x03\x00\x00\x00\x0a\xc5\xcd")

    def test_write_exception(self, opened_manager, mock_port):
        mock_port.write.side_effect = serial.SerialTimeoutException("Write timeout")

        with pytest.raises(WriteFailed):
            opened_manager.write(b"\x01")

    def test_write_not_open(self):
        manager = SerialManager(MasterConfig(port="COM1"))

        with pytest.raises(WriteFailed):
            manager.write(b"\x01")

    def test_read_exact_success(self, opened_manager, mock_port):
        mock_port.read.return_value = b"\x01\x03"

        data = opened_manager.read_exact(2, timeout=0.5)

        assert data == b"\x01\x03"
        mock_port.read.assert_called_once_with(2)
        assert mock_port.timeout == 0.5

    def test_read_exact_uses_config_timeout(self, opened_manager, mock_port):
        mock_port.read.return_value = b"\x01"

        opened_manager.read_exact(1)

        assert mock_port.timeout == 0.2

    def test_read_exact_timeout_keeps_partial(self, opened_manager, mock_port):
        mock_port.read.return_value = b"\x01\x03\x04"

        with pytest.raises(ReadTimeout) as exc_info:
            opened_manager.read_exact(9)

        assert exc_info.value.expected == 9
        assert exc_info.value.received == b"\x01\x03\x04"

    def test_read_exact_no_data(self, opened_manager, mock_port):
        mock_port.read.return_value = b""

        with pytest.raises(ReadTimeout):
            opened_manager.read_exact(2)

    def test_read_exact_serial_error(self, opened_manager, mock_port):
        mock_port.read.side_effect = serial.SerialException("device reports readiness to read but returned no data")

        with pytest.raises(ReadTimeout):
            opened_manager.read_exact(2)

    def test_read_available(self, opened_manager, mock_port):
        mock_port.in_waiting = 3
        mock_port.read.return_value = b"abc"

        assert opened_manager.read_available() == b"abc"
        mock_port.read.assert_called_once_with(3)

    def test_reset_input_buffer(self, opened_manager, mock_port):
        opened_manager.reset_input_buffer()

        mock_port.reset_input_buffer.assert_called_once()

    @pytest.mark.parametrize(
        "error", [serial.SerialException("device disconnected"), OSError(5, "Input/output error")]
    )
    def test_reset_input_buffer_error(self, opened_manager, mock_port, error):
        """设备断开时清空缓冲区失败，转换为WriteFailed"""
        mock_port.reset_input_buffer.side_effect = error

        with pytest.raises(WriteFailed, match="清空输入缓冲区失败") as exc_info:
            opened_manager.reset_input_buffer()

        assert exc_info.value.__cause__ is error


class TestContextManager:
    """上下文管理测试"""

    def test_connection_closes_on_error(self, known_ports, mock_port):
        manager = SerialManager(MasterConfig(port="COM1"))

        with patch("serial.serial_for_url", return_value=mock_port):
            with pytest.raises(RuntimeError):
                with manager.connection():
                    assert manager.is_open
                    raise RuntimeError("boom")

        mock_port.apply_settings.assert_called_once()
        mock_port.close.assert_called_once()
        assert manager.port is None

    def test_with_statement_closes_on_configure_failure(self, known_ports, mock_port):
        mock_port.apply_settings.side_effect = ValueError("Invalid parity")
        manager = SerialManager(MasterConfig(port="COM1"))

        with patch("serial.serial_for_url", return_value=mock_port):
            with pytest.raises(PortConfigurationFailed):
                with manager:
                    pass

        mock_port.close.assert_called_once()


class TestListPorts:
    """串口枚举测试"""

    @patch("serial.tools.list_ports.comports")
    def test_list_available_ports(self, mock_comports):
        info = MagicMock(device="/dev/ttyUSB0", description="", hwid="USB VID:PID=0403:6001")
        mock_comports.return_value = [info]

        ports = SerialManager.list_available_ports()

        assert ports == [
            {"device": "/dev/ttyUSB0", "description": "未知设备", "hwid": "USB VID:PID=0403:6001"}
        ]

    @patch("serial.tools.list_ports.comports", return_value=[])
    def test_print_available_ports_empty(self, mock_comports, capsys):
        SerialManager.print_available_ports()

        assert "没有找到可用的串口" in capsys.readouterr().out
