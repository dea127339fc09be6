"""
串口管理模块
============

提供主站使用的串口传输接口：识别、独占打开、参数配置、读写与关闭。
pyserial的异常在这里统一转换为传输层错误。
"""

import os
import serial
from serial.tools import list_ports
from typing import List, Optional, Dict
from contextlib import contextmanager

from ..config.settings import MasterConfig
from ..utils.logger import format_frame, get_logger
from .exceptions import (
    PortConfigurationFailed,
    PortUnavailable,
    ReadTimeout,
    WriteFailed,
)

logger = get_logger(__name__)


class SerialManager:
    """串口管理器，一个实例对应一次会话"""

    def __init__(self, config: MasterConfig):
        """
        初始化串口管理器

        Args:
            config: 主站配置对象
        """
        self.config = config
        self._port: Optional[serial.SerialBase] = None

    @property
    def port(self) -> Optional[serial.SerialBase]:
        """获取串口对象"""
        return self._port

    @property
    def is_open(self) -> bool:
        """检查串口是否已打开"""
        return self._port is not None and self._port.is_open

    @staticmethod
    def identify(port_name: str) -> str:
        """
        确认串口存在

        支持系统枚举到的串口、存在的设备节点以及pyserial的URL（如loop://）。

        Args:
            port_name: 串口号

        Returns:
            可用于打开的串口名

        Raises:
            PortUnavailable: 找不到该串口
        """
        if "://" in port_name:
            return port_name
        devices = {info["device"] for info in SerialManager.list_available_ports()}
        if port_name in devices or os.path.exists(port_name):
            return port_name
        raise PortUnavailable(f"找不到串口 {port_name}", port_name)

    def open(self) -> None:
        """
        独占打开串口

        Raises:
            PortUnavailable: 串口不存在、已被占用或打开失败
        """
        if self.is_open:
            logger.warning(f"串口 {self.config.port} 已经打开")
            return

        port_name = self.identify(self.config.port)
        try:
            port = serial.serial_for_url(
                port_name,
                do_not_open=True,
                timeout=self.config.timeout,
                exclusive=self.config.exclusive,
            )
            port.open()
        except (serial.SerialException, OSError, ValueError) as e:
            logger.error(f"打开串口失败: {e}")
            self._port = None
            raise PortUnavailable(f"无法打开串口 {port_name}: {e}", port_name) from e

        self._port = port
        logger.info(f"成功打开串口 {port_name}")

    def configure(self) -> None:
        """
        设置线路参数和流控

        Raises:
            PortConfigurationFailed: 串口未打开或参数无法应用
        """
        if not self.is_open:
            raise PortConfigurationFailed("串口未打开，无法设置参数", self.config.port)
        try:
            self._port.apply_settings(self.config.to_serial_kwargs())
        except (serial.SerialException, OSError, ValueError) as e:
            logger.error(f"设置串口参数失败: {e}")
            raise PortConfigurationFailed(
                f"无法设置串口 {self.config.port} 参数: {e}", self.config.port
            ) from e
        logger.debug(
            f"串口参数: {self.config.baudrate} {self.config.bytesize}"
            f"{self.config.parity}{self.config.stopbits}, "
            f"流控={self.config.flow_control.value}"
        )

    def write(self, data: bytes) -> None:
        """
        向串口写入全部数据

        Raises:
            WriteFailed: 串口未打开、写入异常或未写完
        """
        if not self.is_open:
            raise WriteFailed("串口未打开，无法写入数据", self.config.port)
        try:
            bytes_written = self._port.write(data)
            self._port.flush()
        except (serial.SerialException, OSError) as e:
            logger.error(f"写入数据失败: {e}")
            raise WriteFailed(f"写入数据失败: {e}", self.config.port) from e

        if bytes_written is not None and bytes_written != len(data):
            logger.error(f"写入不完整: {bytes_written}/{len(data)}")
            raise WriteFailed(
                f"写入不完整: {bytes_written}/{len(data)}", self.config.port
            )
        logger.debug(f"发送: {format_frame(data)}")

    def read_exact(self, size: int, timeout: Optional[float] = None) -> bytes:
        """
        在超时时间内读取指定长度的数据

        Args:
            size: 要读取的字节数
            timeout: 超时时间(秒)，默认使用配置值

        Returns:
            长度为size的数据

        Raises:
            ReadTimeout: 超时前未读够数据，已收到的部分保存在异常中
        """
        if not self.is_open:
            raise ReadTimeout("串口未打开，无法读取数据", self.config.port, size)

        timeout = self.config.timeout if timeout is None else max(timeout, 0)
        try:
            # serial.read在读满size或超时后返回
            if self._port.timeout != timeout:
                self._port.timeout = timeout
            received = self._port.read(size)
        except (serial.SerialException, OSError) as e:
            logger.error(f"读取数据失败: {e}")
            raise ReadTimeout(f"读取数据失败: {e}", self.config.port, size) from e

        if len(received) < size:
            logger.error(f"读取超时: 期望{size}字节, 收到{len(received)}字节")
            raise ReadTimeout(
                f"读取超时: 期望{size}字节, 收到{len(received)}字节",
                self.config.port,
                size,
                bytes(received),
            )
        logger.debug(f"接收: {format_frame(received)}")
        return bytes(received)

    def read_available(self) -> bytes:
        """读取输入缓冲区中已有的全部数据，不等待"""
        if not self.is_open:
            return b""
        try:
            waiting = self._port.in_waiting
            return self._port.read(waiting) if waiting else b""
        except (serial.SerialException, OSError) as e:
            logger.error(f"读取数据失败: {e}")
            raise ReadTimeout(f"读取数据失败: {e}", self.config.port) from e

    def reset_input_buffer(self) -> None:
        """
        丢弃输入缓冲区中的残留数据

        Raises:
            WriteFailed: 串口在发送前已不可用
        """
        if not self.is_open:
            return
        try:
            self._port.reset_input_buffer()
        except (serial.SerialException, OSError) as e:
            logger.error(f"清空输入缓冲区失败: {e}")
            raise WriteFailed(f"清空输入缓冲区失败: {e}", self.config.port) from e

    def close(self) -> None:
        """关闭串口连接，可重复调用"""
        try:
            if self._port is not None and self._port.is_open:
                self._port.close()
                logger.info(f"已关闭串口 {self.config.port}")
        except (serial.SerialException, OSError) as e:
            logger.error(f"关闭串口失败: {e}")
        finally:
            self._port = None

    @contextmanager
    def connection(self):
        """
        上下文管理器，自动打开、配置和关闭串口

        Examples:
            >>> config = MasterConfig(port='COM1')
            >>> manager = SerialManager(config)
            >>> with manager.connection():
            ...     manager.write(frame)
        """
        try:
            self.open()
            self.configure()
            yield self
        finally:
            self.close()

    @staticmethod
    def list_available_ports() -> List[Dict[str, str]]:
        """
        获取系统可用的串口列表

        Returns:
            串口信息列表，每个元素包含device、description等字段
        """
        ports = []
        for port_info in list_ports.comports():
            ports.append(
                {
                    "device": port_info.device,
                    "description": port_info.description or "未知设备",
                    "hwid": port_info.hwid or "未知硬件ID",
                }
            )
        return ports

    @staticmethod
    def print_available_ports() -> None:
        """打印系统可用的串口信息"""
        ports = SerialManager.list_available_ports()

        if not ports:
            print("没有找到可用的串口。")
            return

        print("可用的串口：")
        for port in ports:
            print(f"  {port['device']} - {port['description']}")

    def __enter__(self):
        """支持with语句"""
        self.open()
        try:
            self.configure()
        except PortConfigurationFailed:
            self.close()
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """支持with语句"""
        self.close()
