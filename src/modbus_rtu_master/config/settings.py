"""
配置管理
========

提供Modbus RTU主站的串口配置类。
"""

from dataclasses import dataclass
from typing import Optional
import serial

from .constants import (
    DEFAULT_BAUDRATE,
    DEFAULT_TIMEOUT,
    FlowControl,
    calculate_frame_silence,
)


@dataclass(frozen=True)
class MasterConfig:
    """主站配置类，每次交换期间不可修改"""

    port: str  # 串口号或pyserial URL
    baudrate: int = DEFAULT_BAUDRATE  # 波特率
    bytesize: int = serial.EIGHTBITS  # 数据位
    parity: str = serial.PARITY_NONE  # 校验位
    stopbits: float = serial.STOPBITS_ONE  # 停止位
    timeout: float = DEFAULT_TIMEOUT  # 读超时时间(秒)
    flow_control: FlowControl = FlowControl.NONE  # 流控模式
    exclusive: bool = True  # 独占打开串口
    strict_address: bool = True  # 校验响应的从站地址
    inter_frame_delay: Optional[float] = None  # 覆盖默认的帧间静默时间(秒)

    def __post_init__(self):
        """参数验证"""
        if not self.port:
            raise ValueError("port不能为空")
        if self.baudrate <= 0:
            raise ValueError("baudrate必须大于0")
        if self.bytesize not in serial.Serial.BYTESIZES:
            raise ValueError(f"不支持的数据位: {self.bytesize}")
        if self.parity not in serial.Serial.PARITIES:
            raise ValueError(f"不支持的校验位: {self.parity}")
        if self.stopbits not in serial.Serial.STOPBITS:
            raise ValueError(f"不支持的停止位: {self.stopbits}")
        if self.timeout <= 0:
            raise ValueError("timeout必须大于0")
        if self.inter_frame_delay is not None and self.inter_frame_delay < 0:
            raise ValueError("inter_frame_delay不能为负数")
        # 允许直接传入字符串形式的流控模式
        object.__setattr__(self, "flow_control", FlowControl(self.flow_control))

    @property
    def frame_silence(self) -> float:
        """帧间静默时间(秒)"""
        if self.inter_frame_delay is not None:
            return self.inter_frame_delay
        return calculate_frame_silence(self.baudrate)

    def flow_control_kwargs(self) -> dict:
        """流控模式转换为serial.Serial的开关参数"""
        return {
            "rtscts": self.flow_control is FlowControl.RTS_CTS,
            "xonxoff": self.flow_control is FlowControl.XON_XOFF,
            "dsrdtr": self.flow_control is FlowControl.DSR_DTR,
        }

    def to_serial_kwargs(self) -> dict:
        """转换为serial.Serial的参数字典"""
        kwargs = {
            "baudrate": self.baudrate,
            "bytesize": self.bytesize,
            "parity": self.parity,
            "stopbits": self.stopbits,
            "timeout": self.timeout,
            "write_timeout": self.timeout,
        }
        kwargs.update(self.flow_control_kwargs())
        return kwargs
