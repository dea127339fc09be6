"""
主站命令行接口
==============

把命令行参数转换为请求，执行一次交换并打印结果。
"""

import argparse
from typing import List, Optional

from ..config.constants import FlowControl
from ..config.settings import MasterConfig
from ..core.frame_handler import validate_slave_address
from ..core.master import ExchangeOutcome, ModbusRtuMaster
from ..core.pdu import (
    ExceptionResponse,
    ModbusRequest,
    ModbusResponse,
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
)
from ..core.serial_manager import SerialManager
from ..utils.logger import format_frame, get_logger

logger = get_logger(__name__)


def parse_int(text: str) -> int:
    """解析十进制或0x开头的十六进制整数"""
    try:
        return int(text, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"无效的整数: {text}") from None


def parse_bool(text: str) -> bool:
    """解析线圈值: on/off、1/0、true/false"""
    value = text.strip().lower()
    if value in ("1", "on", "true"):
        return True
    if value in ("0", "off", "false"):
        return False
    raise argparse.ArgumentTypeError(f"无效的线圈值: {text}")


def parse_int_list(text: str) -> List[int]:
    return [parse_int(item) for item in text.split(",") if item.strip()]


def parse_bool_list(text: str) -> List[bool]:
    return [parse_bool(item) for item in text.split(",") if item.strip()]


class ModbusCLI:
    """主站命令行接口"""

    @staticmethod
    def show_available_ports() -> None:
        """显示可用的串口"""
        SerialManager.print_available_ports()

    @staticmethod
    def build_config(args: argparse.Namespace) -> MasterConfig:
        """根据命令行参数创建主站配置"""
        return MasterConfig(
            port=args.port,
            baudrate=args.baudrate,
            bytesize=args.bytesize,
            parity=args.parity,
            stopbits=args.stopbits,
            timeout=args.timeout,
            flow_control=FlowControl(args.flow_control),
            strict_address=not args.no_strict_address,
        )

    @staticmethod
    def build_request(args: argparse.Namespace) -> ModbusRequest:
        """根据子命令创建请求"""
        command = args.command
        if command == "read-coils":
            return ReadCoilsRequest(args.address, args.count)
        if command == "read-discrete-inputs":
            return ReadDiscreteInputsRequest(args.address, args.count)
        if command == "read-holding":
            return ReadHoldingRegistersRequest(args.address, args.count)
        if command == "read-input":
            return ReadInputRegistersRequest(args.address, args.count)
        if command == "write-coil":
            return WriteSingleCoilRequest(args.address, args.value)
        if command == "write-register":
            return WriteSingleRegisterRequest(args.address, args.value)
        if command == "write-coils":
            return WriteMultipleCoilsRequest(args.address, tuple(args.values))
        if command == "write-registers":
            return WriteMultipleRegistersRequest(args.address, tuple(args.values))
        raise ValueError(f"未知命令: {command}")

    @staticmethod
    def format_response(response: Optional[ModbusResponse], start: int = 0) -> List[str]:
        """把响应转换为可打印的行"""
        if response is None:
            return ["广播请求已发送，无响应"]
        if isinstance(response, ExceptionResponse):
            return [
                f"从站异常: 0x{response.exception_code:02X} ({response.exception_name})"
            ]
        if isinstance(response, ReadBitsResponse):
            return [
                f"  {start + i}: {'ON' if bit else 'OFF'}"
                for i, bit in enumerate(response.bits)
            ]
        if isinstance(response, ReadRegistersResponse):
            return [
                f"  {start + i}: {value} (0x{value:04X})"
                for i, value in enumerate(response.registers)
            ]
        if isinstance(response, WriteSingleResponse):
            return [f"已写入: 地址={response.address}, 值=0x{response.value:04X}"]
        if isinstance(response, WriteMultipleResponse):
            return [f"已写入: 起始地址={response.address}, 数量={response.quantity}"]
        return [f"PDU: {format_frame(response.pdu)}"]

    @staticmethod
    def run(args: argparse.Namespace) -> bool:
        """
        执行一次命令

        Returns:
            成功返回True，失败返回False
        """
        if args.command == "ports":
            ModbusCLI.show_available_ports()
            return True

        try:
            config = ModbusCLI.build_config(args)
            request = ModbusCLI.build_request(args)
            validate_slave_address(args.slave)
        except ValueError as e:
            print(f"❌ 参数错误: {e}")
            return False

        master = ModbusRtuMaster(config)
        outcome: ExchangeOutcome = master.send_request(request, args.slave)

        if outcome.request_frame:
            print(f"发送: {format_frame(outcome.request_frame)}")
        if outcome.reply_frame:
            print(f"接收: {format_frame(outcome.reply_frame)}")

        if not outcome.ok:
            print(f"❌ {type(outcome.error).__name__}: {outcome.error}")
            return False

        for line in ModbusCLI.format_response(outcome.response, request.address):
            print(line)
        return outcome.response is None or not outcome.response.is_exception
