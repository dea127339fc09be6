#!/usr/bin/env python3
"""
Modbus RTU主站 - 模块CLI入口
============================

支持通过 python -m modbus_rtu_master 调用
"""

import sys
import argparse
import logging

import serial

from . import __version__
from .cli.modbus_cli import ModbusCLI, parse_bool, parse_bool_list, parse_int, parse_int_list
from .config.constants import (
    DEFAULT_BAUDRATE,
    DEFAULT_SLAVE_ADDRESS,
    DEFAULT_TIMEOUT,
    FlowControl,
)
from .utils.logger import get_logger, set_level

logger = get_logger(__name__)

PROGRAM_NAME = "Modbus RTU主站"


def _add_serial_arguments(parser: argparse.ArgumentParser) -> None:
    """添加串口和从站相关的公共参数"""
    parser.add_argument("--port", required=True, help="串口号（如 COM1, /dev/ttyUSB0, loop://）")
    parser.add_argument("--slave", type=parse_int, default=DEFAULT_SLAVE_ADDRESS, help="从站地址（默认1，0为广播）")
    parser.add_argument("--baudrate", type=int, default=DEFAULT_BAUDRATE, help=f"波特率（默认{DEFAULT_BAUDRATE}）")
    parser.add_argument("--bytesize", type=int, default=serial.EIGHTBITS, choices=[5, 6, 7, 8], help="数据位（默认8）")
    parser.add_argument("--parity", default=serial.PARITY_NONE, choices=["N", "E", "O", "M", "S"], help="校验位（默认N）")
    parser.add_argument("--stopbits", type=float, default=serial.STOPBITS_ONE, choices=[1, 1.5, 2], help="停止位（默认1）")
    parser.add_argument("--timeout", type=float, default=DEFAULT_TIMEOUT, help=f"读超时秒数（默认{DEFAULT_TIMEOUT}）")
    parser.add_argument(
        "--flow-control",
        default=FlowControl.NONE.value,
        choices=[mode.value for mode in FlowControl],
        help="流控模式（默认none）",
    )
    parser.add_argument("--no-strict-address", action="store_true", help="不校验响应的从站地址")
    parser.add_argument("--verbose", "-v", action="store_true", help="输出调试日志")


def create_parser():
    """创建命令行参数解析器"""
    parser = argparse.ArgumentParser(
        prog="modbus_rtu_master",
        description=f"{PROGRAM_NAME} v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
使用示例：
  # 读取保持寄存器
  python -m modbus_rtu_master read-holding --port /dev/ttyUSB0 --slave 1 --address 0 --count 10

  # 写多个线圈
  python -m modbus_rtu_master write-coils --port COM3 --address 5 --values 1,0,1,1
        """,
    )

    parser.add_argument(
        "--version", action="version", version=f"{PROGRAM_NAME} v{__version__}"
    )

    # 子命令
    subparsers = parser.add_subparsers(dest="command", help="可用命令")
    subparsers.add_parser("ports", help="列出可用串口")

    read_commands = {
        "read-coils": "读线圈 (0x01)",
        "read-discrete-inputs": "读离散输入 (0x02)",
        "read-holding": "读保持寄存器 (0x03)",
        "read-input": "读输入寄存器 (0x04)",
    }
    for name, help_text in read_commands.items():
        sub = subparsers.add_parser(name, help=help_text)
        _add_serial_arguments(sub)
        sub.add_argument("--address", type=parse_int, required=True, help="起始地址")
        sub.add_argument("--count", type=parse_int, required=True, help="数量")

    sub = subparsers.add_parser("write-coil", help="写单个线圈 (0x05)")
    _add_serial_arguments(sub)
    sub.add_argument("--address", type=parse_int, required=True, help="线圈地址")
    sub.add_argument("--value", type=parse_bool, required=True, help="on/off")

    sub = subparsers.add_parser("write-register", help="写单个寄存器 (0x06)")
    _add_serial_arguments(sub)
    sub.add_argument("--address", type=parse_int, required=True, help="寄存器地址")
    sub.add_argument("--value", type=parse_int, required=True, help="寄存器值")

    sub = subparsers.add_parser("write-coils", help="写多个线圈 (0x0F)")
    _add_serial_arguments(sub)
    sub.add_argument("--address", type=parse_int, required=True, help="起始地址")
    sub.add_argument("--values", type=parse_bool_list, required=True, help="逗号分隔的线圈值，如 1,0,1")

    sub = subparsers.add_parser("write-registers", help="写多个寄存器 (0x10)")
    _add_serial_arguments(sub)
    sub.add_argument("--address", type=parse_int, required=True, help="起始地址")
    sub.add_argument("--values", type=parse_int_list, required=True, help="逗号分隔的寄存器值，如 10,0x20")

    return parser


def main(argv=None):
    """主函数"""
    try:
        parser = create_parser()
        args = parser.parse_args(argv)

        if not args.command:
            parser.print_help()
            return

        if getattr(args, "verbose", False):
            set_level(logging.DEBUG)

        success = ModbusCLI.run(args)
        sys.exit(0 if success else 1)

    except KeyboardInterrupt:
        print("\n\n👋 用户中断程序，退出")
        sys.exit(1)


if __name__ == "__main__":
    main()
