"""
命令行接口模块
============

提供读写从站数据的命令行接口。
"""

from .modbus_cli import ModbusCLI

__all__ = ["ModbusCLI"]
