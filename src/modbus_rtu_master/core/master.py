"""
Modbus RTU主站
==============

负责一次完整的请求/响应交换：打开串口、打包发送、限时读取、校验解析、关闭串口。

交换状态：IDLE -> TRANSPORT_ACQUIRED -> SENT -> AWAITING_REPLY -> DONE
无论成功或失败，返回前都会关闭本次交换打开的串口。
"""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional

from ..config.constants import (
    BROADCAST_ADDRESS,
    EXCEPTION_FRAME_SIZE,
    EXCEPTION_OFFSET,
    REPLY_HEADER_SIZE,
)
from ..config.settings import MasterConfig
from ..utils.logger import format_frame, get_logger
from .exceptions import ModbusError, ReadTimeout
from .frame_handler import RtuFrameHandler, expected_frame_length, validate_slave_address
from .pdu import (
    ModbusRequest,
    ModbusResponse,
    PduCodec,
    ReadCoilsRequest,
    ReadDiscreteInputsRequest,
    ReadHoldingRegistersRequest,
    ReadInputRegistersRequest,
    WriteMultipleCoilsRequest,
    WriteMultipleRegistersRequest,
    WriteSingleCoilRequest,
    WriteSingleRegisterRequest,
)
from .serial_manager import SerialManager

logger = get_logger(__name__)


class ExchangeState(Enum):
    """交换状态"""

    IDLE = "idle"
    TRANSPORT_ACQUIRED = "transport_acquired"
    SENT = "sent"
    AWAITING_REPLY = "awaiting_reply"
    DONE = "done"


@dataclass(frozen=True)
class ExchangeOutcome:
    """一次交换的结果，response和error有且只有一个生效"""

    slave_address: int
    request: ModbusRequest
    response: Optional[ModbusResponse] = None
    error: Optional[ModbusError] = None
    state: ExchangeState = ExchangeState.DONE  # 失败时为出错时所处的状态
    request_frame: bytes = b""
    reply_frame: bytes = b""
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Optional[ModbusResponse]:
        """成功时返回响应（广播请求为None），失败时抛出对应的错误"""
        if self.error is not None:
            raise self.error
        return self.response


class ModbusRtuMaster:
    """Modbus RTU主站"""

    def __init__(
        self,
        config: MasterConfig,
        codec: Optional[PduCodec] = None,
        transport_factory: Callable[[MasterConfig], SerialManager] = SerialManager,
    ):
        """
        初始化主站

        Args:
            config: 主站配置
            codec: PDU编解码器，默认使用PduCodec
            transport_factory: 根据配置创建串口会话的工厂，每次交换创建一个
        """
        self.config = config
        self.frame_handler = RtuFrameHandler(codec, strict_address=config.strict_address)
        self.transport_factory = transport_factory
        self.state = ExchangeState.IDLE
        self._lock = threading.Lock()

    def _transition(self, state: ExchangeState) -> None:
        logger.debug(f"交换状态: {self.state.value} -> {state.value}")
        self.state = state

    def send_request(self, request: ModbusRequest, slave_address: int) -> ExchangeOutcome:
        """
        执行一次请求/响应交换

        Args:
            request: 请求对象
            slave_address: 从站地址，0为广播（不等待响应）

        Returns:
            ExchangeOutcome，协议和传输错误都放在error中返回

        Raises:
            ValueError: 从站地址或请求本身不合法
        """
        validate_slave_address(slave_address)

        with self._lock:
            self.state = ExchangeState.IDLE
            start = time.monotonic()
            request_frame = b""
            reply_frame = bytearray()
            response = None
            error = None
            end_state = ExchangeState.DONE

            transport = self.transport_factory(self.config)
            try:
                transport.open()
                transport.configure()
                self._transition(ExchangeState.TRANSPORT_ACQUIRED)

                request_frame = self.frame_handler.encode(slave_address, request)
                transport.reset_input_buffer()
                time.sleep(self.config.frame_silence)
                transport.write(request_frame)
                self._transition(ExchangeState.SENT)

                if slave_address != BROADCAST_ADDRESS:
                    self._transition(ExchangeState.AWAITING_REPLY)
                    self._read_reply(transport, request, reply_frame)
                    decoded = self.frame_handler.decode(
                        slave_address, bytes(reply_frame), request
                    )
                    response = decoded.response
            except ModbusError as e:
                error = e
                end_state = self.state
                logger.error(
                    f"交换失败 [{type(e).__name__}]: 从站={slave_address}, "
                    f"状态={end_state.value}, {e}"
                )
            finally:
                transport.close()
                self._transition(ExchangeState.DONE)

            elapsed = time.monotonic() - start
            if error is None:
                logger.info(
                    f"交换完成: 从站={slave_address}, "
                    f"功能码={request.function_code:#04x}, 耗时={elapsed * 1000:.1f}ms"
                )
            return ExchangeOutcome(
                slave_address=slave_address,
                request=request,
                response=response,
                error=error,
                state=end_state,
                request_frame=request_frame,
                reply_frame=bytes(reply_frame),
                elapsed=elapsed,
            )

    def _read_reply(
        self, transport: SerialManager, request: ModbusRequest, reply: bytearray
    ) -> None:
        """
        读取一帧响应到reply

        先读地址和功能码，根据功能码最高位判断是异常响应还是正常响应，
        再读取剩余部分。整个读取过程共用一个超时期限。
        """
        deadline = time.monotonic() + self.config.timeout
        try:
            reply += transport.read_exact(REPLY_HEADER_SIZE, self.config.timeout)
            if reply[1] & EXCEPTION_OFFSET:
                total = EXCEPTION_FRAME_SIZE
            else:
                total = expected_frame_length(request)
            reply += transport.read_exact(
                total - len(reply), deadline - time.monotonic()
            )
        except ReadTimeout as e:
            reply += e.received
            if reply:
                logger.debug(f"超时前收到的部分数据: {format_frame(reply)}")
            raise

    def execute(self, request: ModbusRequest, slave_address: int) -> Optional[ModbusResponse]:
        """执行交换，失败时直接抛出错误"""
        return self.send_request(request, slave_address).unwrap()

    # 常用功能码的便捷方法

    def read_coils(self, slave_address: int, address: int, count: int):
        return self.execute(ReadCoilsRequest(address, count), slave_address)

    def read_discrete_inputs(self, slave_address: int, address: int, count: int):
        return self.execute(ReadDiscreteInputsRequest(address, count), slave_address)

    def read_holding_registers(self, slave_address: int, address: int, count: int):
        return self.execute(ReadHoldingRegistersRequest(address, count), slave_address)

    def read_input_registers(self, slave_address: int, address: int, count: int):
        return self.execute(ReadInputRegistersRequest(address, count), slave_address)

    def write_single_coil(self, slave_address: int, address: int, value: bool):
        return self.execute(WriteSingleCoilRequest(address, value), slave_address)

    def write_single_register(self, slave_address: int, address: int, value: int):
        return self.execute(WriteSingleRegisterRequest(address, value), slave_address)

    def write_multiple_coils(
        self, slave_address: int, address: int, values: Iterable[bool]
    ):
        return self.execute(WriteMultipleCoilsRequest(address, tuple(values)), slave_address)

    def write_multiple_registers(
        self, slave_address: int, address: int, values: Iterable[int]
    ):
        return self.execute(
            WriteMultipleRegistersRequest(address, tuple(values)), slave_address
        )
