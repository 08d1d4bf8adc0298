"""
Network manager for socket-based communication between Chord nodes.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional
import uuid

import config
from .message import Message, MessageType, create_error_msg

Handler = Callable[[Message], Awaitable[Optional[Message]]]


class FrameTooLarge(ValueError):
    """A frame announced a length above the configured maximum."""


class NetworkManager:
    """
    Manages network communication for a Chord node using asyncio.

    Every exchange is one connection carrying one request frame and at
    most one reply frame. A frame is a 4-byte big-endian length followed
    by a UTF-8 JSON message.

    Handles:
    - Listening for incoming connections
    - Sending messages to other nodes
    - Message routing to registered handlers
    """

    def __init__(self, node_id: int, host: str, port: int,
                 max_message_size: int = None):
        """
        Initialize network manager.

        Args:
            node_id: This node's identifier
            host: Host to bind to
            port: Port to listen on (0 picks a free port)
            max_message_size: Largest frame accepted or sent, in bytes
        """
        self.node_id = node_id
        self.host = host
        self.port = port
        self.max_message_size = max_message_size or config.MAX_MESSAGE_SIZE

        # Server
        self.server: Optional[asyncio.Server] = None

        # Message handlers: msg_type -> callback function
        self.handlers: Dict[MessageType, Handler] = {}

        self.logger = logging.getLogger(f"Network-{node_id}")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def register_handler(self, msg_type: MessageType, handler: Handler):
        """
        Register a message handler.

        Args:
            msg_type: Type of message to handle
            handler: Async callback function
        """
        self.handlers[msg_type] = handler
        self.logger.debug(f"Registered handler for {msg_type.value}")

    async def start(self):
        """Start the network server."""
        self.server = await asyncio.start_server(
            self._handle_connection,
            self.host,
            self.port
        )
        if self.port == 0:
            self.port = self.server.sockets[0].getsockname()[1]

        self.logger.info(f"Network server started on {self.address}")

    async def stop(self):
        """Stop the network server."""
        if self.server:
            self.server.close()
            await self.server.wait_closed()
            self.server = None
            self.logger.info("Network server stopped")

    async def _handle_connection(self, reader: asyncio.StreamReader,
                                 writer: asyncio.StreamWriter):
        """
        Handle an incoming connection.

        Args:
            reader: Stream reader
            writer: Stream writer
        """
        addr = writer.get_extra_info('peername')
        self.logger.debug(f"Connection from {addr}")

        try:
            msg = Message.from_bytes(await self._read_frame(reader))
            self.logger.debug(f"Received: {msg}")

            response = await self._dispatch_message(msg)

            if response:
                await self._send_message(writer, response)

        except asyncio.IncompleteReadError:
            self.logger.debug(f"Connection closed by {addr}")
        except (ConnectionResetError, BrokenPipeError):
            self.logger.debug(f"Connection lost with {addr}")
        except ValueError as e:
            self.logger.warning(f"Rejected message from {addr}: {e}")
        finally:
            try:
                writer.close()
                await writer.wait_closed()
            except (BrokenPipeError, ConnectionResetError, OSError):
                # Connection already closed by peer
                pass

    async def _dispatch_message(self, msg: Message) -> Optional[Message]:
        """
        Dispatch message to appropriate handler.

        A handler that raises produces an ERROR reply.
        """
        handler = self.handlers.get(msg.msg_type)

        if handler is None:
            self.logger.warning(f"No handler for {msg.msg_type}")
            return create_error_msg(
                self.node_id, self.address,
                f"unsupported message type {msg.msg_type.value}", msg.msg_id
            )

        try:
            return await handler(msg)
        except Exception as e:
            self.logger.error(f"Handler error for {msg.msg_type.value}: {type(e).__name__}: {e}")
            return create_error_msg(
                self.node_id,
                self.address,
                f"{type(e).__name__}: {e}",
                msg.msg_id
            )

    async def send_message(self, target_address: str, msg: Message,
                           wait_response: bool = False,
                           timeout: float = None) -> Optional[Message]:
        """
        Send a message to another node.

        Args:
            target_address: Target node address "host:port"
            msg: Message to send
            wait_response: Whether to wait for a response
            timeout: Timeout in seconds for each network step

        Returns:
            Response message if wait_response=True and one arrived, else None.
            Any transport failure also yields None.
        """
        if timeout is None:
            timeout = config.RPC_TIMEOUT

        writer = None
        try:
            host, port = target_address.rsplit(':', 1)
            port = int(port)

            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=timeout
            )

            await asyncio.wait_for(self._send_message(writer, msg), timeout=timeout)

            if not wait_response:
                return None

            msg_data = await asyncio.wait_for(self._read_frame(reader), timeout=timeout)
            response = Message.from_bytes(msg_data)
            self.logger.debug(f"Received response: {response}")
            return response

        except asyncio.TimeoutError:
            self.logger.warning(f"Timeout talking to {target_address} ({msg.msg_type.value})")
            return None
        except ConnectionRefusedError:
            self.logger.warning(f"Connection refused by {target_address}")
            return None
        except asyncio.IncompleteReadError:
            self.logger.warning(f"{target_address} closed the connection without replying")
            return None
        except (OSError, ValueError) as e:
            self.logger.warning(f"Error sending to {target_address}: {type(e).__name__}: {e}")
            return None
        finally:
            if writer:
                try:
                    writer.close()
                    await writer.wait_closed()
                except (BrokenPipeError, ConnectionResetError, OSError):
                    # Connection already closed
                    pass

    async def _read_frame(self, reader: asyncio.StreamReader) -> bytes:
        length_bytes = await reader.readexactly(4)
        msg_length = int.from_bytes(length_bytes, byteorder='big')
        if msg_length > self.max_message_size:
            raise FrameTooLarge(f"frame of {msg_length} bytes exceeds {self.max_message_size}")
        return await reader.readexactly(msg_length)

    async def _send_message(self, writer: asyncio.StreamWriter, msg: Message):
        """
        Send a message through a writer stream.

        Args:
            writer: Stream writer
            msg: Message to send
        """
        msg_bytes = msg.to_bytes()
        msg_length = len(msg_bytes)
        if msg_length > self.max_message_size:
            raise FrameTooLarge(f"message of {msg_length} bytes exceeds {self.max_message_size}")

        writer.write(msg_length.to_bytes(4, byteorder='big'))
        writer.write(msg_bytes)

        await writer.drain()
        self.logger.debug(f"Sent: {msg}")

    def generate_msg_id(self) -> str:
        """Generate a unique message ID."""
        return str(uuid.uuid4())

    def __repr__(self) -> str:
        return f"NetworkManager(node={self.node_id}, addr={self.address})"
