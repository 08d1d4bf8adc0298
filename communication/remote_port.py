"""
RemoteNodePort over the length-prefixed JSON protocol.
"""

import logging
from typing import Optional, Union

from chord.remote import (UNREACHABLE, PredecessorReply, Reachability, RemoteError,
                          RemoteNodePort, TransportError)
from chord.routing import NodeDescriptor
from .message import (Message, MessageType, create_find_successor_msg,
                      create_get_predecessor_msg, create_key_msg, create_notify_msg,
                      create_request_msg)
from .network import NetworkManager


class NetworkRemotePort(RemoteNodePort):
    """
    Reaches peers through a NetworkManager.

    The manager already bounds every step with a timeout and turns any
    transport failure into a missing reply; this class maps a missing or
    unexpected reply onto the RemoteNodePort failure contract.
    """

    def __init__(self, network: NetworkManager, me: NodeDescriptor, timeout: float = None):
        self.network = network
        self.me = me
        self.timeout = timeout
        self.logger = logging.getLogger(f"RemotePort-{me.ring_id}")

    async def _request(self, target: NodeDescriptor, msg: Message) -> Optional[Message]:
        return await self.network.send_message(
            target.endpoint, msg, wait_response=True, timeout=self.timeout
        )

    def _expect(self, target: NodeDescriptor, response: Optional[Message],
                expected: MessageType) -> Message:
        if response is None:
            raise TransportError(target, "no response")
        if response.msg_type == MessageType.ERROR:
            raise RemoteError(target, response.data.get('error', 'remote error'))
        if response.msg_type != expected:
            raise TransportError(target, f"unexpected reply {response.msg_type.value}")
        return response

    def _descriptor(self, target: NodeDescriptor, response: Message,
                    key: str) -> Optional[NodeDescriptor]:
        try:
            return NodeDescriptor.from_dict(response.data.get(key))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise TransportError(target, f"malformed {key} in reply: {e!r}")

    async def identify(self, endpoint: str) -> NodeDescriptor:
        """
        Learn the descriptor of whoever listens at endpoint ("host:port").

        Raises:
            TransportError: nothing answered the probe
        """
        host, port = endpoint.rsplit(':', 1)
        probe = NodeDescriptor(-1, host, int(port))
        msg = create_request_msg(self.me.ring_id, self.me.endpoint, MessageType.PING,
                                 self.network.generate_msg_id())
        response = self._expect(probe, await self._request(probe, msg), MessageType.PONG)
        return NodeDescriptor(int(response.sender_id), host, int(port))

    async def find_successor(self, target: NodeDescriptor, ring_id: int,
                             hops: int = 0) -> NodeDescriptor:
        msg = create_find_successor_msg(self.me, ring_id, hops, self.network.generate_msg_id())
        response = self._expect(target, await self._request(target, msg),
                                MessageType.FIND_SUCCESSOR_REPLY)
        successor = self._descriptor(target, response, 'successor')
        if successor is None:
            raise TransportError(target, "reply carried no successor")
        return successor

    async def get_predecessor(self, target: NodeDescriptor) -> PredecessorReply:
        msg = create_get_predecessor_msg(self.me, self.network.generate_msg_id())
        try:
            response = self._expect(target, await self._request(target, msg),
                                    MessageType.GET_PREDECESSOR_REPLY)
            return self._descriptor(target, response, 'predecessor')
        except TransportError as e:
            self.logger.debug(f"get_predecessor failed: {e}")
            return UNREACHABLE

    async def notify(self, target: NodeDescriptor,
                     candidate: NodeDescriptor) -> Union[bool, Reachability]:
        msg = create_notify_msg(self.me, candidate, self.network.generate_msg_id())
        try:
            self._expect(target, await self._request(target, msg), MessageType.NOTIFY_ACK)
        except TransportError as e:
            self.logger.debug(f"notify failed: {e}")
            return UNREACHABLE
        return True

    async def assign_key(self, target: NodeDescriptor, key: int) -> NodeDescriptor:
        msg = create_key_msg(self.me, MessageType.ASSIGN_KEY, key, self.network.generate_msg_id())
        response = self._expect(target, await self._request(target, msg),
                                MessageType.ASSIGN_KEY_REPLY)
        owner = self._descriptor(target, response, 'owner')
        if owner is None:
            raise TransportError(target, "reply carried no owner")
        return owner

    async def health_check(self, target: NodeDescriptor) -> bool:
        msg = create_request_msg(self.me.ring_id, self.me.endpoint, MessageType.PING,
                                 self.network.generate_msg_id())
        response = await self._request(target, msg)
        return response is not None and response.msg_type == MessageType.PONG
