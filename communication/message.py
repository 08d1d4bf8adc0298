"""
Message protocol definitions for Chord communication.
"""

from enum import Enum
from typing import Any, Dict, Optional
from dataclasses import dataclass
import json

from chord.routing import NodeDescriptor


class MessageType(Enum):
    """Types of messages exchanged between Chord nodes."""

    # Chord protocol messages
    FIND_SUCCESSOR = "find_successor"
    FIND_SUCCESSOR_REPLY = "find_successor_reply"
    GET_PREDECESSOR = "get_predecessor"
    GET_PREDECESSOR_REPLY = "get_predecessor_reply"
    NOTIFY = "notify"
    NOTIFY_ACK = "notify_ack"

    # Key routing
    ASSIGN_KEY = "assign_key"
    ASSIGN_KEY_REPLY = "assign_key_reply"
    ADD_KEY = "add_key"
    ADD_KEY_REPLY = "add_key_reply"

    # Liveness
    PING = "ping"
    PONG = "pong"

    # Debug/Status
    GET_RING_INFO = "get_ring_info"
    GET_RING_INFO_REPLY = "get_ring_info_reply"
    GET_KEYS = "get_keys"
    GET_KEYS_REPLY = "get_keys_reply"

    # Error
    ERROR = "error"


@dataclass
class Message:
    """
    Base message class for Chord communication.

    All messages between nodes follow this structure.
    """

    msg_type: MessageType
    sender_id: int
    sender_address: str
    msg_id: str  # Unique message identifier
    data: Dict[str, Any]

    def to_json(self) -> str:
        """
        Serialize message to JSON string.

        Returns:
            JSON string representation
        """
        msg_dict = {
            'msg_type': self.msg_type.value,
            'sender_id': self.sender_id,
            'sender_address': self.sender_address,
            'msg_id': self.msg_id,
            'data': self.data
        }
        return json.dumps(msg_dict)

    @classmethod
    def from_json(cls, json_str: str) -> 'Message':
        """
        Deserialize message from JSON string.

        Raises:
            ValueError: the payload is not a well-formed message
        """
        msg_dict = json.loads(json_str)
        try:
            return cls(
                msg_type=MessageType(msg_dict['msg_type']),
                sender_id=msg_dict['sender_id'],
                sender_address=msg_dict['sender_address'],
                msg_id=msg_dict['msg_id'],
                data=msg_dict.get('data') or {},
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed message: {e}") from e

    def to_bytes(self) -> bytes:
        """Convert message to bytes for network transmission."""
        return self.to_json().encode('utf-8')

    @classmethod
    def from_bytes(cls, data: bytes) -> 'Message':
        return cls.from_json(data.decode('utf-8'))

    def __repr__(self) -> str:
        return (f"Message({self.msg_type.value}, "
                f"from={self.sender_id}, id={self.msg_id})")


def descriptor_data(descriptor: Optional[NodeDescriptor]) -> Optional[Dict[str, Any]]:
    """Wire form of a descriptor (None stays None)."""
    return descriptor.to_dict() if descriptor is not None else None


# Helper functions to create common messages

def create_find_successor_msg(sender: NodeDescriptor, identifier: int,
                              hops: int, msg_id: str) -> Message:
    """Create FIND_SUCCESSOR message."""
    return Message(
        msg_type=MessageType.FIND_SUCCESSOR,
        sender_id=sender.ring_id,
        sender_address=sender.endpoint,
        msg_id=msg_id,
        data={'identifier': identifier, 'hops': hops}
    )


def create_get_predecessor_msg(sender: NodeDescriptor, msg_id: str) -> Message:
    """Create GET_PREDECESSOR message."""
    return Message(
        msg_type=MessageType.GET_PREDECESSOR,
        sender_id=sender.ring_id,
        sender_address=sender.endpoint,
        msg_id=msg_id,
        data={}
    )


def create_notify_msg(sender: NodeDescriptor, candidate: NodeDescriptor,
                      msg_id: str) -> Message:
    """Create NOTIFY message."""
    return Message(
        msg_type=MessageType.NOTIFY,
        sender_id=sender.ring_id,
        sender_address=sender.endpoint,
        msg_id=msg_id,
        data={'candidate': candidate.to_dict()}
    )


def create_key_msg(sender: NodeDescriptor, msg_type: MessageType,
                   key: int, msg_id: str) -> Message:
    """Create ASSIGN_KEY or ADD_KEY message."""
    return Message(
        msg_type=msg_type,
        sender_id=sender.ring_id,
        sender_address=sender.endpoint,
        msg_id=msg_id,
        data={'key': key}
    )


def create_request_msg(sender_id: int, sender_addr: str,
                       msg_type: MessageType, msg_id: str) -> Message:
    """Create a request that carries no payload (PING, GET_RING_INFO, GET_KEYS)."""
    return Message(
        msg_type=msg_type,
        sender_id=sender_id,
        sender_address=sender_addr,
        msg_id=msg_id,
        data={}
    )


def create_reply_msg(sender_id: int, sender_addr: str,
                     msg_type: MessageType, data: Dict,
                     msg_id: str) -> Message:
    """Create a reply message."""
    return Message(
        msg_type=msg_type,
        sender_id=sender_id,
        sender_address=sender_addr,
        msg_id=msg_id,
        data=data
    )


def create_error_msg(sender_id: int, sender_addr: str,
                     error: str, msg_id: str) -> Message:
    """Create ERROR message."""
    return Message(
        msg_type=MessageType.ERROR,
        sender_id=sender_id,
        sender_address=sender_addr,
        msg_id=msg_id,
        data={'error': error}
    )
