"""
Inbound request handlers that expose a ChordNode on the network.
"""

import logging

from chord.node import ChordNode
from chord.routing import NodeDescriptor
from .message import Message, MessageType, create_reply_msg, descriptor_data
from .network import NetworkManager


def register_chord_handlers(network: NetworkManager, node: ChordNode):
    """
    Register every Chord request handler for node on network.

    Args:
        network: NetworkManager the node listens with
        node: The ChordNode answering the requests
    """
    logger = logging.getLogger(f"Handlers-{node.node_id}")

    def reply(msg: Message, msg_type: MessageType, data: dict) -> Message:
        return create_reply_msg(node.node_id, node.me.endpoint, msg_type, data, msg.msg_id)

    async def handle_find_successor(msg):
        """Handle FIND_SUCCESSOR request."""
        identifier = int(msg.data['identifier'])
        hops = int(msg.data.get('hops', 0))
        successor = await node.find_successor(identifier, hops)
        logger.debug(f"FIND_SUCCESSOR for id={identifier} (hops={hops}) -> {successor}")
        return reply(msg, MessageType.FIND_SUCCESSOR_REPLY,
                     {'successor': descriptor_data(successor)})

    async def handle_get_predecessor(msg):
        """Handle GET_PREDECESSOR request."""
        pred = node.get_predecessor()
        logger.debug(f"GET_PREDECESSOR -> {pred}")
        return reply(msg, MessageType.GET_PREDECESSOR_REPLY,
                     {'predecessor': descriptor_data(pred)})

    async def handle_notify(msg):
        """Handle NOTIFY message from a node thinking it's our predecessor."""
        candidate = NodeDescriptor.from_dict(msg.data.get('candidate'))
        if candidate is None:
            raise ValueError("notify without candidate")
        node.space.validate(candidate.ring_id)
        logger.debug(f"NOTIFY from {candidate}")
        node.notify(candidate)
        return reply(msg, MessageType.NOTIFY_ACK, {})

    async def handle_assign_key(msg):
        """Handle ASSIGN_KEY: we are the owner of this key."""
        owner = node.assign_key_local(int(msg.data['key']))
        return reply(msg, MessageType.ASSIGN_KEY_REPLY, {'owner': descriptor_data(owner)})

    async def handle_add_key(msg):
        """Handle ADD_KEY: route the key to whichever node owns it."""
        owner = await node.add_key(int(msg.data['key']))
        return reply(msg, MessageType.ADD_KEY_REPLY, {'owner': descriptor_data(owner)})

    async def handle_ping(msg):
        """Handle PING request - respond with PONG."""
        return reply(msg, MessageType.PONG, {'status': 'alive'})

    async def handle_get_ring_info(msg):
        """Handle GET_RING_INFO: node status plus finger table."""
        status = node.get_status()
        status['fingers'] = node.finger_table.to_list()
        return reply(msg, MessageType.GET_RING_INFO_REPLY, status)

    async def handle_get_keys(msg):
        """Handle GET_KEYS: every key this node owns."""
        return reply(msg, MessageType.GET_KEYS_REPLY,
                     {'node_id': node.node_id, 'keys': node.get_keys()})

    network.register_handler(MessageType.FIND_SUCCESSOR, handle_find_successor)
    network.register_handler(MessageType.GET_PREDECESSOR, handle_get_predecessor)
    network.register_handler(MessageType.NOTIFY, handle_notify)
    network.register_handler(MessageType.ASSIGN_KEY, handle_assign_key)
    network.register_handler(MessageType.ADD_KEY, handle_add_key)
    network.register_handler(MessageType.PING, handle_ping)
    network.register_handler(MessageType.GET_RING_INFO, handle_get_ring_info)
    network.register_handler(MessageType.GET_KEYS, handle_get_keys)
