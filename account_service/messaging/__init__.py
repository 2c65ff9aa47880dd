"""
Internal request/response channel between the gateway and the account service.
"""

from account_service.messaging.dispatcher import MessageDispatcher, MessageReply
from account_service.messaging.client import MessageChannelError, MessageClient

__all__ = [
    "MessageDispatcher",
    "MessageReply",
    "MessageChannelError",
    "MessageClient",
]
