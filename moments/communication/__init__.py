"""Communication sub-core — channel-agnostic message handling.

- Inbound: message and button event types
- Outbound: choices, the Responder protocol, quoting and splitting
- Formatting: markdown → Telegram HTML
- Errors: exception → user-facing message
"""

from .inbound import AttachmentRef, ButtonEvent, InboundMessage
from .outbound import Choice, Responder, clean_outbound, quote, split_message
from .errors import DanglingReferenceError, classify_error

__all__ = [
    # Inbound
    "AttachmentRef",
    "ButtonEvent",
    "InboundMessage",
    # Outbound
    "Choice",
    "Responder",
    "clean_outbound",
    "quote",
    "split_message",
    # Errors
    "DanglingReferenceError",
    "classify_error",
]
