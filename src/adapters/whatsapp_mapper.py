"""WhatsApp-to-core message mapping adapter.

This keeps neonize/whatsmeow protobuf details out of the core pipeline. The
helpers read fields with getattr so they work on protobuf messages and on
plain objects alike.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from core.models import ContentKind, InboundMessage, MessageContent


def jid_to_string(jid: Any) -> Optional[str]:
    """Render a JID as ``user@server``; an empty JID becomes None."""

    if jid is None:
        return None
    if isinstance(jid, str):
        return jid or None
    user = getattr(jid, "User", "") or ""
    server = getattr(jid, "Server", "") or ""
    if not user and not server:
        return None
    if not user:
        return server
    return f"{user}@{server}"


def _submessage(payload: Any, field: str) -> Any:
    """Return a set sub-message, treating unset protobuf fields as absent."""

    has_field = getattr(payload, "HasField", None)
    if has_field is not None:
        try:
            return getattr(payload, field) if has_field(field) else None
        except ValueError:
            return None
    return getattr(payload, field, None)


def classify_content(payload: Any) -> Optional[MessageContent]:
    """Classify a WhatsApp ``Message`` payload into a MessageContent."""

    if payload is None:
        return None

    conversation = getattr(payload, "conversation", None)
    if conversation:
        return MessageContent(ContentKind.TEXT, text=conversation)

    extended = _submessage(payload, "extendedTextMessage")
    if extended is not None:
        return MessageContent(ContentKind.EXTENDED_TEXT, text=getattr(extended, "text", "") or "")

    image = _submessage(payload, "imageMessage")
    if image is not None:
        return MessageContent(ContentKind.IMAGE, caption=getattr(image, "caption", None) or None)

    video = _submessage(payload, "videoMessage")
    if video is not None:
        return MessageContent(ContentKind.VIDEO, caption=getattr(video, "caption", None) or None)

    if _submessage(payload, "audioMessage") is not None:
        return MessageContent(ContentKind.AUDIO)

    document = _submessage(payload, "documentMessage")
    if document is not None:
        return MessageContent(ContentKind.DOCUMENT, file_name=getattr(document, "fileName", None) or None)

    if _submessage(payload, "stickerMessage") is not None:
        return MessageContent(ContentKind.STICKER)

    return MessageContent(ContentKind.OTHER)


def _timestamp(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    if seconds <= 0:
        return datetime.now(timezone.utc)
    # whatsmeow reports milliseconds; older payloads use seconds.
    if seconds > 1e11:
        seconds /= 1000.0
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def build_inbound_message(event: Any) -> InboundMessage:
    """Build a core InboundMessage from a neonize ``MessageEv``."""

    info = getattr(event, "Info", None)
    source = getattr(info, "MessageSource", None)

    return InboundMessage(
        chat_id=jid_to_string(getattr(source, "Chat", None)) or "",
        sender_id=jid_to_string(getattr(source, "Sender", None)),
        message_id=str(getattr(info, "ID", "") or ""),
        timestamp=_timestamp(getattr(info, "Timestamp", None)),
        from_me=bool(getattr(source, "IsFromMe", False)),
        content=classify_content(getattr(event, "Message", None)),
    )


def push_name(event: Any) -> Optional[str]:
    info = getattr(event, "Info", None)
    return getattr(info, "Pushname", None) or None
