"""Chatroom and message documents from ``userchat`` and ``userchat_msg``."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from ..config import Defaults
from ..idmap import IdentifierMapper
from .common import Document, Row, full_name, number, text, to_timestamp

CHATROOM_STATUS = {0: "archived", 2: "blocked"}

FILE_KINDS = {
    "image": (".jpg", ".jpeg", ".png", ".gif", ".webp"),
    "document": (".doc", ".docx", ".pdf", ".xls", ".xlsx", ".ppt", ".pptx", ".txt"),
    "video": (".mp4", ".avi", ".mov", ".wmv"),
}


def chatroom_status(value: Any) -> str:
    return CHATROOM_STATUS.get(int(number(value, 1)), "active")


def file_kind(filename: Any, extension: str = "") -> str:
    extension = (extension or os.path.splitext(text(filename))[1]).lower()
    if not extension:
        return "file"
    for kind, extensions in FILE_KINDS.items():
        if extension in extensions:
            return kind
    return "file"


def _participant(ids: IdentifierMapper, user_id: Any, user: Row | None) -> dict[str, Any] | None:
    if not user:
        return None
    return {
        "userId": ids.get("users", user_id),
        "name": full_name(user),
        "photo": text(user.get("profile_image")),
        "role": text(user.get("user_role"), "user"),
    }


@dataclasses.dataclass
class ChatroomDocument(Document):
    id: str
    participants: list[str]
    participant_details: list[dict[str, Any]]
    listing: dict[str, Any]
    status: str
    created_by: str | None
    last_active: str
    created_at: str
    updated_at: str
    is_deleted: bool
    legacy_id: Any


def build_chatroom(
    row: Row,
    ids: IdentifierMapper,
    defaults: Defaults,
    *,
    users: dict[Any, Row],
) -> ChatroomDocument:
    owner_id, partner_id = row.get("chat_owner"), row.get("chat_partner")
    owner, partner = ids.get("users", owner_id), ids.get("users", partner_id)
    details = [
        p
        for p in (
            _participant(ids, owner_id, users.get(owner_id)),
            _participant(ids, partner_id, users.get(partner_id)),
        )
        if p is not None
    ]
    status = chatroom_status(row.get("status"))
    created_at = to_timestamp(row.get("created_at"), defaults.created_at)
    last_action = to_timestamp(row.get("last_action"))

    return ChatroomDocument(
        id=ids.get_or_create("chatrooms", row["id"]),
        participants=[p for p in (owner, partner) if p],
        participant_details=details,
        listing={
            "id": ids.get("listings", row.get("type_id")),
            "name": text(row.get("type_name")),
            "type": text(row.get("url_type")),
        },
        status=status,
        created_by=owner,
        last_active=last_action or defaults.created_at,
        created_at=created_at,
        updated_at=last_action or defaults.updated_at,
        is_deleted=status == "blocked",
        legacy_id=row["id"],
    )


@dataclasses.dataclass
class MessageDocument(Document):
    id: str
    chatroom_id: str | None
    sender_id: str | None
    recipient_id: str | None
    text: str
    type: str
    attachment: dict[str, Any] | None
    read: bool
    read_at: str | None
    is_deleted: bool
    sent_at: str
    legacy_id: Any


def _attachment(chat_file: Row | None) -> dict[str, Any] | None:
    if not chat_file:
        return None
    name = text(chat_file.get("filename"))
    extension = text(chat_file.get("ext"))
    if extension and not extension.startswith("."):
        extension = "." + extension
    return {
        "name": name,
        "url": text(chat_file.get("path")),
        "size": int(number(chat_file.get("size"))),
        "type": file_kind(name, extension),
    }


def build_message(
    row: Row,
    ids: IdentifierMapper,
    defaults: Defaults,
    *,
    chat_files: dict[Any, Row],
) -> MessageDocument:
    attachment = _attachment(chat_files.get(row.get("msg_file")))
    status = int(number(row.get("msg_status"), 1))
    sent_at = to_timestamp(row.get("msg_date"), defaults.created_at)

    kind = text(row.get("msg_type"), "text")
    if attachment is not None:
        kind = attachment["type"]

    return MessageDocument(
        id=ids.get_or_create("messages", row["id"]),
        chatroom_id=ids.get("chatrooms", row.get("chat_id")),
        sender_id=ids.get("users", row.get("sender")),
        recipient_id=ids.get("users", row.get("recipient")),
        text=text(row.get("msg_text")),
        type=kind,
        attachment=attachment,
        read=status == 0,
        read_at=sent_at if status == 0 else None,
        is_deleted=status == 2,
        sent_at=sent_at,
        legacy_id=row["id"],
    )
