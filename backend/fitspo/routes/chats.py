from __future__ import annotations

import logging

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fitspo.deps import current_user_id
from fitspo.models import Chat, ChatParticipant, Message
from fitspo.schemas import ChatCreateIn, ChatListOut, ChatOut, MessageIn, MessageListOut, MessageOut
from fitspo.db import get_db


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chats", tags=["chats"])


def _chat_to_out(chat: Chat) -> ChatOut:
    return ChatOut(
        id=chat.id,
        participants=[p.user_id for p in chat.participants],
        last_message=chat.last_message,
        last_timestamp=chat.last_timestamp,
    )


def _message_to_out(message: Message) -> MessageOut:
    return MessageOut(
        id=message.id,
        chat_id=message.chat_id,
        sender_id=message.sender_id,
        text=message.text,
        timestamp=message.timestamp,
    )


def _get_chat_for_member(db: Session, chat_id: str, user_id: str) -> Chat:
    chat = db.get(Chat, chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    if user_id not in {p.user_id for p in chat.participants}:
        raise HTTPException(status_code=403, detail="Not a participant of this chat")
    return chat


@router.get("", response_model=ChatListOut)
def list_chats(me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    chats = (
        db.query(Chat)
        .join(ChatParticipant, ChatParticipant.chat_id == Chat.id)
        .filter(ChatParticipant.user_id == me)
        .order_by(Chat.last_timestamp.desc())
        .all()
    )
    return ChatListOut(chats=[_chat_to_out(c) for c in chats])


@router.post("", response_model=ChatOut)
def create_chat(body: ChatCreateIn, me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    # The caller is always a participant; duplicates collapse in first-seen order.
    members = list(dict.fromkeys([me, *(p.strip() for p in body.participants if p.strip())]))
    if len(members) < 2:
        raise HTTPException(status_code=422, detail="A chat needs at least one other participant")

    chat = Chat(
        last_message="",
        last_timestamp=datetime.utcnow(),
        participants=[ChatParticipant(user_id=u) for u in members],
    )
    db.add(chat)
    db.commit()
    db.refresh(chat)

    logger.info("chat created chat_id=%s participants=%s", chat.id, len(members))
    return _chat_to_out(chat)


@router.get("/{chat_id}", response_model=ChatOut)
def get_chat(chat_id: str, me: str = Depends(current_user_id), db: Session = Depends(get_db)):
    return _chat_to_out(_get_chat_for_member(db, chat_id, me))


@router.post("/{chat_id}/messages", response_model=MessageOut)
def send_message(
    chat_id: str,
    body: MessageIn,
    me: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    chat = _get_chat_for_member(db, chat_id, me)

    now = datetime.utcnow()
    message = Message(chat_id=chat.id, sender_id=me, text=body.text, timestamp=now)
    db.add(message)
    chat.last_message = body.text
    chat.last_timestamp = now
    db.commit()
    db.refresh(message)
    return _message_to_out(message)


@router.get("/{chat_id}/messages", response_model=MessageListOut)
def list_messages(
    chat_id: str,
    after: int | None = Query(None, ge=0),
    limit: int = Query(50, ge=1, le=200),
    me: str = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    """Messages oldest first.

    Clients poll with ``after`` set to the last id they have seen to receive
    only new messages.
    """
    _get_chat_for_member(db, chat_id, me)

    q = db.query(Message).filter(Message.chat_id == chat_id)
    if after is not None:
        q = q.filter(Message.id > after)
    messages = q.order_by(Message.timestamp, Message.id).limit(limit).all()
    return MessageListOut(messages=[_message_to_out(m) for m in messages])
