"""
Chat Service

Multi-turn conversations with the taste assistant. Each reply is generated
from the whole conversation history plus a system prompt describing the user:
their bio, their highest-rated library items and their best match scores.

Usage:
------
    service = ChatService(db)
    conversation, reply = await service.send_message(user, "What should I read next?")
"""

from typing import Optional

from sqlalchemy import desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.db.base import utcnow
from app.models.conversation import Conversation, Message, MessageRole
from app.models.library import UserMedia
from app.models.match import Match
from app.models.media import MediaType
from app.models.user import User
from app.services.library import load_media_map
from app.services.llm import LLMClient, get_llm_client

logger = get_logger(__name__)

TITLE_LENGTH = 50
CONTEXT_ITEM_LIMIT = 50
CONTEXT_ITEMS_PER_TYPE = 10
CONTEXT_MATCH_LIMIT = 10

SYSTEM_PROMPT = """You are a helpful AI assistant for Kindred, a social platform that connects people through their shared media tastes (books, anime, manga, movies, music).

The user you're talking to is @{username}.

{context}

Your role is to:
- Help users understand their media taste and compatibility with others
- Provide personalized recommendations based on their ratings and preferences
- Answer questions about their library, matches, and the platform
- Be friendly, engaging, and knowledgeable about media

When making recommendations, consider their actual ratings and preferences. When discussing matches, reference their compatibility scores and shared items."""


def conversation_title(message: str) -> str:
    if len(message) > TITLE_LENGTH:
        return message[:TITLE_LENGTH] + "..."
    return message


def _describe(media_type: MediaType, media) -> str:
    if media_type == MediaType.BOOK and media.author:
        return f"{media.title} by {media.author}"
    if media_type == MediaType.MUSIC and media.artist:
        return f"{media.title} by {media.artist}"
    if media_type == MediaType.MOVIE and media.year:
        return f"{media.title} ({media.year})"
    return media.title


class ChatService:
    def __init__(self, db: AsyncSession, llm: Optional[LLMClient] = None):
        self.db = db
        self._llm = llm

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = get_llm_client()
        return self._llm

    # ================================
    # Conversations
    # ================================

    async def list_conversations(self, user_id: int) -> list[Conversation]:
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.user_id == user_id)
            .order_by(desc(Conversation.updated_at), desc(Conversation.id))
        )
        return list(result.scalars().all())

    async def get_conversation(self, conversation_id: int, user_id: int) -> Conversation:
        """Someone else's conversation is reported as missing."""
        result = await self.db.execute(
            select(Conversation).where(
                Conversation.id == conversation_id,
                Conversation.user_id == user_id,
            )
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFoundError("Conversation", conversation_id)
        return conversation

    async def get_messages(self, conversation_id: int, user_id: int) -> list[Message]:
        await self.get_conversation(conversation_id, user_id)
        result = await self.db.execute(
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at, Message.id)
        )
        return list(result.scalars().all())

    async def delete_conversation(self, conversation_id: int, user_id: int) -> None:
        conversation = await self.get_conversation(conversation_id, user_id)
        await self.db.delete(conversation)
        await self.db.commit()
        logger.info("conversation_deleted", user_id=user_id, conversation_id=conversation_id)

    # ================================
    # User context
    # ================================

    async def build_user_context(self, user: User) -> str:
        lines: list[str] = []
        if user.bio:
            lines.append(f'User bio: "{user.bio}"')
            lines.append("")

        rows = (
            await self.db.execute(
                select(UserMedia)
                .where(UserMedia.user_id == user.id, UserMedia.rating.is_not(None))
                .order_by(UserMedia.rating.desc(), UserMedia.id)
                .limit(CONTEXT_ITEM_LIMIT)
            )
        ).scalars().all()

        if rows:
            media_map = await load_media_map(self.db, ((r.media_type, r.media_id) for r in rows))
            by_type: dict[MediaType, list[str]] = {}
            for row in rows:
                media = media_map.get((row.media_type, row.media_id))
                if media is None:
                    continue
                entries = by_type.setdefault(row.media_type, [])
                if len(entries) < CONTEXT_ITEMS_PER_TYPE:
                    entries.append(f"  - {_describe(row.media_type, media)} - {row.rating:g}/10")

            if by_type:
                lines.append("User's media library:")
                for media_type, entries in by_type.items():
                    lines.append("")
                    lines.append(f"{media_type.value.capitalize()} (top rated):")
                    lines.extend(entries)

        scores = (
            await self.db.execute(
                select(Match.similarity_score)
                .where(or_(Match.user1_id == user.id, Match.user2_id == user.id))
                .order_by(Match.similarity_score.desc())
                .limit(CONTEXT_MATCH_LIMIT)
            )
        ).scalars().all()

        if scores:
            average = sum(scores) / len(scores)
            lines.append("")
            lines.append(
                f"User has {len(scores)} matches with an average compatibility score of {average:.0f}%."
            )
            lines.append(f"Top match: {scores[0]:g}%")

        return "\n".join(lines)

    async def build_system_prompt(self, user: User) -> str:
        context = await self.build_user_context(user)
        return SYSTEM_PROMPT.format(username=user.username, context=context)

    # ================================
    # Sending
    # ================================

    async def send_message(
        self,
        user: User,
        message: str,
        conversation_id: Optional[int] = None,
    ) -> tuple[Conversation, str]:
        """
        Store the user's message, ask the model and store its reply.

        Raises LLMUnavailableError (503) before anything is stored when no
        API key is configured.
        """
        message = (message or "").strip()
        if not message:
            raise ValidationError("Message is required")

        llm = self.llm

        if conversation_id is None:
            conversation = Conversation(user_id=user.id, title=conversation_title(message))
            self.db.add(conversation)
            await self.db.flush()
        else:
            conversation = await self.get_conversation(conversation_id, user.id)

        self.db.add(Message(conversation_id=conversation.id, role=MessageRole.USER, content=message))
        await self.db.commit()

        history = await self.get_messages(conversation.id, user.id)
        system_prompt = await self.build_system_prompt(user)

        reply = await llm.complete(
            messages=[{"role": m.role.value, "content": m.content} for m in history],
            system=system_prompt,
        )

        self.db.add(Message(conversation_id=conversation.id, role=MessageRole.ASSISTANT, content=reply))
        conversation.updated_at = utcnow()
        await self.db.commit()
        await self.db.refresh(conversation)

        logger.info(
            "chat_reply_generated",
            user_id=user.id,
            conversation_id=conversation.id,
            history_length=len(history),
        )
        return conversation, reply
