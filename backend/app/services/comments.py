"""
Media comments and likes.

Each user has at most one comment per media item; posting again replaces
its text, rating and spoiler flag. Likes toggle: liking twice unlikes.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.comment import CommentLike, MediaComment
from app.models.media import MediaType
from app.models.user import User
from app.services.library import LibraryService, parse_media_type

logger = get_logger(__name__)


class CommentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _usernames(self, user_ids: set[int]) -> dict[int, str]:
        if not user_ids:
            return {}
        result = await self.db.execute(select(User.id, User.username).where(User.id.in_(user_ids)))
        return dict(result.all())

    async def list_comments(self, media_type: str | MediaType, media_id: int) -> list[dict[str, Any]]:
        """Comments on one media item, newest first, each with its author's username."""
        media_type = parse_media_type(media_type)
        result = await self.db.execute(
            select(MediaComment)
            .where(MediaComment.media_type == media_type, MediaComment.media_id == media_id)
            .order_by(MediaComment.created_at.desc(), MediaComment.id.desc())
        )
        comments = list(result.scalars().all())
        usernames = await self._usernames({c.user_id for c in comments})
        return [
            {"comment": c, "username": usernames.get(c.user_id, "Unknown")}
            for c in comments
        ]

    async def post_comment(
        self,
        user: User,
        media_type: str | MediaType,
        media_id: int,
        content: str,
        rating: Optional[float] = None,
        is_spoiler: bool = False,
    ) -> MediaComment:
        media_type = parse_media_type(media_type)
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment cannot be empty")
        if rating is not None and not 1 <= rating <= 10:
            raise ValidationError("Rating must be between 1 and 10")
        await LibraryService(self.db).get_media(media_type, media_id)

        result = await self.db.execute(
            select(MediaComment).where(
                MediaComment.user_id == user.id,
                MediaComment.media_type == media_type,
                MediaComment.media_id == media_id,
            )
        )
        comment = result.scalar_one_or_none()
        if comment is None:
            comment = MediaComment(user_id=user.id, media_type=media_type, media_id=media_id)
            self.db.add(comment)

        comment.content = content
        comment.rating = rating
        comment.is_spoiler = is_spoiler
        await self.db.commit()
        await self.db.refresh(comment)

        logger.info("comment_posted", user_id=user.id, media_type=media_type.value, media_id=media_id)
        return comment

    async def delete_comment(self, user_id: int, comment_id: int) -> None:
        comment = await self.db.get(MediaComment, comment_id)
        if comment is None or comment.user_id != user_id:
            raise NotFoundError("Comment", comment_id)
        await self.db.delete(comment)
        await self.db.commit()

    async def toggle_like(self, user_id: int, comment_id: int) -> tuple[bool, int]:
        """Like or unlike a comment. Returns (liked, likes_count)."""
        comment = await self.db.get(MediaComment, comment_id)
        if comment is None:
            raise NotFoundError("Comment", comment_id)

        result = await self.db.execute(
            select(CommentLike).where(
                CommentLike.comment_id == comment_id,
                CommentLike.user_id == user_id,
            )
        )
        like = result.scalar_one_or_none()

        if like is not None:
            await self.db.delete(like)
            comment.likes_count = max((comment.likes_count or 0) - 1, 0)
            liked = False
        else:
            self.db.add(CommentLike(comment_id=comment_id, user_id=user_id))
            comment.likes_count = (comment.likes_count or 0) + 1
            liked = True

        await self.db.commit()
        return liked, comment.likes_count
