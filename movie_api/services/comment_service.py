"""
Comment Service Module

Comments on movies, with owner-only edits.
"""

from pydantic import TypeAdapter

from movie_api.cache import keys
from movie_api.cache.invalidation import InvalidationCoordinator
from movie_api.cache.store import CacheStore
from movie_api.core.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE
from movie_api.core.exceptions import MovieNotFoundError, NotFoundError, PermissionDeniedError
from movie_api.models.domain import Comment, Page
from movie_api.repositories.base import CommentRepository, MovieRepository


COMMENT_PAGE_CODEC = TypeAdapter(Page[Comment])


class CommentService:
    """Service for comment operations."""

    def __init__(
        self,
        comments: CommentRepository,
        movies: MovieRepository,
        cache: CacheStore,
        invalidation: InvalidationCoordinator,
    ):
        self.comments = comments
        self.movies = movies
        self.cache = cache
        self.invalidation = invalidation

    async def create_comment(self, user_id: str, movie_id: str, content: str) -> Comment:
        if await self.movies.get(movie_id) is None:
            raise MovieNotFoundError(movie_id)
        comment = await self.comments.create(user_id, movie_id, content)
        await self.invalidation.comment_changed(movie_id=movie_id, user_id=user_id)
        return comment

    async def get_comment(self, comment_id: str) -> Comment:
        comment = await self.comments.get(comment_id)
        if comment is None:
            raise NotFoundError("Comment not found", entity="comment", entity_id=comment_id)
        return comment

    async def update_comment(self, comment_id: str, user_id: str, content: str) -> Comment:
        """
        Replace a comment's text.

        Raises:
            NotFoundError: If the comment does not exist
            PermissionDeniedError: If the caller is not the author
        """
        comment = await self.get_comment(comment_id)
        if comment.user_id != user_id:
            raise PermissionDeniedError("You can only update your own comments")

        updated = await self.comments.update(comment_id, content)
        await self.invalidation.comment_changed(movie_id=comment.movie_id, user_id=comment.user_id)
        return updated

    async def delete_comment(self, comment_id: str, user_id: str, is_admin: bool = False) -> None:
        comment = await self.get_comment(comment_id)
        if comment.user_id != user_id and not is_admin:
            raise PermissionDeniedError("You can only delete your own comments")

        await self.comments.delete(comment_id)
        # Purge the author's views, which may differ from the caller's
        await self.invalidation.comment_changed(movie_id=comment.movie_id, user_id=comment.user_id)

    async def get_movie_comments(
        self, movie_id: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Comment]:
        async def load() -> Page[Comment]:
            items, total = await self.comments.list_for_movie(movie_id, page, limit)
            return Page[Comment].build(items, page, limit, total)

        return await self.cache.get_or_set(
            keys.MOVIE_COMMENTS.key({"page": page, "limit": limit}, movie_id=movie_id),
            keys.MOVIE_COMMENTS.tier,
            COMMENT_PAGE_CODEC,
            load,
        )

    async def get_user_comments(
        self, user_id: str, page: int = DEFAULT_PAGE, limit: int = DEFAULT_PAGE_SIZE
    ) -> Page[Comment]:
        async def load() -> Page[Comment]:
            items, total = await self.comments.list_for_user(user_id, page, limit)
            return Page[Comment].build(items, page, limit, total)

        return await self.cache.get_or_set(
            keys.USER_COMMENTS.key({"page": page, "limit": limit}, user_id=user_id),
            keys.USER_COMMENTS.tier,
            COMMENT_PAGE_CODEC,
            load,
        )
