"""
Unit tests for the movie service.

Tests cache-aside reads and the persist-then-purge write path.
"""

import pytest

from movie_api.cache import keys
from movie_api.core.exceptions import MovieNotFoundError
from movie_api.models.domain import MovieCreate, MovieQuery, MovieUpdate
from movie_api.services.index_service import IndexService
from movie_api.services.movie_service import MovieService


@pytest.fixture
def movie_service(repos, store, coordinator):
    return MovieService(repos.movies, store, coordinator)


class TestMovieReads:
    """Tests for cached catalog reads."""

    @pytest.mark.asyncio
    async def test_get_movie_is_cached(self, movie_service, repos, make_movie, redis):
        """Test that repeated reads hit the database once."""
        movie = await make_movie("Heat")

        first = await movie_service.get_movie(movie.id)
        second = await movie_service.get_movie(movie.id)

        assert first == second == movie
        assert repos.movies.reads["get"] == 1
        assert await redis.exists(keys.MOVIE.key(movie_id=movie.id)) == 1

    @pytest.mark.asyncio
    async def test_unknown_movie(self, movie_service, redis):
        """Test that a missing movie raises and leaves nothing cached."""
        with pytest.raises(MovieNotFoundError):
            await movie_service.get_movie("missing")

        assert await redis.exists(keys.MOVIE.key(movie_id="missing")) == 0

    @pytest.mark.asyncio
    async def test_listing_cached_per_parameters(self, movie_service, repos, make_movie):
        """Test that each page is cached under its own key."""
        for title in ("A", "B", "C"):
            await make_movie(title)

        page1 = await movie_service.get_movies(MovieQuery(page=1, limit=2))
        await movie_service.get_movies(MovieQuery(page=1, limit=2))
        page2 = await movie_service.get_movies(MovieQuery(page=2, limit=2))

        assert repos.movies.reads["list_page"] == 2
        assert len(page1.data) == 2
        assert len(page2.data) == 1
        assert page1.pagination.total == 3
        assert page1.pagination.total_pages == 2


class TestMovieWrites:
    """Tests for writes and the cache entries they purge."""

    @pytest.mark.asyncio
    async def test_update_purges_cached_movie(self, movie_service, make_movie):
        """Test that a read after an update sees the new title."""
        movie = await make_movie("Old title")
        await movie_service.get_movie(movie.id)

        await movie_service.update_movie(movie.id, MovieUpdate(title="New title"))

        assert (await movie_service.get_movie(movie.id)).title == "New title"

    @pytest.mark.asyncio
    async def test_update_only_touches_given_fields(self, movie_service, make_movie):
        """Test that unset fields keep their values."""
        movie = await make_movie("Heat", director="Michael Mann")

        updated = await movie_service.update_movie(movie.id, MovieUpdate(duration=170))

        assert updated.director == "Michael Mann"
        assert updated.duration == 170

    @pytest.mark.asyncio
    async def test_create_purges_listings(self, movie_service, make_movie):
        """Test that a new movie shows up in a previously cached listing."""
        await make_movie("First")
        query = MovieQuery(page=1, limit=10)
        assert (await movie_service.get_movies(query)).pagination.total == 1

        await movie_service.create_movie(MovieCreate(title="Second"))

        assert (await movie_service.get_movies(query)).pagination.total == 2

    @pytest.mark.asyncio
    async def test_delete(self, movie_service, make_movie):
        """Test that a deleted movie is gone from cache and database."""
        movie = await make_movie()
        await movie_service.get_movie(movie.id)

        await movie_service.delete_movie(movie.id)

        with pytest.raises(MovieNotFoundError):
            await movie_service.get_movie(movie.id)

    @pytest.mark.asyncio
    async def test_write_to_unknown_movie(self, movie_service):
        """Test that updates and deletes of unknown ids raise."""
        with pytest.raises(MovieNotFoundError):
            await movie_service.update_movie("missing", MovieUpdate(title="x"))
        with pytest.raises(MovieNotFoundError):
            await movie_service.delete_movie("missing")

    @pytest.mark.asyncio
    async def test_writes_schedule_index_sync(self, repos, store, coordinator):
        """Test that create and delete reach the search index."""
        class RecordingIndex(IndexService):
            def __init__(self):
                super().__init__(None)
                self.calls = []

            def schedule_upsert(self, movie):
                self.calls.append(("upsert", movie.id))

            def schedule_delete(self, movie_id):
                self.calls.append(("delete", movie_id))

        index = RecordingIndex()
        service = MovieService(repos.movies, store, coordinator, index)

        movie = await service.create_movie(MovieCreate(title="Ronin"))
        await service.delete_movie(movie.id)

        assert index.calls == [("upsert", movie.id), ("delete", movie.id)]
