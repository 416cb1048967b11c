"""
Integration tests for path prefixes.

Tests cover:
- Models stored under a registered prefix group
- Missing prefix registration
- Prefixes combined with a base path and settings
"""

import pytest

from treeorm import ConfigurationError, InMemoryTreeDatabase, Store, StoreSettings

from tests.models import Comment, Post, Vote


@pytest.fixture
def prefixed_store(database):
    store = Store(database)
    store.register_path_prefix("post", "/post/p1")
    return store


class TestPathPrefix:
    """Tests for models with a path_prefix_group."""

    def test_record_path(self, prefixed_store):
        comment = prefixed_store.create_record(Comment, {"id": "c1"})

        assert comment.path == "/post/p1/comments/c1"

    def test_unregistered_prefix_on_create(self, store):
        with pytest.raises(ConfigurationError, match="requires path prefix 'post'"):
            store.create_record(Comment, {"id": "c1"})

        assert store.peek_all() == []

    def test_unregistered_prefix_on_find(self, store):
        with pytest.raises(ConfigurationError):
            store.find_record(Vote, "v1")

    def test_models_without_group_ignore_prefixes(self, prefixed_store):
        post = prefixed_store.create_record(Post, {"id": "p1"})

        assert post.path == "/posts/p1"

    def test_with_base_path(self, database):
        store = Store(database, base_path="/test", path_prefix={"post": "post/p1"})

        vote = store.create_record(Vote, {"id": "v1"})

        assert vote.path == "/test/post/p1/votes/v1"

    def test_from_settings(self, database):
        settings = StoreSettings(path_prefix={"post": "/post/p2"})

        store = Store.from_settings(settings, database=database)

        assert store.collection_path(Comment) == "/post/p2/comments"

    @pytest.mark.asyncio
    async def test_save_and_reload(self, prefixed_store, database):
        """Prefixed records are saved and loaded at their prefixed path."""
        comment = prefixed_store.create_record(Comment, {"id": "c1", "text": "Nice"})
        vote = prefixed_store.create_record(Vote, {"id": "v1", "score": 5, "comment": comment})

        await vote.save()

        assert await database.get("/post/p1/comments/c1") == {
            "text": "Nice",
            "votes": {"v1": True},
        }
        assert await database.get("/post/p1/votes/v1") == {"score": 5, "comment": "c1"}

        other = Store(database)
        other.register_path_prefix("post", "/post/p1")
        loaded = await other.find_record(Comment, "c1")
        assert loaded.text == "Nice"
        assert [v.id for v in loaded.votes] == ["v1"]

    @pytest.mark.asyncio
    async def test_find_under_prefix(self):
        database = InMemoryTreeDatabase(
            {"post": {"p1": {"comments": {"c1": {"text": "First"}}}}}
        )
        store = Store(database, path_prefix={"post": "/post/p1"})

        comment = await store.find_record(Comment, "c1")

        assert comment.text == "First"
