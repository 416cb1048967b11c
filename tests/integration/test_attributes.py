"""
Integration tests for scalar attributes.

Tests cover:
- Reading and writing every field kind through save and reload
- Defaults and server timestamps
- Pending change tracking and rollback
- Lazy type checking of remote data
"""

from datetime import datetime, timezone

import pytest

from treeorm import (
    InMemoryTreeDatabase,
    RecordDeletedError,
    RollbackOfDeletedUnsupportedError,
    Store,
    TypeMismatchError,
)

from tests.models import Blog


class TestAttributeValues:
    """Values survive a save and a reload in a new store."""

    @pytest.mark.asyncio
    async def test_round_trip_all_kinds(self, store, database):
        created = datetime(2020, 1, 1, 12, 0, tzinfo=timezone.utc)
        blog = store.create_record(Blog, {
            "id": "b1",
            "name": "Notes",
            "description": "",
            "created_date": created,
            "published": True,
            "ranking": 0,
            "config": {"theme": "dark", "tags": ["a", "b"]},
        })
        await blog.save()

        reloaded = await Store(database).find_record(Blog, "b1")

        assert reloaded is not blog
        assert reloaded.name == "Notes"
        assert reloaded.description == ""
        assert reloaded.created_date == created
        assert reloaded.published is True
        assert reloaded.ranking == 0
        assert reloaded.config == {"theme": "dark", "tags": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_stored_forms(self, store, database):
        blog = store.create_record(Blog, {
            "id": "b1",
            "created_date": datetime(2020, 1, 1, tzinfo=timezone.utc),
            "config": {"a": 1},
        })
        await blog.save()

        assert await database.get("/blogs/b1/created_date") == "Wed, 01 Jan 2020 00:00:00 GMT"
        assert await database.get("/blogs/b1/config") == '{"a": 1}'

    def test_unset_attribute_is_none(self, store):
        blog = store.create_record(Blog, {"id": "b1"})

        assert blog.description is None
        assert blog.published is None

    def test_pending_value_read_back(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Notes"})

        blog.name = "Renamed"

        assert blog.name == "Renamed"

    def test_set_wrong_kind_raises(self, store):
        blog = store.create_record(Blog, {"id": "b1"})

        with pytest.raises(TypeMismatchError) as exc_info:
            blog.ranking = "high"

        assert exc_info.value.attribute == "ranking"
        assert "ranking" not in blog._local


class TestDefaults:
    """Tests for default values and server timestamps."""

    def test_default_read_before_save(self, store):
        blog = store.create_record(Blog, {"id": "b1"})

        assert blog.featured is False
        assert isinstance(blog.created_date, datetime)

    @pytest.mark.asyncio
    async def test_default_persisted_on_save(self, store, database):
        blog = store.create_record(Blog, {"id": "b1", "name": "Notes"})

        await blog.save()

        stored = await database.get("/blogs/b1")
        assert stored["featured"] is False
        assert "created_date" in stored

    @pytest.mark.asyncio
    async def test_server_timestamp_read_back(self, store, database):
        """After save the record sees the time the database wrote."""
        blog = store.create_record(Blog, {"id": "b1", "name": "Notes"})
        assert blog.updated_time is None

        await blog.save()

        assert isinstance(blog.updated_time, int)
        assert blog.updated_time == await database.get("/blogs/b1/updated_time")

    @pytest.mark.asyncio
    async def test_server_timestamp_updated_on_every_save(self, store, database):
        blog = store.create_record(Blog, {"id": "b1", "name": "Notes"})
        await blog.save()
        await database.set("/blogs/b1/updated_time", 1)
        blog._remote["updated_time"] = 1

        blog.name = "Renamed"
        await blog.save()

        assert blog.updated_time > 1


class TestDirtyState:
    """Tests for pending change tracking."""

    @pytest.mark.asyncio
    async def test_change_kind_transitions(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Notes"})
        assert blog.change_kind == "created"
        assert blog.has_pending_changes

        await blog.save()
        assert blog.change_kind is None
        assert not blog.has_pending_changes
        assert not blog.is_new

        blog.name = "Renamed"
        assert blog.change_kind == "updated"

        await blog.delete()
        assert blog.change_kind == "deleted"

    @pytest.mark.asyncio
    async def test_changed_attributes(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Old"})
        await blog.save()

        blog.name = "New"

        assert blog.changed_attributes() == {"name": ("Old", "New")}

    @pytest.mark.asyncio
    async def test_rollback_restores_remote(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Old"})
        await blog.save()
        blog.name = "New"

        blog.rollback()

        assert blog.name == "Old"
        assert blog.change_kind is None

    def test_rollback_new_record_deletes(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Old"})

        blog.rollback()

        assert blog.is_deleted
        assert blog.change_kind == "deleted"

    def test_rollback_deleted_raises(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Old"})
        blog.rollback()

        with pytest.raises(RollbackOfDeletedUnsupportedError):
            blog.rollback()

    def test_deleted_record_access_raises(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Old"})
        blog.rollback()

        with pytest.raises(RecordDeletedError):
            blog.name

        with pytest.raises(RecordDeletedError):
            blog.name = "New"

    @pytest.mark.asyncio
    async def test_fetch_remote_value(self, store):
        blog = store.create_record(Blog, {"id": "b1", "name": "Old", "ranking": 5})
        await blog.save()
        blog.name = "Local"

        assert await blog.fetch_remote_value("name") == "Old"
        assert await blog.fetch_remote_value("ranking") == 5
        assert await blog.fetch_remote_value("description") is None
        assert blog.name == "Local"


class TestRemoteData:
    """Malformed remote data fails lazily, only for the bad attribute."""

    @pytest.mark.asyncio
    async def test_bad_remote_value_raises_on_read(self):
        database = InMemoryTreeDatabase({"blogs": {"b1": {"name": "Notes", "ranking": "high"}}})
        store = Store(database)

        blog = await store.find_record(Blog, "b1")

        assert blog.name == "Notes"
        with pytest.raises(TypeMismatchError) as exc_info:
            blog.ranking
        assert exc_info.value.attribute == "ranking"
