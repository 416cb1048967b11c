"""
Integration tests for embedded records.

Tests cover:
- Embedded to-one and to-many relations
- Saving embedded records through their parent
- Materializing embedded records from remote data
- Error cases for embedding
"""

import pytest

from treeorm import (
    DELETE,
    CannotSaveDetachedEmbeddedError,
    EmbeddedRecordNotLoadedError,
    InMemoryTreeDatabase,
    NotEmbeddableError,
    RecordDeletedError,
    SerializationError,
    Store,
    plan_paths,
)

from tests.models import Bad, Photo, Post, User


class TestEmbeddedBelongsTo:
    """Post.hero_image holds an embedded Photo."""

    def test_plan_nests_child_under_parent(self, store):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        post = store.create_record(Post, {"id": "p1", "title": "Hello", "hero_image": photo})

        plan = plan_paths(post)

        assert plan == {
            "/posts/p1/title": "Hello",
            "/posts/p1/hero_image/caption": "Sunset",
            "/posts/p1/hero_image/id": "photo1",
        }
        assert not any(path.startswith("/photos") for path in plan)

    @pytest.mark.asyncio
    async def test_saved_inside_parent(self, store, database):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo})

        await post.save()

        assert await database.get("/posts/p1/hero_image") == {"caption": "Sunset", "id": "photo1"}
        assert await database.get("/photos") is None
        assert photo._embedded_in is post
        assert photo.path == "/posts/p1/hero_image"
        assert not photo.has_pending_changes

    @pytest.mark.asyncio
    async def test_child_save_delegates_to_parent(self, store, database):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo})
        await post.save()

        photo.caption = "Sunrise"
        await photo.save()

        assert await database.get("/posts/p1/hero_image/caption") == "Sunrise"
        assert database.updates[-1] == {
            "/posts/p1/hero_image/caption": "Sunrise",
            "/posts/p1/hero_image/id": "photo1",
        }

    @pytest.mark.asyncio
    async def test_loaded_from_remote(self, store, database):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        await store.create_record(Post, {"id": "p1", "hero_image": photo}).save()

        fresh = Store(database)
        post = await fresh.find_record(Post, "p1")
        hero = post.hero_image

        assert isinstance(hero, Photo)
        assert hero.id == "photo1"
        assert hero.caption == "Sunset"
        assert hero._embedded_in is post
        assert not hero.is_new

    @pytest.mark.asyncio
    async def test_clearing_deletes_payload(self, store, database):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        post = store.create_record(Post, {"id": "p1", "title": "Hello", "hero_image": photo})
        await post.save()

        post.hero_image = None
        await post.save()

        assert post.hero_image is None
        assert await database.get("/posts/p1") == {"title": "Hello"}

    @pytest.mark.asyncio
    async def test_embedded_relation_without_inverse(self, store, database):
        user = store.create_record(User, {"id": "ann"})
        photo = store.create_record(Photo, {"id": "photo1", "taken_by": user, "tagged_users": [user]})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo})

        await post.save()

        assert await database.get("/posts/p1/hero_image") == {
            "id": "photo1",
            "taken_by": "ann",
            "tagged_users": {"ann": True},
        }

    def test_clearing_releases_child(self, store):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo})

        post.hero_image = None

        assert photo._embedded_in is None
        assert post._embedded_records["hero_image"] == {}
        assert plan_paths(post) == {"/posts/p1/hero_image": DELETE}

    def test_replacing_releases_previous_child(self, store):
        photo1 = store.create_record(Photo, {"id": "photo1", "caption": "One"})
        photo2 = store.create_record(Photo, {"id": "photo2", "caption": "Two"})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo1})

        post.hero_image = photo2

        assert photo1._embedded_in is None
        assert post.hero_image is photo2
        assert list(post._embedded_records["hero_image"]) == ["photo2"]

    @pytest.mark.asyncio
    async def test_rollback_restores_cleared_child(self, store):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo})
        await post.save()
        post.hero_image = None

        post.rollback()

        hero = post.hero_image
        assert hero.id == "photo1"
        assert hero.caption == "Sunset"
        assert hero._embedded_in is post


class TestEmbeddedHasMany:
    """Post.photos holds embedded Photos keyed by id."""

    @pytest.mark.asyncio
    async def test_children_keyed_by_id(self, store, database):
        photo1 = store.create_record(Photo, {"id": "photo1", "caption": "One"})
        photo2 = store.create_record(Photo, {"id": "photo2", "caption": "Two"})
        post = store.create_record(Post, {"id": "p1", "photos": [photo1, photo2]})

        await post.save()

        assert await database.get("/posts/p1/photos") == {
            "photo1": {"caption": "One"},
            "photo2": {"caption": "Two"},
        }
        assert photo2.path == "/posts/p1/photos/photo2"
        assert post.photos.ids == ["photo1", "photo2"]

    @pytest.mark.asyncio
    async def test_removing_child_deletes_it(self, store, database):
        photo1 = store.create_record(Photo, {"id": "photo1", "caption": "One"})
        photo2 = store.create_record(Photo, {"id": "photo2", "caption": "Two"})
        post = store.create_record(Post, {"id": "p1", "photos": [photo1, photo2]})
        await post.save()

        post.photos = [photo1]

        assert plan_paths(post) == {"/posts/p1/photos/photo2": DELETE}
        await post.save()
        assert await database.get("/posts/p1/photos") == {"photo1": {"caption": "One"}}
        assert post.photos.ids == ["photo1"]

    @pytest.mark.asyncio
    async def test_deleted_child_is_deleted(self, store, database):
        photo1 = store.create_record(Photo, {"id": "photo1", "caption": "One"})
        post = store.create_record(Post, {"id": "p1", "title": "Hello", "photos": [photo1]})
        await post.save()

        await photo1.delete()
        await post.save()

        assert await database.get("/posts/p1") == {"title": "Hello"}
        assert post.photos.ids == []

    @pytest.mark.asyncio
    async def test_loaded_from_remote_many(self):
        database = InMemoryTreeDatabase({
            "posts": {"p1": {"photos": {"photo1": {"caption": "One"}, "photo2": {"caption": "Two"}}}}
        })
        store = Store(database)

        post = await store.find_record(Post, "p1")

        assert [photo.caption for photo in post.photos] == ["One", "Two"]
        assert all(photo._embedded_in is post for photo in post.photos)

    @pytest.mark.asyncio
    async def test_refresh_drops_removed_children(self, store):
        post = store.push_record(Post, "p1", {"photos": {"photo1": {"caption": "One"}}})
        photo1 = post.photos[0]

        store.push_record_data(post, {"photos": {"photo2": {"caption": "Two"}}})

        assert post.photos.ids == ["photo2"]
        assert photo1._embedded_in is None


class TestEmbeddedErrors:
    """Misuse of embedded relations."""

    def test_detached_path_raises(self, store):
        photo = store.create_record(Photo, {"id": "photo1"})

        with pytest.raises(CannotSaveDetachedEmbeddedError):
            photo.path

    @pytest.mark.asyncio
    async def test_detached_save_raises(self, store):
        photo = store.create_record(Photo, {"id": "photo1"})

        with pytest.raises(CannotSaveDetachedEmbeddedError):
            await photo.save()

    def test_non_embeddable_belongs_to(self, store):
        user = store.create_record(User, {"id": "ann"})
        bad = store.create_record(Bad, {"id": "bad1"})

        with pytest.raises(NotEmbeddableError):
            bad.invalid_embed_belongs_to = user

        assert bad._local == {}

    def test_non_embeddable_has_many(self, store):
        user = store.create_record(User, {"id": "ann"})
        bad = store.create_record(Bad, {"id": "bad1"})

        with pytest.raises(NotEmbeddableError):
            bad.invalid_embed_has_many = [user]

    def test_unloaded_child_raises(self, store):
        photo = store.create_record(Photo, {"id": "photo1"})
        post = store.create_record(Post, {"id": "p1", "hero_image": photo})

        store.unload_record(photo)

        with pytest.raises(EmbeddedRecordNotLoadedError):
            post.hero_image
        with pytest.raises(EmbeddedRecordNotLoadedError):
            plan_paths(post)

    @pytest.mark.asyncio
    async def test_payload_without_id(self, caplog):
        database = InMemoryTreeDatabase({"posts": {"p1": {"hero_image": {"caption": "x"}}}})
        store = Store(database)

        post = await store.find_record(Post, "p1")

        assert "has no id" in caplog.text
        with pytest.raises(SerializationError, match="does not have an id"):
            post.hero_image

    @pytest.mark.asyncio
    async def test_embedding_deleted_child_raises(self, store):
        photo = store.create_record(Photo, {"id": "photo1", "caption": "Sunset"})
        await photo.delete()
        post = store.create_record(Post, {"id": "p1"})

        with pytest.raises(RecordDeletedError):
            post.hero_image = photo
        with pytest.raises(RecordDeletedError):
            post.photos = [photo]

        assert post._local == {}
        assert photo._embedded_in is None
