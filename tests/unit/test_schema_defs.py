"""
Unit tests for schema descriptors and model declaration.

Tests cover:
- Descriptor factories and their tagged kinds
- Declaration-time validation
- Schema collection on Model subclasses
- Lazy relation target resolution
"""

import pytest

from treeorm import (
    AttrDef,
    BelongsToDef,
    ConfigurationError,
    FieldKind,
    HasManyDef,
    Model,
    attr,
    belongs_to,
    has_many,
)
from treeorm.handlers import HandlerKind

from tests.models import Bad, Blog, Post, User


class TestDescriptorFactories:
    """Tests for attr(), belongs_to() and has_many()."""

    def test_attr_from_string_kind(self):
        definition = attr("number", default=0, server_timestamp=False)

        assert isinstance(definition, AttrDef)
        assert definition.kind is HandlerKind.ATTR
        assert definition.field_kind is FieldKind.NUMBER
        assert definition.default == 0
        assert definition.has_default

    def test_attr_unknown_kind_raises(self):
        with pytest.raises(ConfigurationError, match="Invalid field kind"):
            attr("decimal")

    def test_callable_default_evaluated_each_time(self):
        calls = []
        definition = attr("number", default=lambda: calls.append(1) or len(calls))

        assert definition.default_value() == 1
        assert definition.default_value() == 2

    def test_relation_kinds(self):
        assert isinstance(belongs_to(User), BelongsToDef)
        assert belongs_to(User).kind is HandlerKind.BELONGS_TO
        assert isinstance(has_many(User), HasManyDef)
        assert has_many(User).kind is HandlerKind.HAS_MANY
        assert has_many(User).is_relation
        assert not attr("str").is_relation

    def test_embedded_with_inverse_raises(self):
        """Embedding and inverses are mutually exclusive."""
        with pytest.raises(ConfigurationError, match="cannot declare an inverse"):
            belongs_to(User, embedded=True, inverse="blog")

        with pytest.raises(ConfigurationError):
            has_many(User, embedded=True, inverse="posts")


class TestModelSchema:
    """Tests for schema collection on Model subclasses."""

    def test_schema_in_declaration_order(self):
        assert list(User.schema) == ["name", "blog", "posts"]

    def test_descriptor_names_set(self):
        assert Blog.schema["owner"].name == "owner"
        assert Blog.owner is Blog.schema["owner"]

    def test_plural_name_defaults(self):
        assert Blog.plural_name == "blogs"
        assert Post.plural_name == "posts"

    def test_explicit_plural_name_kept(self):
        class Person(Model):
            model_name = "person"
            plural_name = "people"

        assert Person.plural_name == "people"

    def test_subclass_inherits_schema(self):
        class Admin(User):
            model_name = "admin"
            level = attr("number")

        assert list(Admin.schema) == ["name", "blog", "posts", "level"]
        assert Admin.plural_name == "admins"

    @pytest.mark.parametrize("reserved", ["id", "store", "save", "is_new", "path"])
    def test_reserved_names_rejected(self, reserved):
        with pytest.raises(ConfigurationError, match="reserved"):
            type("Reserved", (Model,), {"model_name": "reserved", reserved: attr("str")})


class TestTargetResolution:
    """Relation targets given by name resolve through the registry."""

    def test_string_target_resolves(self):
        assert Blog.schema["owner"].target_class is User
        assert Blog.schema["posts"].target_class is Post

    def test_class_target(self):
        assert User.schema["blog"].target_class is Blog

    def test_unknown_target_raises(self):
        with pytest.raises(ConfigurationError, match="NoSuchModel"):
            Bad.schema["missing_target"].target_class
