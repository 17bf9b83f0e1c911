"""
Shared fixtures: a "post" resource type with a "like" function, backed by the
in-memory store.
"""

import pytest
import pytest_asyncio

from netobjects import (
    Client,
    FunctionResult,
    MemoryResourceStore,
    PermissionEvaluator,
    Principal,
    RequestOrchestrator,
    ResourceTypeDescriptor,
    ResourceTypeRegistry,
    User,
)


APP = Client(identifier=10, name="test-app", first_party=True)
ALICE = Principal(user=User(1, "alice"), client=APP)
BOB = Principal(user=User(2, "bob"), client=APP)
CAROL = Principal(user=User(3, "carol"), client=APP)
ANONYMOUS = Principal.anonymous()
APP_ONLY = Principal.client_only(APP)

POST_ID = 42


def post_descriptor(**overrides) -> ResourceTypeDescriptor:
    values = dict(
        path="post",
        requires_session=True,
        identifier_key="id",
        function_names={"like"},
        attributes={"id", "text", "likeCount", "authorId"},
        relationships={"likedBy"},
    )
    values.update(overrides)
    return ResourceTypeDescriptor(**values)


class PostEvaluator(PermissionEvaluator):
    """
    Visible to signed-in users except carol, editable by the author,
    likeCount hidden from bob and never editable.
    """

    hidden_from = {3}
    hidden_attributes = {2: {"likeCount"}}

    def can_create(self, principal):
        return principal.has_session

    def is_visible(self, principal, instance):
        return principal.has_session and principal.user.identifier not in self.hidden_from

    def is_editable(self, principal, instance):
        return principal.user is not None and instance.get("authorId") == principal.user.identifier

    def attribute_is_visible(self, principal, instance, attribute):
        hidden = self.hidden_attributes.get(principal.user.identifier if principal.user else None, set())
        return super().attribute_is_visible(principal, instance, attribute) and attribute not in hidden

    def attribute_is_editable(self, principal, instance, attribute):
        return super().attribute_is_editable(principal, instance, attribute) and attribute != "likeCount"

    def relationship_is_editable(self, principal, instance, relationship):
        return False


def make_like_handler(store):
    async def like(principal, instance, payload):
        like_count = (instance.get("likeCount") or 0) + 1
        liked_by = await store.resolve_relationship_targets(instance, "likedBy")
        await store.apply_write(instance, {
            "likeCount": like_count,
            "likedBy": liked_by + [principal.user.identifier],
        })
        return FunctionResult(200, {"likeCount": like_count})

    return like


@pytest.fixture
def store():
    return MemoryResourceStore()


@pytest.fixture
def registry(store):
    registry = ResourceTypeRegistry()
    registry.register(post_descriptor(), PostEvaluator(), {"like": make_like_handler(store)})
    return registry


@pytest.fixture
def orchestrator(registry, store):
    return RequestOrchestrator.new(registry, store)


@pytest_asyncio.fixture
async def seeded_post(registry, store):
    """Post 42 written by alice with two likes."""
    return await store.insert(registry.resolve("post"), POST_ID, {
        "text": "hello world",
        "likeCount": 2,
        "authorId": 1,
        "likedBy": [5, 6],
    })
