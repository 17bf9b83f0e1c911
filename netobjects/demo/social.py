"""
Social network resource types used by the demo.

Two types: public user profiles and session-only posts. Posts can be liked
and users can befriend each other through resource functions, without write
access to like counts or friend lists.
"""

from typing import Any, Dict
import asyncio

from ..authz.evaluator import PermissionEvaluator
from ..core.types import FunctionResult, Principal, ResourceInstance
from ..registry import ResourceTypeDescriptor, ResourceTypeRegistry
from ..store.types import ResourceStore


USER = ResourceTypeDescriptor(
    path="user",
    requires_session=False,
    identifier_key="id",
    function_names={"befriend"},
    attributes={"id", "username", "email"},
    relationships={"friends", "posts"},
)

POST = ResourceTypeDescriptor(
    path="post",
    requires_session=True,
    identifier_key="id",
    function_names={"like"},
    attributes={"id", "text", "likeCount", "authorId"},
    relationships={"likedBy"},
)


def _is_self(principal: Principal, instance: ResourceInstance) -> bool:
    return principal.user is not None and principal.user.identifier == instance.identifier


class UserEvaluator(PermissionEvaluator):
    """Profiles are public; only the user may edit their own, email is private."""

    def can_create(self, principal: Principal) -> bool:
        # Sign-up happens through the first-party app, without a session
        return principal.client is not None and principal.client.first_party

    def is_visible(self, principal: Principal, instance: ResourceInstance) -> bool:
        return True

    def is_editable(self, principal: Principal, instance: ResourceInstance) -> bool:
        return _is_self(principal, instance)

    def attribute_is_visible(self, principal, instance, attribute):
        if attribute == "email":
            return super().attribute_is_visible(principal, instance, attribute) and _is_self(principal, instance)
        return super().attribute_is_visible(principal, instance, attribute)

    def relationship_is_editable(self, principal, instance, relationship):
        # friends only change through befriend, posts through post creation
        return False


class PostEvaluator(PermissionEvaluator):
    """Posts are visible to any signed-in user and editable by their author."""

    def can_create(self, principal: Principal) -> bool:
        return principal.has_session

    def is_visible(self, principal: Principal, instance: ResourceInstance) -> bool:
        return principal.has_session

    def is_editable(self, principal: Principal, instance: ResourceInstance) -> bool:
        return principal.user is not None and instance.get("authorId") == principal.user.identifier

    def attribute_is_editable(self, principal, instance, attribute):
        if attribute in ("likeCount", "authorId"):
            return False
        return super().attribute_is_editable(principal, instance, attribute)

    def relationship_is_editable(self, principal, instance, relationship):
        return False


def build_social_registry(store: ResourceStore) -> ResourceTypeRegistry:
    """
    Register the user and post types with handlers bound to ``store``.

    The handlers read, modify and write back relationship lists in separate
    store calls, so they share one lock and re-fetch their target under it.
    This keeps concurrent likes and friend requests from losing updates
    within one process; it does not coordinate several processes sharing a
    store.
    """
    lock = asyncio.Lock()

    async def like(principal: Principal, instance: ResourceInstance,
                   payload: Dict[str, Any]) -> FunctionResult:
        async with lock:
            post = await store.fetch(POST, instance.identifier)
            if post is None:
                return FunctionResult(404)

            liked_by = await store.resolve_relationship_targets(post, "likedBy")
            if principal.user.identifier in liked_by:
                return FunctionResult(409, {"likeCount": post.get("likeCount") or 0})

            like_count = (post.get("likeCount") or 0) + 1
            await store.apply_write(post, {
                "likeCount": like_count,
                "likedBy": liked_by + [principal.user.identifier],
            })
        return FunctionResult(200, {"likeCount": like_count})

    async def befriend(principal: Principal, instance: ResourceInstance,
                       payload: Dict[str, Any]) -> FunctionResult:
        if principal.user is None:
            return FunctionResult(401)
        if principal.user.identifier == instance.identifier:
            return FunctionResult(400, {"reason": "cannot befriend yourself"})

        async with lock:
            me = await store.fetch(USER, principal.user.identifier)
            them = await store.fetch(USER, instance.identifier)
            if me is None or them is None:
                return FunctionResult(404)

            their_friends = await store.resolve_relationship_targets(them, "friends")
            my_friends = await store.resolve_relationship_targets(me, "friends")
            if them.identifier not in my_friends:
                await store.apply_write(me, {"friends": my_friends + [them.identifier]})
            if me.identifier not in their_friends:
                await store.apply_write(them, {"friends": their_friends + [me.identifier]})
        return FunctionResult(200, {"friends": True})

    registry = ResourceTypeRegistry()
    registry.register(USER, UserEvaluator(), {"befriend": befriend})
    registry.register(POST, PostEvaluator(), {"like": like})
    return registry
