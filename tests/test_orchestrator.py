"""
Tests for the request orchestrator.
"""

import json

import pytest
from unittest.mock import AsyncMock, patch

from netobjects import (
    Config,
    FunctionResult,
    Operation,
    RequestOrchestrator,
    ResourceRequest,
    ResourceTypeRegistry,
)
from netobjects.errors import (
    ErrorCode,
    ForbiddenError,
    HandlerFailureError,
    InvalidDescriptorError,
    InvalidRequestError,
    NotFoundError,
    RegistryFrozenError,
    SessionRequiredError,
    UnknownFieldError,
    UnknownFunctionError,
    UnknownResourceError,
)

from conftest import (
    ALICE,
    ANONYMOUS,
    APP_ONLY,
    BOB,
    CAROL,
    POST_ID,
    PostEvaluator,
    post_descriptor,
)


class TestOrchestratorConstruction:
    """Test RequestOrchestrator.new"""

    def test_new_freezes_registry(self, registry, store):
        orchestrator = RequestOrchestrator.new(registry, store)

        assert registry.frozen
        assert orchestrator.audit_logger is not None
        with pytest.raises(RegistryFrozenError):
            registry.register(post_descriptor(path="comment", function_names=set()), PostEvaluator())

    def test_new_rejects_invalid_config(self, registry, store):
        with pytest.raises(ValueError):
            RequestOrchestrator.new(registry, store, Config(log_level="LOUD"))
        assert not registry.frozen

    def test_audit_can_be_disabled(self, registry, store):
        orchestrator = RequestOrchestrator.new(registry, store, Config(audit_enabled=False))
        assert orchestrator.audit_logger is None

    def test_verify_evaluators_rejects_widening(self, store):
        from netobjects import ResourceInstance

        class WideningEvaluator(PostEvaluator):
            def relationship_is_visible(self, principal, instance, relationship):
                return True

        registry = ResourceTypeRegistry()
        registry.register(post_descriptor(function_names=set()), WideningEvaluator())
        sample = ResourceInstance("post", 1, {"id": 1, "authorId": 1}, {"likedBy": []})

        with pytest.raises(InvalidDescriptorError) as exc_info:
            RequestOrchestrator.new(
                registry, store, Config(verify_evaluators=True),
                sample_principals=[ALICE, ANONYMOUS],
                sample_instances={"post": [sample]},
            )
        assert "relationship:likedBy:view" in str(exc_info.value)

    def test_verify_evaluators_accepts_narrowing(self, registry, store):
        from netobjects import ResourceInstance

        sample = ResourceInstance("post", 1, {"id": 1, "authorId": 1}, {"likedBy": []})
        orchestrator = RequestOrchestrator.new(
            registry, store, Config(verify_evaluators=True),
            sample_principals=[ALICE, BOB, CAROL, ANONYMOUS],
            sample_instances={"post": [sample]},
        )
        assert orchestrator.registry is registry


class TestSessionAndVisibility:
    """Test session gating and not-found masking"""

    @pytest.mark.asyncio
    async def test_unknown_path(self, orchestrator):
        with pytest.raises(UnknownResourceError):
            await orchestrator.read("comment", ALICE, 1)

    @pytest.mark.asyncio
    async def test_session_checked_before_lookup(self, orchestrator, seeded_post):
        for identifier in (POST_ID, 9999):
            with pytest.raises(SessionRequiredError):
                await orchestrator.read("post", APP_ONLY, identifier)
            with pytest.raises(SessionRequiredError):
                await orchestrator.invoke("post", ANONYMOUS, identifier, "like")

    @pytest.mark.asyncio
    async def test_invisible_and_missing_are_indistinguishable(self, orchestrator, seeded_post):
        with pytest.raises(NotFoundError) as hidden:
            await orchestrator.read("post", CAROL, POST_ID)
        with pytest.raises(NotFoundError) as missing:
            await orchestrator.read("post", CAROL, 9999)

        assert hidden.value.to_dict()["error"] == missing.value.to_dict()["error"]
        assert hidden.value.message == missing.value.message
        assert hidden.value.status_code == missing.value.status_code

        hidden_response = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.READ, principal=CAROL, identifier=POST_ID
        ))
        missing_response = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.READ, principal=CAROL, identifier=9999
        ))
        assert hidden_response.status_code == missing_response.status_code == 404
        assert hidden_response.error_code == missing_response.error_code == "not_found"

    @pytest.mark.asyncio
    async def test_invisible_instance_cannot_be_written_or_invoked(self, orchestrator, seeded_post, store):
        with pytest.raises(NotFoundError):
            await orchestrator.update("post", CAROL, POST_ID, {"text": "mine now"})
        with pytest.raises(NotFoundError):
            await orchestrator.invoke("post", CAROL, POST_ID, "like")
        with pytest.raises(NotFoundError):
            await orchestrator.delete("post", CAROL, POST_ID)

        post = await store.fetch(post_descriptor(), POST_ID)
        assert post.get("text") == "hello world"
        assert post.get("likeCount") == 2


class TestRead:
    """Test field-filtered reads"""

    @pytest.mark.asyncio
    async def test_read_requested_fields(self, orchestrator, seeded_post):
        body = await orchestrator.read("post", ALICE, POST_ID, ["text", "likeCount", "likedBy"])
        assert body == {"text": "hello world", "likeCount": 2, "likedBy": [5, 6]}

    @pytest.mark.asyncio
    async def test_hidden_fields_silently_omitted(self, orchestrator, seeded_post):
        body = await orchestrator.read("post", BOB, POST_ID, ["text", "likeCount"])
        assert body == {"text": "hello world"}

    @pytest.mark.asyncio
    async def test_read_all_fields_by_default(self, orchestrator, seeded_post):
        body = await orchestrator.read("post", ALICE, POST_ID)
        assert body == {
            "id": POST_ID,
            "text": "hello world",
            "likeCount": 2,
            "authorId": 1,
            "likedBy": [5, 6],
        }

    @pytest.mark.asyncio
    async def test_unknown_field(self, orchestrator, seeded_post):
        with pytest.raises(UnknownFieldError) as exc_info:
            await orchestrator.read("post", ALICE, POST_ID, ["text", "views", "shares"])
        assert exc_info.value.fields == ["shares", "views"]
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_field_names_must_be_a_list(self, orchestrator, seeded_post):
        with pytest.raises(InvalidRequestError):
            await orchestrator.read("post", ALICE, POST_ID, "text")

        response = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.READ, principal=ALICE,
            identifier=POST_ID, fields="text",
        ))
        assert (response.status_code, response.error_code) == (400, "invalid_request")

    @pytest.mark.asyncio
    async def test_read_does_not_leak_between_requests(self, orchestrator, seeded_post):
        body = await orchestrator.read("post", ALICE, POST_ID, ["likedBy"])
        body["likedBy"].append(99)

        again = await orchestrator.read("post", ALICE, POST_ID, ["likedBy"])
        assert again == {"likedBy": [5, 6]}

    @pytest.mark.asyncio
    async def test_read_records_field_metrics(self, orchestrator, seeded_post):
        await orchestrator.read("post", BOB, POST_ID, ["text", "likeCount", "likedBy"])

        metrics = orchestrator.metrics
        assert metrics.get_count("fields_post_attribute_true") == 1
        assert metrics.get_count("fields_post_attribute_false") == 1
        assert metrics.get_count("fields_post_relationship_true") == 1
        assert metrics.get_count("requests_post_read_served") == 1


class TestUpdate:
    """Test all-or-nothing writes"""

    @pytest.mark.asyncio
    async def test_editable_write_applied(self, orchestrator, seeded_post, store):
        await orchestrator.update("post", ALICE, POST_ID, {"text": "edited"})
        post = await store.fetch(post_descriptor(), POST_ID)
        assert post.get("text") == "edited"

    @pytest.mark.asyncio
    async def test_partially_denied_write_changes_nothing(self, orchestrator, seeded_post, store):
        with patch.object(store, "apply_write", new=AsyncMock()) as apply_write:
            with pytest.raises(ForbiddenError) as exc_info:
                await orchestrator.update("post", ALICE, POST_ID, {"text": "edited", "likeCount": 1000})

        assert exc_info.value.denied_count == 1
        apply_write.assert_not_called()

        post = await store.fetch(post_descriptor(), POST_ID)
        assert post.get("text") == "hello world"
        assert post.get("likeCount") == 2

    @pytest.mark.asyncio
    async def test_non_editable_instance_forbidden(self, orchestrator, seeded_post):
        with pytest.raises(ForbiddenError):
            await orchestrator.update("post", BOB, POST_ID, {"text": "edited"})

    @pytest.mark.asyncio
    async def test_identifier_cannot_be_written(self, orchestrator, seeded_post, store):
        with pytest.raises(ForbiddenError):
            await orchestrator.update("post", ALICE, POST_ID, {"id": 7})
        assert await store.fetch(post_descriptor(), POST_ID) is not None
        assert await store.fetch(post_descriptor(), 7) is None

    @pytest.mark.asyncio
    async def test_unknown_field_in_write_set(self, orchestrator, seeded_post):
        with pytest.raises(UnknownFieldError):
            await orchestrator.update("post", ALICE, POST_ID, {"text": "edited", "views": 1})

    @pytest.mark.asyncio
    async def test_empty_write_set(self, orchestrator, seeded_post):
        with pytest.raises(InvalidRequestError):
            await orchestrator.update("post", ALICE, POST_ID, {})

    @pytest.mark.asyncio
    async def test_denied_relationship_write(self, orchestrator, seeded_post):
        with pytest.raises(ForbiddenError):
            await orchestrator.update("post", ALICE, POST_ID, {"likedBy": [1]})

    @pytest.mark.asyncio
    async def test_invalid_relationship_targets(self, orchestrator, seeded_post):
        with pytest.raises(InvalidRequestError):
            await orchestrator.update("post", ALICE, POST_ID, {"likedBy": "everyone"})


class TestCreateAndDelete:
    """Test instance creation and deletion"""

    @pytest.mark.asyncio
    async def test_create_returns_identifier(self, orchestrator, store):
        identifier = await orchestrator.create("post", ALICE, {"text": "first", "authorId": 1, "likedBy": 3})

        post = await store.fetch(post_descriptor(), identifier)
        assert post.get("id") == identifier
        assert post.get("text") == "first"
        assert post.get("likeCount") is None
        assert post.relationships["likedBy"] == [3]

    @pytest.mark.asyncio
    async def test_create_requires_permission(self, store):
        registry = ResourceTypeRegistry()
        registry.register(
            post_descriptor(requires_session=False, function_names=set()), PostEvaluator()
        )
        orchestrator = RequestOrchestrator.new(registry, store)

        with pytest.raises(ForbiddenError):
            await orchestrator.create("post", APP_ONLY, {"text": "spam"})
        assert await store.count(post_descriptor()) == 0

    @pytest.mark.asyncio
    async def test_create_requires_session(self, orchestrator):
        with pytest.raises(SessionRequiredError):
            await orchestrator.create("post", APP_ONLY, {"text": "spam"})

    @pytest.mark.asyncio
    async def test_create_rejects_identifier_and_unknown_fields(self, orchestrator):
        with pytest.raises(ForbiddenError):
            await orchestrator.create("post", ALICE, {"id": 5, "text": "mine"})
        with pytest.raises(UnknownFieldError):
            await orchestrator.create("post", ALICE, {"title": "mine"})

    @pytest.mark.asyncio
    async def test_delete_by_author(self, orchestrator, seeded_post, store):
        await orchestrator.delete("post", ALICE, POST_ID)
        assert await store.fetch(post_descriptor(), POST_ID) is None

        with pytest.raises(NotFoundError):
            await orchestrator.read("post", ALICE, POST_ID)

    @pytest.mark.asyncio
    async def test_delete_requires_editable(self, orchestrator, seeded_post, store):
        with pytest.raises(ForbiddenError):
            await orchestrator.delete("post", BOB, POST_ID)
        assert await store.fetch(post_descriptor(), POST_ID) is not None


class TestInvoke:
    """Test resource function invocation"""

    @pytest.mark.asyncio
    async def test_invoke_runs_handler(self, orchestrator, seeded_post, store):
        result = await orchestrator.invoke("post", BOB, POST_ID, "like")

        assert result == FunctionResult(200, {"likeCount": 3})
        post = await store.fetch(post_descriptor(), POST_ID)
        assert post.get("likeCount") == 3
        assert post.relationships["likedBy"] == [5, 6, 2]
        assert orchestrator.metrics.get_count("functions_post_like_200") == 1

    @pytest.mark.asyncio
    async def test_handlers_bypass_field_rules(self, orchestrator, seeded_post):
        # likeCount is not editable by anyone, yet like updates it
        with pytest.raises(ForbiddenError):
            await orchestrator.update("post", ALICE, POST_ID, {"likeCount": 3})
        result = await orchestrator.invoke("post", ALICE, POST_ID, "like")
        assert result.body == {"likeCount": 3}

    @pytest.mark.asyncio
    async def test_unknown_function(self, orchestrator, seeded_post):
        with pytest.raises(UnknownFunctionError):
            await orchestrator.invoke("post", ALICE, POST_ID, "share")

    @pytest.mark.asyncio
    async def test_handler_failure_status(self, store):
        registry = ResourceTypeRegistry()
        registry.register(
            post_descriptor(),
            PostEvaluator(),
            {"like": lambda principal, instance, payload: (409, {"reason": "already liked"})},
        )
        orchestrator = RequestOrchestrator.new(registry, store)
        await store.insert(registry.resolve("post"), POST_ID, {"authorId": 1})

        with pytest.raises(HandlerFailureError) as exc_info:
            await orchestrator.invoke("post", ALICE, POST_ID, "like")
        assert exc_info.value.result == FunctionResult(409, {"reason": "already liked"})
        assert orchestrator.metrics.get_count("functions_post_like_409") == 1

        response = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.INVOKE, principal=ALICE,
            identifier=POST_ID, function_name="like",
        ))
        assert response.status_code == 409
        assert response.body == {"reason": "already liked"}
        assert response.error_code == "handler_failure"


class TestHandle:
    """Test transport request handling"""

    @pytest.mark.asyncio
    async def test_status_codes(self, orchestrator, seeded_post):
        created = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.CREATE, principal=ALICE,
            fields={"text": "new", "authorId": 1},
        ))
        assert created.status_code == 201
        assert created.ok
        new_id = created.body["id"]

        read = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.READ, principal=ALICE,
            identifier=new_id, fields=["text"],
        ))
        assert (read.status_code, read.body) == (200, {"text": "new"})

        updated = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.UPDATE, principal=ALICE,
            identifier=new_id, fields={"text": "newer"},
        ))
        assert updated.status_code == 204

        invoked = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.INVOKE, principal=BOB,
            identifier=new_id, function_name="like",
        ))
        assert (invoked.status_code, invoked.body) == (200, {"likeCount": 1})

        deleted = await orchestrator.handle(ResourceRequest(
            path="post", operation=Operation.DELETE, principal=ALICE, identifier=new_id,
        ))
        assert deleted.status_code == 204

    @pytest.mark.asyncio
    async def test_errors_become_responses(self, orchestrator, seeded_post):
        cases = [
            (ResourceRequest(path="comment", operation=Operation.READ, principal=ALICE, identifier=1),
             404, "unknown_resource"),
            (ResourceRequest(path="post", operation=Operation.READ, principal=APP_ONLY, identifier=POST_ID),
             401, "session_required"),
            (ResourceRequest(path="post", operation=Operation.UPDATE, principal=BOB,
                             identifier=POST_ID, fields={"text": "x"}),
             403, "forbidden"),
            (ResourceRequest(path="post", operation=Operation.READ, principal=ALICE,
                             identifier=POST_ID, fields=["views"]),
             400, "unknown_field"),
            (ResourceRequest(path="post", operation=Operation.INVOKE, principal=ALICE,
                             identifier=POST_ID, function_name="share"),
             404, "unknown_function"),
            (ResourceRequest(path="post", operation=Operation.READ, principal=ALICE),
             400, "invalid_request"),
            (ResourceRequest(path="post", operation=Operation.INVOKE, principal=ALICE, identifier=POST_ID),
             400, "invalid_request"),
            (ResourceRequest(path="post", operation=Operation.UPDATE, principal=ALICE,
                             identifier=POST_ID, fields=["text"]),
             400, "invalid_request"),
        ]

        for request, status_code, error_code in cases:
            response = await orchestrator.handle(request)
            assert (response.status_code, response.error_code) == (status_code, error_code), request
            assert not response.ok
            assert response.body["error"] == error_code

    @pytest.mark.asyncio
    async def test_unknown_paths_share_one_metric_label(self, orchestrator):
        for i in range(200):
            response = await orchestrator.handle(ResourceRequest(
                path=f"junk{i}", operation=Operation.READ, principal=ANONYMOUS, identifier=1
            ))
            assert response.error_code == "unknown_resource"

        metrics = orchestrator.metrics
        assert metrics.get_count("requests__unknown_read_unknown_resource") == 200
        assert metrics.get_count("requests_junk0_read_unknown_resource") == 0
        assert len(metrics.get_metrics_summary()["counters"]) == 1
        assert metrics.registry.get_sample_value(
            "netobjects_requests_total",
            {"resource": "_unknown", "operation": "read", "outcome": "unknown_resource"},
        ) == 200.0
        assert metrics.registry.get_sample_value(
            "netobjects_requests_total",
            {"resource": "junk0", "operation": "read", "outcome": "unknown_resource"},
        ) is None

    @pytest.mark.asyncio
    async def test_store_errors_propagate(self, orchestrator, seeded_post, store):
        with patch.object(store, "fetch", new=AsyncMock(side_effect=ConnectionError("store down"))):
            with pytest.raises(ConnectionError):
                await orchestrator.handle(ResourceRequest(
                    path="post", operation=Operation.READ, principal=ALICE, identifier=POST_ID
                ))

        events = await orchestrator.audit_logger.get_events(event_type="rejected")
        assert events[-1].error_code == "collaborator_failure"
        assert orchestrator.metrics.get_count("requests_post_read_collaborator_failure") == 1


class TestAuditTrail:
    """Test audit events and request state history"""

    @pytest.mark.asyncio
    async def test_served_and_rejected_events(self, orchestrator, seeded_post):
        await orchestrator.read("post", ALICE, POST_ID, ["text"], request_id="req-1")
        with pytest.raises(NotFoundError):
            await orchestrator.read("post", CAROL, POST_ID, request_id="req-2")
        with pytest.raises(SessionRequiredError):
            await orchestrator.read("post", APP_ONLY, POST_ID, request_id="req-3")

        served, hidden, anonymous = await orchestrator.audit_logger.get_events()

        assert served.event_type == "served"
        assert served.request_id == "req-1"
        assert (served.user_id, served.client_id) == (1, 10)
        assert served.details["history"] == ["received", "session_checked", "authorized", "served"]

        assert hidden.event_type == "rejected"
        assert hidden.error_code == "not_found"
        assert hidden.details["history"] == ["received", "session_checked", "rejected"]

        assert anonymous.error_code == "session_required"
        assert anonymous.user_id is None
        assert anonymous.details["history"] == ["received", "rejected"]

    @pytest.mark.asyncio
    async def test_audit_events_carry_no_field_values(self, orchestrator, seeded_post):
        await orchestrator.read("post", ALICE, POST_ID)
        await orchestrator.update("post", ALICE, POST_ID, {"text": "secret draft"})

        for event in await orchestrator.audit_logger.get_events():
            serialized = json.dumps(event.to_dict())
            assert "hello world" not in serialized
            assert "secret draft" not in serialized

    @pytest.mark.asyncio
    async def test_error_context_filled_in(self, orchestrator, seeded_post):
        with pytest.raises(ForbiddenError) as exc_info:
            await orchestrator.update("post", BOB, POST_ID, {"text": "x"}, request_id="req-9")

        context = exc_info.value.context
        assert context.request_id == "req-9"
        assert context.resource_path == "post"
        assert context.operation == "update"
        assert exc_info.value.code == ErrorCode.FORBIDDEN

    @pytest.mark.asyncio
    async def test_rejections_counted(self, orchestrator, seeded_post):
        for _ in range(2):
            with pytest.raises(NotFoundError):
                await orchestrator.read("post", CAROL, POST_ID)

        assert orchestrator.metrics.get_count("requests_post_read_not_found") == 2
        assert orchestrator.metrics.get_count("requests_post_read_served") == 0
