"""
netobjects Demo Application

Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

This demo walks a small social network through the request orchestrator:
- Client-only sign-up and credential resolution
- Session gating and not-found masking
- Field-level visibility filtering
- All-or-nothing writes
- Resource functions (like, befriend)
- Audit log retrieval
"""

import asyncio
import logging
import sys

from netobjects.auth import Credentials, MemoryAuthenticator
from netobjects.core.config import Config
from netobjects.core.orchestrator import RequestOrchestrator
from netobjects.core.types import Client, Operation, ResourceRequest, User
from netobjects.demo.social import build_social_registry
from netobjects.store import MemoryResourceStore


async def run() -> int:
    """Run the demo flow and return the process exit code"""
    print("netobjects Demo Application")
    print("=" * 50)
    print()

    store = MemoryResourceStore()
    orchestrator = RequestOrchestrator.new(
        build_social_registry(store), store, Config.from_env()
    )
    authenticator = MemoryAuthenticator()
    app = Client(identifier=1, name="demo-app", first_party=True)
    await authenticator.add_client("app-secret", app)

    print("Step 1: Sign-up (client only)")
    print("-" * 40)
    signup = await authenticator.authenticate(Credentials(client_secret="app-secret"))
    alice_id = await orchestrator.create("user", signup, {"username": "alice", "email": "alice@example.com"})
    bob_id = await orchestrator.create("user", signup, {"username": "bob", "email": "bob@example.com"})
    print(f"✓ Created users {alice_id} (alice) and {bob_id} (bob)")
    print()

    await authenticator.open_session("alice-token", User(alice_id, "alice"), app)
    await authenticator.open_session("bob-token", User(bob_id, "bob"), app)
    alice = await authenticator.authenticate(Credentials("alice-token", "app-secret"))
    bob = await authenticator.authenticate(Credentials("bob-token", "app-secret"))

    print("Step 2: Session gating")
    print("-" * 40)
    post_id = await orchestrator.create("post", alice, {"text": "hello", "likeCount": 0, "authorId": alice_id})
    response = await orchestrator.handle(
        ResourceRequest(path="post", operation=Operation.READ, principal=signup, identifier=post_id)
    )
    print(f"✓ Anonymous read of post {post_id} -> {response.status_code} {response.error_code}")
    print()

    print("Step 3: Field visibility")
    print("-" * 40)
    print(f"  - alice reads herself: {await orchestrator.read('user', alice, alice_id)}")
    print(f"  - bob reads alice:     {await orchestrator.read('user', bob, alice_id)}")
    print()

    print("Step 4: All-or-nothing write")
    print("-" * 40)
    response = await orchestrator.handle(ResourceRequest(
        path="post", operation=Operation.UPDATE, principal=alice, identifier=post_id,
        fields={"text": "edited", "likeCount": 1000},
    ))
    print(f"✓ Write including likeCount -> {response.status_code} {response.error_code}")
    print(f"  - post is still: {await orchestrator.read('post', alice, post_id, ['text', 'likeCount'])}")
    print()

    print("Step 5: Resource functions")
    print("-" * 40)
    result = await orchestrator.invoke("post", bob, post_id, "like")
    print(f"✓ bob likes post {post_id} -> {result.status_code} {result.body}")
    response = await orchestrator.handle(ResourceRequest(
        path="post", operation=Operation.INVOKE, principal=bob, identifier=post_id, function_name="like"
    ))
    print(f"✓ bob likes it again -> {response.status_code} {response.body}")
    result = await orchestrator.invoke("user", bob, alice_id, "befriend")
    print(f"✓ bob befriends alice -> {result.status_code}")
    print(f"  - alice's friends: {(await orchestrator.read('user', alice, alice_id, ['friends']))['friends']}")
    print()

    print("Step 6: Audit Log Retrieval")
    print("-" * 40)
    events = await orchestrator.audit_logger.get_events()
    print(f"✓ Retrieved {len(events)} audit events")
    for event in events:
        print(f"  - {event.event_type:8} {event.operation:6} {event.resource_path}/{event.identifier} "
              f"user={event.user_id} {event.error_code or ''}")
    print()

    print("Demo completed successfully!")
    return 0


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        print("\nDemo interrupted by user")
        sys.exit(1)


if __name__ == "__main__":
    main()
