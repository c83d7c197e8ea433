"""Catalog of domain events webhooks can subscribe to."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

PING_EVENT = "ping"


@dataclass(frozen=True)
class EventType:
    id: str
    name: str
    description: str
    sample: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}


EVENT_CATALOG: tuple[EventType, ...] = (
    EventType("post.created", "Post Created", "When a new post is created",
              {"id": 1, "title": "Sample post", "slug": "sample-post"}),
    EventType("post.published", "Post Published", "When a post is published",
              {"id": 1, "title": "Sample post", "slug": "sample-post", "published": True}),
    EventType("post.updated", "Post Updated", "When a post is updated",
              {"id": 1, "title": "Sample post (edited)", "slug": "sample-post"}),
    EventType("post.deleted", "Post Deleted", "When a post is deleted", {"id": 1}),
    EventType("project.created", "Project Created", "When a new project is added",
              {"id": 1, "title": "Sample project"}),
    EventType("project.updated", "Project Updated", "When a project is updated",
              {"id": 1, "title": "Sample project (edited)"}),
    EventType("project.deleted", "Project Deleted", "When a project is deleted", {"id": 1}),
    EventType("message.created", "Message Received", "When a contact form is submitted",
              {"id": 1, "name": "Jane Doe", "email": "jane@example.com", "subject": "Hello"}),
    EventType("comment.created", "Comment Created", "When a new comment is posted",
              {"id": 1, "postId": 1, "author": "Jane Doe", "content": "Nice post!"}),
    EventType("review.created", "Review Created", "When a new review is submitted",
              {"id": 1, "name": "Jane Doe", "rating": 5}),
    EventType("user.login", "User Login", "When a user logs in",
              {"id": 1, "username": "admin"}),
    EventType("user.registered", "User Registered", "When a new user registers",
              {"id": 2, "username": "new-user"}),
    EventType("subscriber.added", "Subscriber Added", "When someone subscribes to the newsletter",
              {"email": "subscriber@example.com"}),
)

_BY_ID = {event.id: event for event in EVENT_CATALOG}


def is_known_event(event_id: str) -> bool:
    return event_id in _BY_ID


def sample_payload(event_id: str) -> dict[str, Any]:
    """Example payload for ``event_id`` (used by webhook test deliveries)."""
    event = _BY_ID.get(event_id)
    if event is None:
        return {"message": "This is a test webhook delivery"}
    return {**event.sample, "test": True}
