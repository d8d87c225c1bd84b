"""Comment visibility partition.

Internal comments are staff-only. Every read path that returns comments
goes through ``visible_to`` so the rule lives in one place.
"""

from typing import Iterable, TypeVar

from incidentdesk.core.actor import Actor

C = TypeVar("C")


def visible_to(actor: Actor, comments: Iterable[C]) -> list[C]:
    if actor.is_operator:
        return list(comments)
    return [c for c in comments if not getattr(c, "is_internal", False)]


def resolve_internal_flag(actor: Actor, requested: bool) -> bool:
    """Clients can never author internal comments; the request is downgraded."""
    return bool(requested) and actor.is_operator
