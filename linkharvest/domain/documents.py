"""Domain document model for harvested links."""
from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from typing import Any, Dict, Mapping


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ValidationError(ValueError):
    """Raised when a link document fails validation."""


class LinkDocument:
    """A discovered link as persisted in the dedup collection.

    The ``link`` value is stored exactly as extracted: no trimming, case
    folding or URL normalisation happens here, since uniqueness is defined on
    the raw string.
    """

    unique_field: str = "link"

    def __init__(self, payload: Mapping[str, Any]):
        if not isinstance(payload, Mapping):
            raise ValidationError("Document payload must be a mapping.")
        self.data = self._apply_defaults(dict(payload))
        self.validate()

    @classmethod
    def from_link(cls, link: str, category: str | None = None) -> "LinkDocument":
        payload: Dict[str, Any] = {"link": link}
        if category:
            payload["category"] = category
        return cls(payload)

    def _apply_defaults(self, document: Dict[str, Any]) -> Dict[str, Any]:
        data = deepcopy(document)
        if not data.get("category"):
            data.pop("category", None)
        data.setdefault("created_at", _now_iso())
        return data

    def validate(self) -> None:
        link = self.data.get(self.unique_field)
        if not isinstance(link, str):
            raise ValidationError("link document requires a string 'link'.")
        if not link:
            raise ValidationError("link document requires a non-empty 'link'.")
        category = self.data.get("category")
        if category is not None and not isinstance(category, str):
            raise ValidationError("link document 'category' must be a string.")

    def to_mongo(self) -> Dict[str, Any]:
        return deepcopy(self.data)


__all__ = ["LinkDocument", "ValidationError"]
