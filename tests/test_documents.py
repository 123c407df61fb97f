from __future__ import annotations

import pytest

from linkharvest.domain import LinkDocument, ValidationError


def test_link_document_keeps_raw_link_and_category() -> None:
    document = LinkDocument.from_link(" https://files.example.com/A.jpg", "plot")
    payload = document.to_mongo()
    assert payload["link"] == " https://files.example.com/A.jpg"
    assert payload["category"] == "plot"
    assert payload["created_at"]
    assert set(payload) == {"link", "category", "created_at"}


def test_link_document_omits_empty_category() -> None:
    payload = LinkDocument.from_link("https://files.example.com/a.jpg", "").to_mongo()
    assert "category" not in payload


@pytest.mark.parametrize("payload", [{"link": ""}, {"link": None}, {}, {"link": "x", "category": 3}])
def test_link_document_validation(payload) -> None:
    with pytest.raises(ValidationError):
        LinkDocument(payload)


def test_link_document_requires_mapping() -> None:
    with pytest.raises(ValidationError):
        LinkDocument(["https://files.example.com/a.jpg"])  # type: ignore[arg-type]
