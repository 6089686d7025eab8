import pytest

from bankrecon.parsers import SectionGrammarExtractor
from bankrecon.store import StatementStore


@pytest.fixture
def store(tmp_path):
    return StatementStore(f"sqlite:///{tmp_path / 'statements.db'}")


@pytest.fixture
def statement(bdk_text):
    return SectionGrammarExtractor().extract(bdk_text, "BDK").data


def test_upsert_is_idempotent(store, statement):
    first = store.upsert(statement)
    second = store.upsert(statement)
    assert first.data["inserted"] is True
    assert second.data["inserted"] is False
    assert first.data["id"] == second.data["id"]
    assert first.data["checksum"] == statement.checksum
    assert store.count() == 1


def test_metadata_does_not_change_identity(store, statement):
    store.upsert(statement)
    statement.metadata["source"] = "another-upload.pdf"
    assert store.upsert(statement).data["inserted"] is False


def test_changed_content_is_a_new_row(store, statement):
    store.upsert(statement)
    statement.closing_balance += 1
    assert store.upsert(statement).data["inserted"] is True
    assert store.count() == 2


def test_find_returns_items_in_order(store, statement):
    store.upsert(statement)
    [row] = store.find("BDK", "2025-06-20")
    assert row["closing_balance"] == 15_950_000
    kinds = [item["kind"] for item in row["items"]]
    assert kinds == ["deposits", "deposits", "checks", "checks", "facilities", "bounced_items"]
    assert row["items"][0]["record"]["reference"] == "FAC-118"
    assert row["items"][4]["amount"] == 50_000_000
    assert store.find("ATB") == []
