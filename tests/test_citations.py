from devjournal.oracle import Citation, KnowledgeIndex, extract_sources

WHY = "Introduce idempotency keys for every charge request made by clients"


def _index() -> KnowledgeIndex:
    return KnowledgeIndex(
        project_summaries=[{"repository": "payments-api"}],
        journal_entries=[
            {
                "commit_hash": "abc1234def5678",
                "why": WHY,
            },
            {"commit_hash": "fff0000aaa", "why": ""},
        ],
        linear_issues=[{"identifier": "PAY-12", "title": "Double charges"}],
        linear_projects=[{"id": "p1", "name": "Checkout Revamp"}],
    )


def test_extract_sources_in_category_order() -> None:
    answer = (
        "The Checkout Revamp project fixed PAY-12 in payments-api via commit abc1234 "
        "(see also PAY-12 and ABC1234)."
    )

    sources = extract_sources(answer, _index())

    assert sources == [
        Citation(
            type="journal_entry",
            identifier="abc1234def5678",
            title=WHY[:50],
        ),
        Citation(type="linear_issue", identifier="PAY-12", title="Double charges"),
        Citation(type="linear_project", identifier="p1", title="Checkout Revamp"),
        Citation(type="project_summary", identifier="payments-api", title="payments-api"),
    ]


def test_unknown_references_are_ignored() -> None:
    sources = extract_sources("Commit 1234567 and OPS-99 are not indexed.", _index())
    assert sources == []


def test_entry_without_why_has_no_title() -> None:
    sources = extract_sources("See fff0000.", _index())
    assert sources == [Citation(type="journal_entry", identifier="fff0000aaa", title=None)]


def test_empty_answer() -> None:
    assert extract_sources("", _index()) == []


def test_citation_to_dict() -> None:
    citation = Citation(type="linear_issue", identifier="PAY-12", title="Double charges")
    assert citation.to_dict() == {
        "type": "linear_issue",
        "identifier": "PAY-12",
        "title": "Double charges",
    }


def test_full_hash_mentioned_twice_yields_one_citation() -> None:
    full_hash = "0123456789abcdef0123456789abcdef01234567"
    index = KnowledgeIndex(journal_entries=[{"commit_hash": full_hash, "why": "Retry webhooks"}])
    answer = f"Commit {full_hash} added retries; {full_hash.upper()} is the same change."

    sources = extract_sources(answer, index)

    assert sources == [
        Citation(type="journal_entry", identifier=full_hash, title="Retry webhooks")
    ]
