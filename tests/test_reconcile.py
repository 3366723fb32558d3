from pathlib import Path

from devjournal.store import LINEAR_ISSUES, JournalStore
from devjournal.summarizer import SummaryGenerator
from devjournal.sync import ISSUES, RemoteItem, SummaryRunner, reconcile


LONG_BODY = "The login form drops the session cookie after the redirect."


def _issue(item_id: str, title: str, description: str | None = LONG_BODY) -> RemoteItem:
    return RemoteItem(
        id=item_id,
        title=title,
        summary_content=description or "",
        snapshot={
            "identifier": f"ENG-{item_id}",
            "title": title,
            "description": description,
            "state_name": "In Progress",
        },
    )


def _three_issues() -> list[RemoteItem]:
    return [_issue("1", "Fix login"), _issue("2", "Add SSO"), _issue("3", "Audit tokens")]


def test_first_sync_creates_everything(store: JournalStore) -> None:
    counts = reconcile(store, ISSUES, _three_issues())

    assert counts.to_dict() == {"created": 3, "updated": 0, "deleted": 0, "total": 3}
    assert store.cache_stats(LINEAR_ISSUES) == {"total": 3, "active": 3, "deleted": 0}


def test_repeated_sync_is_idempotent(store: JournalStore) -> None:
    reconcile(store, ISSUES, _three_issues())

    counts = reconcile(store, ISSUES, _three_issues())

    assert counts.to_dict() == {"created": 0, "updated": 0, "deleted": 0, "total": 3}


def test_missing_item_soft_deleted_and_edited_item_updated(store: JournalStore) -> None:
    reconcile(store, ISSUES, _three_issues())

    counts = reconcile(
        store, ISSUES, [_issue("1", "Fix login"), _issue("2", "Add SSO for partners")]
    )

    assert counts.to_dict() == {"created": 0, "updated": 1, "deleted": 1, "total": 3}
    deleted = store.get_cached(LINEAR_ISSUES, "3")
    assert deleted is not None
    assert deleted["is_deleted"] is True
    assert store.get_cached(LINEAR_ISSUES, "2")["title"] == "Add SSO for partners"
    assert store.count_cached(LINEAR_ISSUES) == 3


def test_deleted_item_is_not_counted_twice(store: JournalStore) -> None:
    reconcile(store, ISSUES, _three_issues())
    reconcile(store, ISSUES, _three_issues()[:2])

    counts = reconcile(store, ISSUES, _three_issues()[:2])

    assert counts.deleted == 0


def test_returning_item_is_revived_with_original_created_at(store: JournalStore) -> None:
    reconcile(store, ISSUES, _three_issues())
    created_at = store.get_cached(LINEAR_ISSUES, "3")["created_at"]
    reconcile(store, ISSUES, _three_issues()[:2])

    counts = reconcile(store, ISSUES, _three_issues())

    assert counts.updated == 1
    assert counts.created == 0
    revived = store.get_cached(LINEAR_ISSUES, "3")
    assert revived["is_deleted"] is False
    assert revived["deleted_at"] is None
    assert revived["created_at"] == created_at


def test_empty_fetch_soft_deletes_all(store: JournalStore) -> None:
    reconcile(store, ISSUES, _three_issues())

    counts = reconcile(store, ISSUES, [])

    assert counts.to_dict() == {"created": 0, "updated": 0, "deleted": 3, "total": 3}


def test_duplicate_ids_keep_first(store: JournalStore) -> None:
    counts = reconcile(store, ISSUES, [_issue("1", "First"), _issue("1", "Second")])

    assert counts.created == 1
    assert store.get_cached(LINEAR_ISSUES, "1")["title"] == "First"


def test_inline_summaries_generated_once(store: JournalStore, make_generator) -> None:
    fake = make_generator(['{"summary": "Session cookie lost on redirect."}'])
    runner = SummaryRunner(SummaryGenerator(fake), mode="inline")

    first = reconcile(store, ISSUES, [_issue("1", "Fix login")], runner)
    second = reconcile(store, ISSUES, [_issue("1", "Fix login")], runner)

    assert first.created == 1
    assert second.to_dict() == {"created": 0, "updated": 0, "deleted": 0, "total": 1}
    assert len(fake.calls) == 1
    assert store.get_cached(LINEAR_ISSUES, "1")["summary"] == "Session cookie lost on redirect."


def test_short_content_is_not_summarized(store: JournalStore, make_generator) -> None:
    fake = make_generator()
    runner = SummaryRunner(SummaryGenerator(fake), min_chars=20)

    reconcile(store, ISSUES, [_issue("1", "Tiny", description="too short")], runner)

    assert fake.calls == []
    assert store.get_cached(LINEAR_ISSUES, "1")["summary"] is None


def test_summary_failure_does_not_abort_sync(store: JournalStore, make_generator) -> None:
    runner = SummaryRunner(SummaryGenerator(make_generator(error="rate limited")))

    counts = reconcile(store, ISSUES, _three_issues(), runner)

    assert counts.created == 3
    assert all(row["summary"] is None for row in store.list_cached(LINEAR_ISSUES))


def test_summary_backfill_counts_as_update(store: JournalStore, make_generator) -> None:
    reconcile(store, ISSUES, [_issue("1", "Fix login")])
    runner = SummaryRunner(SummaryGenerator(make_generator()))

    counts = reconcile(store, ISSUES, [_issue("1", "Fix login")], runner)

    assert counts.updated == 1
    assert store.get_cached(LINEAR_ISSUES, "1")["summary"] == "A short summary."


def test_blank_summary_is_backfilled_once(store: JournalStore, make_generator) -> None:
    reconcile(store, ISSUES, [_issue("1", "Fix login")])
    store.conn.execute("UPDATE linear_issues SET summary = '' WHERE id = '1'")
    store.conn.commit()
    fake = make_generator(['{"summary": "Cookie fix."}', '{"summary": "unused"}'])
    runner = SummaryRunner(SummaryGenerator(fake))

    first = reconcile(store, ISSUES, [_issue("1", "Fix login")], runner)
    second = reconcile(store, ISSUES, [_issue("1", "Fix login")], runner)

    assert first.updated == 1
    assert second.to_dict() == {"created": 0, "updated": 0, "deleted": 0, "total": 1}
    assert len(fake.calls) == 1
    assert store.get_cached(LINEAR_ISSUES, "1")["summary"] == "Cookie fix."


def test_set_summary_if_missing_fills_blank(store: JournalStore) -> None:
    reconcile(store, ISSUES, [_issue("1", "Fix login")])
    store.conn.execute("UPDATE linear_issues SET summary = '' WHERE id = '1'")
    store.conn.commit()

    assert store.set_summary_if_missing(LINEAR_ISSUES, "1", "Filled") is True
    assert store.set_summary_if_missing(LINEAR_ISSUES, "1", "Again") is False
    assert store.get_cached(LINEAR_ISSUES, "1")["summary"] == "Filled"


def test_existing_summary_is_never_replaced(store: JournalStore, make_generator) -> None:
    runner = SummaryRunner(SummaryGenerator(make_generator(['{"summary": "first"}'])))
    reconcile(store, ISSUES, [_issue("1", "Fix login")], runner)

    edited = _issue("1", "Fix login", description=LONG_BODY + " Also on mobile.")
    other = SummaryRunner(SummaryGenerator(make_generator(['{"summary": "second"}'])))
    reconcile(store, ISSUES, [edited], other)

    assert store.get_cached(LINEAR_ISSUES, "1")["summary"] == "first"


def test_background_summaries_fill_after_sync(tmp_path: Path, make_generator) -> None:
    db_path = tmp_path / "background.sqlite"
    store = JournalStore(db_path, check_same_thread=False)
    runner = SummaryRunner(SummaryGenerator(make_generator()), mode="background")
    try:
        counts = reconcile(store, ISSUES, _three_issues(), runner)
        runner.wait(timeout=10)
    finally:
        runner.close()

    assert counts.created == 3
    assert [row["summary"] for row in store.list_cached(LINEAR_ISSUES)] == [
        "A short summary."
    ] * 3
    store.close()


def test_background_failures_stay_in_worker(tmp_path: Path, make_generator) -> None:
    store = JournalStore(tmp_path / "background.sqlite")
    runner = SummaryRunner(
        SummaryGenerator(make_generator(error="boom")), mode="background", concurrency=2
    )
    try:
        counts = reconcile(store, ISSUES, _three_issues(), runner)
        runner.wait(timeout=10)
    finally:
        runner.close()
        store.close()

    assert counts.created == 3
