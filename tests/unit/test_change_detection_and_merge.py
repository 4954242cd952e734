"""
Tests unitarios del detector de cambios y del merger de registros.

Ambos son funciones puras: no hay red ni archivos.
"""
from portfolio_sync.application.services.change_detector import detect
from portfolio_sync.application.services.record_merger import merge, reconcile_snapshot
from portfolio_sync.domain.entities.records import ChangeSet, Snapshot, SourceRecord


def _snap(entries, table="Projects"):
    return Snapshot(table=table, entries=dict(entries), captured_at="2024-06-01T00:00:00.000Z")


def _rec(record_id, name="x", last_modified="t1"):
    return SourceRecord(table="Projects", id=record_id, fields={"Name": name}, last_modified=last_modified)


class TestDetect:
    def test_classifies_every_id(self) -> None:
        previous = _snap({"a": "t1", "b": "t1", "c": "t1"})
        fresh = _snap({"a": "t1", "b": "t2", "d": "t1"})

        changes = detect(previous, fresh)

        assert changes.unchanged == {"a"}
        assert changes.changed == {"b"}
        assert changes.added == {"d"}
        assert changes.deleted == {"c"}
        assert changes.to_fetch == {"b", "d"}
        assert changes.has_changes

    def test_first_run_marks_everything_added(self) -> None:
        changes = detect(None, _snap({"a": "t1", "b": "t1"}))
        assert changes.added == {"a", "b"}
        assert not changes.deleted and not changes.changed and not changes.unchanged

    def test_timestamp_equality_is_strict(self) -> None:
        """Mismo instante con otro formato cuenta como cambio: el reloj upstream manda."""
        previous = _snap({"a": "2024-01-01T00:00:00.000Z"})
        fresh = _snap({"a": "2024-01-01T00:00:00Z"})
        assert detect(previous, fresh).changed == {"a"}

    def test_no_changes(self) -> None:
        snap = _snap({"a": "t1"})
        changes = detect(snap, snap)
        assert not changes.has_changes
        assert changes.to_fetch == frozenset()

    def test_empty_tables(self) -> None:
        changes = detect(_snap({}), _snap({}))
        assert not changes.has_changes
        assert "nuevos=0" in changes.summary()


class TestMerge:
    def test_size_invariant_and_wholesale_replacement(self) -> None:
        cached = [_rec("a"), _rec("b", "old"), _rec("c")]
        changes = ChangeSet(
            table="Projects",
            added=frozenset({"d"}),
            changed=frozenset({"b"}),
            deleted=frozenset({"c"}),
            unchanged=frozenset({"a"}),
        )
        fetched = [_rec("b", "new", "t2"), _rec("d", "fresh", "t2")]

        merged = merge(cached, changes, fetched)

        assert len(merged) == len(cached) - len(changes.deleted) + len(changes.added)
        assert [r.id for r in merged] == ["a", "b", "d"]
        by_id = {r.id: r for r in merged}
        assert by_id["b"].fields == {"Name": "new"}
        assert by_id["a"] is cached[0]

    def test_skipped_changed_record_keeps_cached_version(self) -> None:
        cached = [_rec("a", "old")]
        changes = ChangeSet(table="Projects", changed=frozenset({"a"}))

        merged = merge(cached, changes, [])

        assert merged == cached

    def test_skipped_new_record_is_left_out(self) -> None:
        changes = ChangeSet(table="Projects", added=frozenset({"n"}))
        assert merge([], changes, []) == []

    def test_ignores_fetched_records_outside_change_set(self) -> None:
        cached = [_rec("a", "cached")]
        changes = ChangeSet(table="Projects", unchanged=frozenset({"a"}))

        merged = merge(cached, changes, [_rec("a", "stray")])

        assert merged[0].fields == {"Name": "cached"}

    def test_does_not_mutate_inputs(self) -> None:
        cached = [_rec("a"), _rec("b")]
        snapshot = list(cached)
        merge(cached, ChangeSet(table="Projects", deleted=frozenset({"a"})), [])
        assert cached == snapshot


class TestReconcileSnapshot:
    def test_missing_changed_record_keeps_previous_timestamp(self) -> None:
        previous = _snap({"a": "t1", "b": "t1"})
        fresh = _snap({"a": "t2", "b": "t2", "n": "t1"})
        changes = detect(previous, fresh)

        reconciled = reconcile_snapshot(fresh, previous, changes, fetched_ids=["b"])

        assert reconciled.entries == {"a": "t1", "b": "t2"}

    def test_full_success_equals_fresh(self) -> None:
        previous = _snap({"a": "t1"})
        fresh = _snap({"a": "t2"})
        changes = detect(previous, fresh)
        assert reconcile_snapshot(fresh, previous, changes, ["a"]).entries == fresh.entries
