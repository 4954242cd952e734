"""
Tests del deduplicador de assets y del mapping store.

Invariante central: la identidad del asset no depende de la URL.
"""
from conftest import PROJECTS, FakeMirror, make_attachment, make_raw, make_record
from portfolio_sync.application.services.asset_deduplicator import (
    AssetDeduplicator,
    build_target_name,
    count_unmirrored,
    resolve_field_urls,
)
from portfolio_sync.domain.entities.assets import MappingStore, MirroredAsset, compute_asset_identity
from portfolio_sync.domain.entities.records import Attachment


def _att(**overrides) -> Attachment:
    raw = make_attachment("att1")
    raw.update(overrides)
    return Attachment.from_api(raw)


def _project(*attachments, record_id="rec1"):
    return make_record(PROJECTS, make_raw(record_id, Name="Film", Gallery=list(attachments)))


class TestAssetIdentity:
    def test_url_rotation_keeps_identity(self) -> None:
        first = _att(url="https://dl.airtable.test/att1/still.jpg?sig=aaa")
        second = _att(url="https://dl.airtable.test/att1/still.jpg?sig=bbb")
        assert compute_asset_identity(first) == compute_asset_identity(second)

    def test_size_change_changes_identity(self) -> None:
        assert compute_asset_identity(_att(size=1000)) != compute_asset_identity(_att(size=1001))

    def test_filename_change_changes_identity(self) -> None:
        assert compute_asset_identity(_att(filename="a.jpg")) != compute_asset_identity(_att(filename="b.jpg"))


class TestAssetDeduplicator:
    def test_first_pass_uploads_in_attachment_order(self) -> None:
        mirror = FakeMirror()
        store = MappingStore()
        record = _project(make_attachment("att1"), make_attachment("att2", "b.jpg"))

        dedup = AssetDeduplicator(store, mirror)
        dedup.process_record(PROJECTS, record)

        assert dedup.stats.uploaded == 2
        assert [u["target_name"] for u in mirror.uploads] == [
            "portfolio-projects-rec1-gallery-0",
            "portfolio-projects-rec1-gallery-1",
        ]
        assert all(u["overwrite"] and u["invalidate"] for u in mirror.uploads)
        assert [a.index for a in store.assets_for("rec1")] == [0, 1]
        assert store.dirty

    def test_rotated_url_reuses_mirror_without_upload(self) -> None:
        mirror = FakeMirror()
        store = MappingStore()
        AssetDeduplicator(store, mirror).process_record(
            PROJECTS, _project(make_attachment("att1", url="https://dl.test/a?sig=1"))
        )

        rotated = _project(make_attachment("att1", url="https://dl.test/a?sig=2"))
        dedup = AssetDeduplicator(store, mirror)
        dedup.process_record(PROJECTS, rotated)

        assert mirror.upload_count == 1
        assert dedup.stats.reused == 1
        assert dedup.stats.origin_refreshed == 1
        asset = store.find("rec1", "Gallery", 0)
        assert asset.origin_url == "https://dl.test/a?sig=2"
        assert resolve_field_urls(store, rotated, "Gallery") == [asset.mirror_url]

    def test_changed_content_reuploads_same_target(self) -> None:
        mirror = FakeMirror()
        store = MappingStore()
        AssetDeduplicator(store, mirror).process_record(PROJECTS, _project(make_attachment("att1", size=10)))
        AssetDeduplicator(store, mirror).process_record(PROJECTS, _project(make_attachment("att1", size=20)))

        assert mirror.upload_count == 2
        assert mirror.uploads[0]["target_name"] == mirror.uploads[1]["target_name"]
        assert len(store) == 1

    def test_upload_failure_falls_back_to_origin_and_leaves_ledger(self) -> None:
        mirror = FakeMirror()
        mirror.fail_targets.add("portfolio-projects-rec1-gallery-0")
        store = MappingStore()
        record = _project(make_attachment("att1", url="https://dl.test/origin"))

        dedup = AssetDeduplicator(store, mirror)
        dedup.process_record(PROJECTS, record)

        assert dedup.stats.failed == 1
        assert store.find("rec1", "Gallery", 0) is None
        assert resolve_field_urls(store, record, "Gallery") == ["https://dl.test/origin"]

        # La corrida siguiente reintenta
        mirror.fail_targets.clear()
        retry = AssetDeduplicator(store, mirror)
        retry.process_record(PROJECTS, record)
        assert retry.stats.uploaded == 1

    def test_removed_attachment_prunes_slot(self) -> None:
        mirror = FakeMirror()
        store = MappingStore()
        AssetDeduplicator(store, mirror).process_record(
            PROJECTS, _project(make_attachment("att1"), make_attachment("att2", "b.jpg"))
        )

        dedup = AssetDeduplicator(store, mirror)
        dedup.process_record(PROJECTS, _project(make_attachment("att1")))

        assert dedup.stats.pruned == 1
        assert [a.slot for a in store.assets_for("rec1")] == [("Gallery", 0)]

    def test_disabled_without_mirror(self) -> None:
        store = MappingStore()
        record = _project(make_attachment("att1", url="https://dl.test/o"))
        dedup = AssetDeduplicator(store, None)

        dedup.process_record(PROJECTS, record)

        assert not dedup.enabled
        assert len(store) == 0
        assert resolve_field_urls(store, record, "Gallery") == ["https://dl.test/o"]

    def test_target_name_is_deterministic(self) -> None:
        assert build_target_name(PROJECTS, "recX", "Cover Image", 2) == "portfolio-projects-recX-cover-image-2"


class TestCountUnmirrored:
    def test_counts_failed_and_changed_slots(self) -> None:
        mirror = FakeMirror()
        mirror.fail_targets.add("portfolio-projects-rec1-gallery-1")
        store = MappingStore()
        record = _project(make_attachment("att1"), make_attachment("att2", "b.jpg"))
        AssetDeduplicator(store, mirror).process_record(PROJECTS, record)

        assert count_unmirrored(store, PROJECTS, [record]) == 1

        changed = _project(make_attachment("att1", size=99), make_attachment("att2", "b.jpg"))
        assert count_unmirrored(store, PROJECTS, [changed]) == 2

    def test_fully_mirrored_record_has_nothing_pending(self) -> None:
        store = MappingStore()
        record = _project(make_attachment("att1"))
        AssetDeduplicator(store, FakeMirror()).process_record(PROJECTS, record)

        assert count_unmirrored(store, PROJECTS, [record]) == 0


class TestMappingStore:
    def test_dict_roundtrip_and_remove_records(self) -> None:
        store = MappingStore()
        AssetDeduplicator(store, FakeMirror()).process_record(PROJECTS, _project(make_attachment("att1")))
        store.generated_at = "2024-06-01T00:00:00.000Z"

        restored = MappingStore.from_dict(store.to_dict())
        assert restored.to_dict() == store.to_dict()
        assert not restored.dirty

        assert restored.remove_records(["rec1", "unknown"]) == 1
        assert len(restored) == 0
        assert restored.dirty

    def test_upsert_orders_by_field_then_index(self) -> None:
        store = MappingStore()
        table_fields = ("Logo", "Favicon")

        def asset(field, index):
            return MirroredAsset(
                identity=f"{field}{index}", origin_url="o", mirror_url="m", format="png", bytes=1,
                table="Settings", field=field, index=index, target_name="t",
            )

        store.upsert("recS", asset("Favicon", 0), table_fields)
        store.upsert("recS", asset("Logo", 1), table_fields)
        store.upsert("recS", asset("Logo", 0), table_fields)

        assert [a.slot for a in store.assets_for("recS")] == [("Logo", 0), ("Logo", 1), ("Favicon", 0)]
