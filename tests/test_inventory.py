from pathlib import Path

import pytest

from inventory import (
    ACTIVE_ONLY,
    ALL_FOLDERS,
    INACTIVE_ONLY,
    FileRecord,
    InsertFailed,
    InventoryStore,
    NewFile,
    RowDecodeError,
    StoreQueryFailed,
    create_inventory_db,
)
from inventory.schema import connect


def build_store(tmp_path: Path) -> InventoryStore:
    store = InventoryStore(tmp_path / "inventory.sqlite")
    store.initialize()
    return store


def test_folders_are_inserted_once_and_filtered(tmp_path: Path) -> None:
    store = build_store(tmp_path)

    first = store.insert_folder("{{ABSPATH}}/gallery/", active=True)
    again = store.insert_folder("{{ABSPATH}}/gallery/", active=False)
    other = store.insert_folder("{{CONTENT}}/banners/", active=False)

    assert first == again
    assert [folder.folder_id for folder in store.select_folders(active_filter=ACTIVE_ONLY)] == [first]
    assert [folder.folder_id for folder in store.select_folders(active_filter=INACTIVE_ONLY)] == [other]
    assert [folder.folder_id for folder in store.list_folders(ALL_FOLDERS)] == [first, other]
    assert store.select_folders(paths=[], active_filter=ALL_FOLDERS) == []
    excluded = store.select_folders(exclude_paths=["{{ABSPATH}}/gallery/"], active_filter=ALL_FOLDERS)
    assert [folder.portable_path for folder in excluded] == ["{{CONTENT}}/banners/"]

    assert store.set_folder_active(other, True) is True
    assert len(store.select_folders(active_filter=ACTIVE_ONLY)) == 2
    store.close()


def test_file_insert_is_idempotent_per_folder_and_path(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    folder_id = store.insert_folder("{{ABSPATH}}/gallery/")

    file_id = store.insert_file(NewFile(folder_id=folder_id, portable_path="{{ABSPATH}}/gallery/a.png"))
    same_id = store.insert_file(NewFile(folder_id=folder_id, portable_path="{{ABSPATH}}/gallery/a.png"))

    assert file_id == same_id
    assert store.count_files() == 1
    assert store.get_file(file_id) == FileRecord(
        file_id=file_id, folder_id=folder_id, portable_path="{{ABSPATH}}/gallery/a.png"
    )
    store.close()


def test_selects_are_ordered_by_folder_then_file(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    gallery = store.insert_folder("{{ABSPATH}}/gallery/")
    banners = store.insert_folder("{{ABSPATH}}/banners/")
    b1 = store.insert_file(NewFile(folder_id=banners, portable_path="{{ABSPATH}}/banners/1.png"))
    g1 = store.insert_file(NewFile(folder_id=gallery, portable_path="{{ABSPATH}}/gallery/1.png"))
    g2 = store.insert_file(
        NewFile(folder_id=gallery, portable_path="{{ABSPATH}}/gallery/2.png", optimization_level=1, status="success")
    )

    by_folder = store.select_files_by_folder_ids([banners, gallery])
    by_path = store.select_files_by_paths(["{{ABSPATH}}/gallery/2.png", "{{ABSPATH}}/banners/1.png"])

    assert [record.file_id for record in by_folder] == [g1, g2, b1]
    assert [record.file_id for record in by_path] == [g2, b1]
    assert by_path[0].status == "success"
    assert by_path[0].optimization_level == 1
    assert store.select_files_by_folder_ids([]) == []
    store.close()


def test_update_file_only_touches_known_columns(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    folder_id = store.insert_folder("{{ABSPATH}}/gallery/")
    file_id = store.insert_file(NewFile(folder_id=folder_id, portable_path="{{ABSPATH}}/gallery/a.png"))

    assert store.update_file(file_id, optimization_level=2, status="already_optimized") is True
    assert store.update_file(file_id + 100, status="error") is False
    with pytest.raises(ValueError):
        store.update_file(file_id, accessible=True)
    with pytest.raises(ValueError):
        store.update_file(file_id, status="done")

    record = store.get_file(file_id)
    assert record.status == "already_optimized"
    assert record.optimization_level == 2
    store.close()


def test_undecodable_rows_are_skipped(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    folder_id = store.insert_folder("{{ABSPATH}}/gallery/")
    good = store.insert_file(NewFile(folder_id=folder_id, portable_path="{{ABSPATH}}/gallery/a.png"))
    conn = store.connect()
    conn.execute(
        "INSERT INTO files (folder_id, path, status) VALUES (?, ?, ?)",
        (folder_id, "{{ABSPATH}}/gallery/b.png", "mystery"),
    )
    conn.commit()

    records = store.select_files_by_folder_ids([folder_id])

    assert [record.file_id for record in records] == [good]
    store.close()


def test_row_decoding_validates_fields() -> None:
    record = FileRecord.from_row(("3", 7, "{{ABSPATH}}/a.png", None, ""))

    assert record.file_id == 3
    assert record.status is None
    with pytest.raises(RowDecodeError):
        FileRecord.from_row((1, 2, "{{ABSPATH}}/a.png", -1, None))
    with pytest.raises(RowDecodeError):
        FileRecord.from_row((1, None, "{{ABSPATH}}/a.png", None, None))
    with pytest.raises(RowDecodeError):
        FileRecord.from_row((1, 2, "{{ABSPATH}}/a.png"))


def test_insert_with_bad_status_fails(tmp_path: Path) -> None:
    store = build_store(tmp_path)

    with pytest.raises(InsertFailed):
        store.insert_file(NewFile(folder_id=1, portable_path="{{ABSPATH}}/a.png", status="done"))
    store.close()


def test_query_failures_are_wrapped(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    store.connect().execute("DROP TABLE files")

    with pytest.raises(StoreQueryFailed):
        store.select_files_by_folder_ids([1])
    store.close()


def test_unencodable_paths_are_wrapped(tmp_path: Path) -> None:
    store = build_store(tmp_path)

    with pytest.raises(StoreQueryFailed):
        store.select_files_by_paths(["{{ABSPATH}}/bad\udcff.png"])
    store.close()


def test_folder_selection_handles_long_path_lists(tmp_path: Path) -> None:
    store = build_store(tmp_path)
    kept = store.insert_folder("{{THEMES}}/kept/")
    dropped = store.insert_folder("{{THEMES}}/dropped/")
    other = store.insert_folder("{{ABSPATH}}/media/")
    roots = [f"{{{{PLUGINS}}}}/plugin-{index}/" for index in range(2000)]

    selected = store.select_folders(paths=[*roots, "{{THEMES}}/kept/", "{{THEMES}}/dropped/"])
    remaining = store.select_folders(exclude_paths=[*roots, "{{THEMES}}/kept/", "{{THEMES}}/dropped/"])

    assert [folder.folder_id for folder in selected] == [kept, dropped]
    assert [folder.folder_id for folder in remaining] == [other]
    store.close()


def test_old_inventory_gains_the_error_column(tmp_path: Path) -> None:
    db_path = tmp_path / "inventory.sqlite"
    conn = connect(db_path)
    conn.execute(
        "CREATE TABLE files (file_id INTEGER PRIMARY KEY, folder_id INTEGER NOT NULL, path TEXT NOT NULL, "
        "optimization_level INTEGER, status TEXT, UNIQUE (folder_id, path))"
    )
    conn.commit()
    conn.close()

    create_inventory_db(db_path)

    conn = connect(db_path)
    columns = {row[1] for row in conn.execute("PRAGMA table_info(files)")}
    conn.close()
    assert "error" in columns
