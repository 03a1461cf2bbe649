"""
Reconciliation of scanned folders against the file inventory.

For a set of folders the reconciler:

1. scans every folder for image files,
2. loads the inventory rows of those folders and matches them with the scan,
3. finds scanned files that are recorded under another folder and moves
   their rows to the folder they were found in,
4. inserts rows for files that are not known at all,
5. filters known files by optimization level and orders the result.

Nothing is deleted here. Rows for files that vanished, or that are outside
their folder, are left in storage and simply not returned.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from discovery import FolderUnreadable, Scanner
from inventory import (
    FileRecord,
    Folder,
    InsertFailed,
    InventoryStore,
    NewFile,
    StoreQueryFailed,
)
from metadata import MetadataExtractor
from paths import BackupLocator, ForbiddenPathPolicy, PlaceholderCodec, PlaceholderError, is_within

from .eligibility import is_deprioritized, is_eligible

RELOCATION_GLOBAL = "global"
RELOCATION_SCOPED = "scoped"


@dataclass
class ReconcileResult:
    """Files to act on, plus what happened while building the list."""

    files: List[FileRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    skipped_folders: List[int] = field(default_factory=list)
    inserted: int = 0
    relocated: int = 0
    stale: int = 0
    ineligible: int = 0

    @property
    def complete(self) -> bool:
        """False when a store failure means some files may be missing from ``files``."""
        return not self.warnings

    def __iter__(self):
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


class FileReconciler:
    """Build the authoritative list of files for a set of folders."""

    def __init__(
        self,
        store: InventoryStore,
        scanner: Scanner,
        codec: PlaceholderCodec,
        policy: ForbiddenPathPolicy,
        backups: BackupLocator,
        extractor: Optional[MetadataExtractor] = None,
        relocation_scope: str = RELOCATION_GLOBAL,
        logger: Optional[logging.Logger] = None,
        relocation_logger: Optional[logging.Logger] = None,
        performance_logger: Optional[logging.Logger] = None,
    ) -> None:
        if relocation_scope not in (RELOCATION_GLOBAL, RELOCATION_SCOPED):
            raise ValueError(f"Unknown relocation scope: {relocation_scope!r}")
        self.store = store
        self.scanner = scanner
        self.codec = codec
        self.policy = policy
        self.backups = backups
        self.extractor = extractor or MetadataExtractor()
        self.relocation_scope = relocation_scope
        self.logger = logger or logging.getLogger("folder_reconciler")
        self.relocation_logger = relocation_logger or logging.getLogger("folder_reconciler.relocation")
        self.performance_logger = performance_logger or logging.getLogger("folder_reconciler.performance")

    def reconcile_files(
        self, folders: Mapping[int, Folder], optimization_level: Optional[int] = None
    ) -> ReconcileResult:
        """Return the files of ``folders``, filtered for ``optimization_level`` when one is given."""
        result = ReconcileResult()
        if not folders:
            return result
        started = time.monotonic()
        batch = _Batch(folders, optimization_level)

        self._scan_folders(batch, result)
        inventory_ok = self._merge_inventory(batch, result)
        relocation_ok = inventory_ok and self._repair_relocations(batch, result)
        if relocation_ok:
            self._insert_new_files(batch, result)
        elif batch.has_pending():
            self.logger.warning(
                "Skipping insertion of %s scanned files because the inventory could not be read",
                batch.pending_count(),
            )

        result.files = batch.ordered_files()
        self.performance_logger.info(
            "Reconciled %s folders in %.2fs: files=%s inserted=%s relocated=%s stale=%s ineligible=%s warnings=%s",
            len(folders),
            time.monotonic() - started,
            len(result.files),
            result.inserted,
            result.relocated,
            result.stale,
            result.ineligible,
            len(result.warnings),
        )
        return result

    def _scan_folders(self, batch: "_Batch", result: ReconcileResult) -> None:
        for folder_id, folder in batch.folders.items():
            try:
                found = self.scanner.scan(folder.absolute_path)
            except FolderUnreadable as exc:
                self.logger.warning("Folder %s skipped: %s", folder_id, exc)
                result.skipped_folders.append(folder_id)
                continue
            batch.add_scan(folder_id, found)
        for folder_id in result.skipped_folders:
            batch.drop_folder(folder_id)

    def _merge_inventory(self, batch: "_Batch", result: ReconcileResult) -> bool:
        try:
            records = self.store.select_files_by_folder_ids(batch.folders)
        except StoreQueryFailed as exc:
            self._store_warning(result, "Inventory read by folder failed", exc)
            return False

        usable: List[FileRecord] = []
        for record in records:
            record = self._decoded(record)
            if record is None:
                continue
            batch.discard_pending(record.folder_id, record.absolute_path)
            folder = batch.folders.get(record.folder_id)
            if folder is None or not is_within(record.absolute_path, folder.absolute_path):
                self.logger.debug("Orphaned inventory row %s (%s)", record.file_id, record.absolute_path)
                continue
            usable.append(record)

        # Rows for one file under nested folders: the deepest folder's row wins.
        owners: Dict[str, int] = {}
        for record in usable:
            owner = owners.get(record.absolute_path)
            if owner is None or batch.depth(record.folder_id) > batch.depth(owner):
                owners[record.absolute_path] = record.folder_id
        for record in usable:
            if owners[record.absolute_path] != record.folder_id:
                self.logger.warning(
                    "File %s duplicates a row of nested folder %s: %s",
                    record.file_id,
                    owners[record.absolute_path],
                    record.absolute_path,
                )
                continue
            self._keep_if_usable(batch, result, record)
        return True

    def _repair_relocations(self, batch: "_Batch", result: ReconcileResult) -> bool:
        folder_by_portable: Dict[str, int] = {}
        for folder_id, file_path in batch.pending_items():
            try:
                folder_by_portable[self.codec.encode(file_path)] = folder_id
            except PlaceholderError as exc:
                self.logger.warning("Excluding %s: %s", file_path, exc)
                batch.discard_pending(folder_id, file_path)
        if not folder_by_portable:
            return True

        try:
            records = self.store.select_files_by_paths(folder_by_portable)
        except StoreQueryFailed as exc:
            self._store_warning(result, "Inventory read by path failed", exc)
            return False

        handled: set[str] = set()
        for record in records:
            target_id = folder_by_portable.get(record.portable_path)
            if target_id is None:
                continue
            record = self._decoded(record)
            if record is None:
                continue
            if record.absolute_path in handled:
                self.logger.warning(
                    "Duplicate inventory row %s for %s left in folder %s",
                    record.file_id,
                    record.absolute_path,
                    record.folder_id,
                )
                continue
            handled.add(record.absolute_path)
            batch.discard_pending(target_id, record.absolute_path)
            if self.relocation_scope == RELOCATION_SCOPED and record.folder_id not in batch.folders:
                self.logger.info(
                    "Not moving file %s out of folder %s outside this batch", record.file_id, record.folder_id
                )
                continue
            if record.folder_id != target_id:
                record = self._move_record(record, target_id, result)
                if record is None:
                    continue
            batch.release(record.absolute_path)
            self._keep_if_usable(batch, result, record)
        return True

    def _move_record(
        self, record: FileRecord, target_id: int, result: ReconcileResult
    ) -> Optional[FileRecord]:
        try:
            updated = self.store.update_file(record.file_id, folder_id=target_id)
        except StoreQueryFailed as exc:
            self._store_warning(result, f"Cannot move file {record.file_id} to folder {target_id}", exc)
            return None
        if not updated:
            self.logger.warning("File %s vanished before it could be moved", record.file_id)
            return None
        self.relocation_logger.info(
            "Moved file %s from folder %s to folder %s: %s",
            record.file_id,
            record.folder_id,
            target_id,
            record.absolute_path,
        )
        result.relocated += 1
        return record.with_folder(target_id)

    def _insert_new_files(self, batch: "_Batch", result: ReconcileResult) -> None:
        for folder_id, file_path in list(batch.pending_items()):
            try:
                portable = self.codec.encode(file_path)
                metadata = self.extractor.extract(Path(file_path))
                file_id = self.store.insert_file(
                    NewFile(
                        folder_id=folder_id,
                        portable_path=portable,
                        hash=metadata.hash,
                        mime_type=metadata.mime_type,
                        modified=metadata.modified,
                        width=metadata.width,
                        height=metadata.height,
                        original_size=metadata.original_size,
                    )
                )
            except (PlaceholderError, OSError, InsertFailed) as exc:
                self.logger.warning("Could not add %s to folder %s: %s", file_path, folder_id, exc)
                continue
            finally:
                batch.discard_pending(folder_id, file_path)
            record = FileRecord(
                file_id=file_id,
                folder_id=folder_id,
                portable_path=portable,
                absolute_path=file_path,
            )
            result.inserted += 1
            batch.keep(record, deprioritize=False)

    def _keep_if_usable(self, batch: "_Batch", result: ReconcileResult, record: FileRecord) -> None:
        if not is_eligible(record, batch.level, self.backups.has_backup):
            result.ineligible += 1
            return
        if not os.path.isfile(record.absolute_path) or self.policy.is_forbidden(record.absolute_path):
            result.stale += 1
            return
        if batch.is_claimed(record.absolute_path):
            self.logger.warning(
                "File %s duplicates an inventory row already in this batch: %s",
                record.file_id,
                record.absolute_path,
            )
            return
        batch.keep(record, deprioritize=is_deprioritized(record, batch.level))

    def _decoded(self, record: FileRecord) -> Optional[FileRecord]:
        try:
            return record.with_absolute_path(self.codec.decode(record.portable_path))
        except PlaceholderError as exc:
            self.logger.warning("Excluding file %s: %s", record.file_id, exc)
            return None

    def _store_warning(self, result: ReconcileResult, message: str, exc: Exception) -> None:
        text = f"{message}: {exc}"
        self.logger.error(text)
        result.warnings.append(text)


class _Batch:
    """Working state of one reconciliation call."""

    def __init__(self, folders: Mapping[int, Folder], level: Optional[int]) -> None:
        self.folders: Dict[int, Folder] = dict(folders)
        self.level = level
        self.pending: Dict[int, Dict[str, None]] = {}
        self.kept: Dict[int, Dict[int, FileRecord]] = {folder_id: {} for folder_id in self.folders}
        self.deprioritized: set[int] = set()
        self.claims: Dict[str, tuple[int, int]] = {}

    def add_scan(self, folder_id: int, found: set[str]) -> None:
        """Record a scan; a file seen by nested folders belongs to the deepest one."""
        depth = self.depth(folder_id)
        entries = self.pending.setdefault(folder_id, {})
        for file_path in sorted(found):
            owner = self._pending_owner(file_path)
            if owner is not None:
                if self.depth(owner) >= depth:
                    continue
                del self.pending[owner][file_path]
            entries[file_path] = None

    def depth(self, folder_id: int) -> int:
        return len(self.folders[folder_id].absolute_path)

    def drop_folder(self, folder_id: int) -> None:
        self.folders.pop(folder_id, None)
        self.kept.pop(folder_id, None)
        self.pending.pop(folder_id, None)

    def _pending_owner(self, file_path: str) -> Optional[int]:
        for folder_id, entries in self.pending.items():
            if file_path in entries:
                return folder_id
        return None

    def discard_pending(self, folder_id: int, file_path: str) -> None:
        self.pending.get(folder_id, {}).pop(file_path, None)

    def pending_items(self):
        for folder_id, entries in self.pending.items():
            for file_path in list(entries):
                yield folder_id, file_path

    def has_pending(self) -> bool:
        return any(self.pending.values())

    def pending_count(self) -> int:
        return sum(len(entries) for entries in self.pending.values())

    def is_claimed(self, file_path: str) -> bool:
        return file_path in self.claims

    def release(self, file_path: str) -> None:
        """Drop a kept row for ``file_path`` so a relocated row can take its place."""
        claim = self.claims.pop(file_path, None)
        if claim is None:
            return
        folder_id, file_id = claim
        self.kept.get(folder_id, {}).pop(file_id, None)
        self.deprioritized.discard(file_id)

    def keep(self, record: FileRecord, deprioritize: bool) -> None:
        self.kept.setdefault(record.folder_id, {})[record.file_id] = record
        self.claims[record.absolute_path] = (record.folder_id, record.file_id)
        if deprioritize:
            self.deprioritized.add(record.file_id)

    def ordered_files(self) -> List[FileRecord]:
        merged = [record for records in self.kept.values() for record in records.values()]
        if not self.deprioritized:
            return merged
        head = [record for record in merged if record.file_id not in self.deprioritized]
        tail = [record for record in merged if record.file_id in self.deprioritized]
        return head + tail
