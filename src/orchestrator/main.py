"""
Bulk job entry point: resolve folders by type and reconcile their files.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Iterable, Optional, Sequence

from config import AppConfig
from discovery import Scanner
from folders import CUSTOM_FOLDERS, FolderProvider, FolderRegistry, InstalledRoots
from inventory import ACTIVE_FILTERS, ACTIVE_ONLY, InventoryStore
from metadata import MetadataExtractor
from paths import BackupLocator, ForbiddenPathPolicy, PlaceholderCodec
from reconcile import RELOCATION_GLOBAL, FileReconciler, ReconcileResult
from utils import ResourceMonitor, setup_logging


class BulkRunner:
    """Wire the reconciler from configuration and run batches of folder types."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.loggers = setup_logging(self.config.resolve_path("paths", "logs", default="logs"))
        self.logger = self.loggers["main"]
        self.store = InventoryStore(
            self.config.resolve_path("paths", "inventory_db", default="data/inventory.sqlite"),
            logger=self.logger,
        )
        self.codec = PlaceholderCodec.from_config(config)
        self.backups = BackupLocator.from_config(config)
        self.policy = ForbiddenPathPolicy.from_config(config, self.codec, backup_dir=self.backups.backup_dir)
        self.scanner = Scanner.from_config(
            config,
            self.policy,
            monitor=ResourceMonitor.from_config(config),
            logger=self.logger,
            performance_logger=self.loggers["performance"],
        )
        self.installed = InstalledRoots(self.codec, self.policy)
        self.registry = FolderRegistry(
            self.store, self.codec, self.policy, installed=self.installed, logger=self.logger
        )
        self.reconciler = FileReconciler(
            self.store,
            self.scanner,
            self.codec,
            self.policy,
            self.backups,
            extractor=MetadataExtractor(),
            relocation_scope=str(self.config.get("reconcile", "relocation_scope", default=RELOCATION_GLOBAL)),
            logger=self.logger,
            relocation_logger=self.loggers["relocation"],
            performance_logger=self.loggers["performance"],
        )

    def register_provider(self, folder_type: str, provider: FolderProvider) -> None:
        self.registry.register_provider(folder_type, provider)

    def refresh_installed(self) -> None:
        """Re-read installed themes and plugins before the next batch."""
        self.installed.refresh()
        self.logger.info(
            "Installed roots refreshed: %s themes, %s plugins",
            len(self.installed.themes),
            len(self.installed.plugins),
        )

    def run(
        self,
        folder_types: Optional[Iterable[str]] = None,
        active_filter: Optional[str] = None,
        optimization_level: Optional[int] = None,
    ) -> Dict[str, ReconcileResult]:
        """Reconcile every requested folder type and return the results by type."""
        if folder_types is None:
            folder_types = self.config.get("bulk", "folder_types", default=[CUSTOM_FOLDERS])
        if active_filter is None:
            active_filter = str(self.config.get("bulk", "active_filter", default=ACTIVE_ONLY))
        if optimization_level is None:
            configured = self.config.get("bulk", "optimization_level", default=None)
            optimization_level = int(configured) if configured is not None else None

        self.store.initialize()
        results: Dict[str, ReconcileResult] = {}
        try:
            for folder_type in folder_types:
                folders = self.registry.resolve_folders(folder_type, active_filter)
                self.logger.info("Reconciling %s %s folders", len(folders), folder_type)
                result = self.reconciler.reconcile_files(folders, optimization_level)
                if not result.complete:
                    self.logger.warning(
                        "Result for %s may be incomplete: %s", folder_type, "; ".join(result.warnings)
                    )
                self.logger.info(
                    "%s: %s files (%s new, %s moved, %s skipped folders)",
                    folder_type,
                    len(result.files),
                    result.inserted,
                    result.relocated,
                    len(result.skipped_folders),
                )
                results[folder_type] = result
        finally:
            self.store.close()
        return results


def _result_payload(results: Dict[str, ReconcileResult]) -> dict:
    return {
        folder_type: {
            "complete": result.complete,
            "warnings": result.warnings,
            "skipped_folders": result.skipped_folders,
            "files": [
                {
                    "file_id": record.file_id,
                    "folder_id": record.folder_id,
                    "path": record.portable_path,
                    "file_path": record.absolute_path,
                    "optimization_level": record.optimization_level,
                    "status": record.status,
                }
                for record in result.files
            ],
        }
        for folder_type, result in results.items()
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Reconcile tracked image folders with the inventory.")
    parser.add_argument("--config", default=None, help="Optional config path override")
    parser.add_argument(
        "--folder-type",
        action="append",
        dest="folder_types",
        default=None,
        help="Folder type to process (themes, plugins, custom-folders); repeatable",
    )
    parser.add_argument("--level", type=int, default=None, help="Only return files needing this level")
    parser.add_argument("--active-filter", choices=ACTIVE_FILTERS, default=None, help="Which folders to use")
    parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    args = parser.parse_args(argv)

    config = AppConfig.load(Path(args.config) if args.config else None)
    runner = BulkRunner(config)
    results = runner.run(args.folder_types, args.active_filter, args.level)

    if args.json:
        print(json.dumps(_result_payload(results), indent=2))
    else:
        for folder_type, result in results.items():
            for record in result.files:
                print(f"{folder_type}\t{record.file_id}\t{record.status or '-'}\t{record.absolute_path}")
    return 0 if all(result.complete for result in results.values()) else 1


if __name__ == "__main__":
    sys.exit(main())
