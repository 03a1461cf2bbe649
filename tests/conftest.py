from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

import pytest
from PIL import Image

from config import AppConfig
from discovery import Scanner
from folders import FolderRegistry, InstalledRoots
from inventory import InventoryStore
from paths import BackupLocator, ForbiddenPathPolicy, PlaceholderCodec
from reconcile import FileReconciler


def write_config(tmp_path: Path, install: Path, extra_lines: Iterable[str] = ()) -> AppConfig:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "roots:",
                f"  install: \"{install.as_posix()}\"",
                "paths:",
                f"  logs: \"{(tmp_path / 'logs').as_posix()}\"",
                f"  inventory_db: \"{(tmp_path / 'inventory.sqlite').as_posix()}\"",
                *extra_lines,
            ]
        ),
        encoding="utf-8",
    )
    return AppConfig.load(config_path)


def make_image(path: Path, size: tuple[int, int] = (4, 3), image_format: str = "PNG") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color=(200, 30, 30)).save(path, format=image_format)
    return path


@dataclass
class Site:
    root: Path
    install: Path
    content: Path
    themes: Path
    plugins: Path
    config: AppConfig
    store: InventoryStore
    codec: PlaceholderCodec
    backups: BackupLocator
    policy: ForbiddenPathPolicy
    scanner: Scanner
    registry: FolderRegistry
    reconciler: FileReconciler

    def folder(self, relative: str, active: bool = True):
        path = self.install / relative
        path.mkdir(parents=True, exist_ok=True)
        return self.registry.register_folder(path, active=active)

    def backup_of(self, file_path: Path) -> Path:
        backup = Path(self.backups.backup_path(file_path.as_posix()))
        backup.parent.mkdir(parents=True, exist_ok=True)
        backup.write_bytes(file_path.read_bytes())
        return backup


def build_site(tmp_path: Path, extra_lines: Iterable[str] = ()) -> Site:
    install = tmp_path / "site"
    content = install / "wp-content"
    themes = content / "themes"
    plugins = content / "plugins"
    for directory in (themes, plugins):
        directory.mkdir(parents=True)

    config = write_config(tmp_path, install, extra_lines)
    store = InventoryStore(config.resolve_path("paths", "inventory_db"))
    store.initialize()
    codec = PlaceholderCodec.from_config(config)
    backups = BackupLocator.from_config(config)
    policy = ForbiddenPathPolicy.from_config(config, codec, backup_dir=backups.backup_dir)
    scanner = Scanner.from_config(config, policy)
    registry = FolderRegistry(store, codec, policy, installed=InstalledRoots(codec, policy))
    reconciler = FileReconciler(store, scanner, codec, policy, backups)
    return Site(
        root=tmp_path,
        install=install,
        content=content,
        themes=themes,
        plugins=plugins,
        config=config,
        store=store,
        codec=codec,
        backups=backups,
        policy=policy,
        scanner=scanner,
        registry=registry,
        reconciler=reconciler,
    )


@pytest.fixture
def site(tmp_path: Path):
    built = build_site(tmp_path)
    yield built
    built.store.close()
