import os
import sys
from pathlib import Path

import pytest

from conftest import make_image
from discovery import FolderUnreadable, Scanner
from paths import ForbiddenPathPolicy, PlaceholderCodec


def build_scanner(tmp_path: Path, **kwargs) -> Scanner:
    codec = PlaceholderCodec({"install": tmp_path / "site"})
    policy = ForbiddenPathPolicy(codec, protected_paths=[tmp_path / "site" / "protected"], patterns=["*.skip.png"])
    return Scanner(policy, **kwargs)


def test_scanner_keeps_images_and_prunes_forbidden(tmp_path: Path) -> None:
    root = tmp_path / "site" / "gallery"
    keep = make_image(root / "keep.png")
    nested = make_image(root / "nested" / "deeper" / "photo.JPG", image_format="JPEG")
    (root / "notes.txt").write_text("not an image", encoding="utf-8")
    make_image(root / ".hidden" / "secret.png")
    make_image(root / "drop.skip.png")
    make_image(tmp_path / "site" / "protected" / "inside.png")

    scanner = build_scanner(tmp_path, extensions=[".png", ".jpg"])
    found = scanner.scan(tmp_path / "site")

    assert found == {keep.as_posix(), nested.as_posix()}


def test_scanner_is_restartable(tmp_path: Path) -> None:
    root = tmp_path / "site" / "gallery"
    first = make_image(root / "a.png")
    scanner = build_scanner(tmp_path, extensions=[".png"])

    assert scanner.scan(root) == {first.as_posix()}

    second = make_image(root / "b.png")
    first.unlink()

    assert scanner.scan(root) == {second.as_posix()}


def test_empty_folder_returns_empty_set(tmp_path: Path) -> None:
    root = tmp_path / "site" / "empty"
    root.mkdir(parents=True)

    assert build_scanner(tmp_path).scan(root) == set()


@pytest.mark.parametrize("relative", ["site/missing", "site/file.png"])
def test_unreachable_folder_raises(tmp_path: Path, relative: str) -> None:
    make_image(tmp_path / "site" / "file.png")

    with pytest.raises(FolderUnreadable):
        build_scanner(tmp_path).scan(tmp_path / relative)


@pytest.mark.parametrize("relative", ["outside", "site/.private", "site/protected"])
def test_forbidden_folder_yields_nothing(tmp_path: Path, relative: str) -> None:
    make_image(tmp_path / relative / "inside.png")

    assert build_scanner(tmp_path).scan(tmp_path / relative) == set()


@pytest.mark.skipif(sys.platform != "linux", reason="needs a filesystem that accepts raw byte names")
def test_undecodable_file_names_are_skipped(tmp_path: Path) -> None:
    root = tmp_path / "site" / "gallery"
    good = make_image(root / "good.png")
    with open(os.path.join(os.fsencode(root), b"bad\xff.png"), "wb") as handle:
        handle.write(good.read_bytes())

    assert build_scanner(tmp_path).scan(root) == {good.as_posix()}


def test_symlinked_files_skipped_unless_followed(tmp_path: Path) -> None:
    root = tmp_path / "site" / "gallery"
    target = make_image(root / "real.png")
    link = root / "link.png"
    link.symlink_to(target)

    assert build_scanner(tmp_path).scan(root) == {target.as_posix()}
    assert build_scanner(tmp_path, follow_symlinks=True).scan(root) == {target.as_posix(), link.as_posix()}
