import os
from pathlib import Path

from conftest import build_site
from paths import ForbiddenPathPolicy, PlaceholderCodec


def build_policy(tmp_path: Path, **kwargs) -> ForbiddenPathPolicy:
    install = tmp_path / "site"
    (install / "wp-content").mkdir(parents=True)
    codec = PlaceholderCodec({"install": install, "content": install / "wp-content"})
    return ForbiddenPathPolicy(codec, **kwargs)


def test_paths_outside_known_roots_are_forbidden(tmp_path: Path) -> None:
    policy = build_policy(tmp_path)

    assert policy.is_forbidden(tmp_path / "other" / "a.jpg") is True
    assert policy.is_forbidden(tmp_path / "site" / "gallery" / "a.jpg") is False


def test_backup_dir_is_always_forbidden(site) -> None:
    backup_file = Path(site.backups.backup_dir) / "gallery" / "a.jpg"

    assert site.policy.is_forbidden(site.backups.backup_dir) is True
    assert site.policy.is_forbidden(backup_file) is True


def test_hidden_entries_and_patterns_are_forbidden(tmp_path: Path) -> None:
    policy = build_policy(tmp_path, patterns=["*-cache", "*.tmp.png"])
    install = tmp_path / "site"

    assert policy.is_forbidden(install / ".git" / "logo.png") is True
    assert policy.is_forbidden(install / "wp-content" / "page-cache" / "a.png") is False
    assert policy.is_forbidden(install / "wp-content" / "page-cache") is True
    assert policy.is_forbidden(install / "draft.tmp.png") is True


def test_hidden_entries_allowed_when_disabled(tmp_path: Path) -> None:
    policy = build_policy(tmp_path, skip_hidden=False)

    assert policy.is_forbidden(tmp_path / "site" / ".well-known" / "a.png") is False


def test_protected_paths_and_extra_rules(tmp_path: Path) -> None:
    install = tmp_path / "site"
    policy = build_policy(tmp_path, protected_paths=[install / "wp-admin"])
    policy.add_rule(lambda path: "/private/" in path)

    assert policy.is_forbidden(install / "wp-admin" / "images" / "a.png") is True
    assert policy.is_forbidden(install / "wp-admin-assets" / "a.png") is False
    assert policy.is_forbidden(install / "private" / "a.png") is True


def test_symlink_escaping_the_roots_is_forbidden(tmp_path: Path) -> None:
    policy = build_policy(tmp_path)
    outside = tmp_path / "outside"
    outside.mkdir()
    link = tmp_path / "site" / "linked"
    os.symlink(outside, link)
    inside_target = tmp_path / "site" / "real"
    inside_target.mkdir()
    inside_link = tmp_path / "site" / "alias"
    os.symlink(inside_target, inside_link)

    assert policy.is_forbidden(link) is True
    assert policy.is_forbidden(inside_link) is False


def test_configured_engine_dir_is_forbidden(tmp_path: Path) -> None:
    engine = tmp_path / "site" / "wp-content" / "plugins" / "imagify"
    built = build_site(tmp_path, ["  engine_dir: \"" + engine.as_posix() + "\""])
    try:
        assert built.policy.is_forbidden(engine / "assets" / "logo.png") is True
    finally:
        built.store.close()
