import pytest

from hostprep.errors import ConvergenceFailed
from hostprep.lib.cargo_config import (
    BEGIN_MARKER,
    END_MARKER,
    FragmentError,
    build_args,
    extract_managed_block,
    normalize_link_path,
    patch_managed_block,
    read_link_search,
    render_cargo_fragment,
)

TARGET = "x86_64-pc-windows-msvc"


def test_windows_path_is_normalized_and_reads_back():
    text = render_cargo_fragment(target=TARGET, link_search="C:\\vcpkg\\installed\\x64-windows\\lib\\", features=[])
    assert "\\" not in text
    assert read_link_search(text, TARGET) == "C:/vcpkg/installed/x64-windows/lib"


def test_normalize_link_path():
    assert normalize_link_path("C:\\a\\\\b\\") == "C:/a/b"
    assert normalize_link_path("/") == "/"


def test_build_args():
    assert build_args([]) == ["build", "--release"]
    assert build_args(["gpu", "lsp"]) == ["build", "--release", "--features", "gpu,lsp"]
    assert build_args(["gpu"], minimal=True) == ["build", "--release", "--no-default-features"]


def test_alias_carries_features():
    text = render_cargo_fragment(target=TARGET, link_search="C:/lib", features=["lsp"])
    assert 'editor-build = "build --release --features lsp"' in text


def test_patch_is_idempotent():
    fragment = render_cargo_fragment(target=TARGET, link_search="C:/lib", features=[])
    once = patch_managed_block("[build]\njobs = 4", fragment)
    assert once == "[build]\njobs = 4\n\n" + fragment
    assert patch_managed_block(once, fragment) == once


def test_patch_replaces_only_the_block():
    old = render_cargo_fragment(target=TARGET, link_search="C:/old", features=[])
    new = render_cargo_fragment(target=TARGET, link_search="C:/new", features=[])
    existing = "[build]\njobs = 4\n\n" + old + "\n[net]\noffline = true\n"
    patched = patch_managed_block(existing, new)
    assert patched == "[build]\njobs = 4\n\n" + new + "\n[net]\noffline = true\n"
    assert read_link_search(patched, TARGET) == "C:/new"


def test_empty_file_gets_fragment_only():
    fragment = render_cargo_fragment(target=TARGET, link_search="C:/lib", features=[])
    assert patch_managed_block(None, fragment) == fragment
    assert patch_managed_block("", fragment) == fragment


def test_unterminated_block_is_rejected():
    with pytest.raises(FragmentError):
        extract_managed_block(f"{BEGIN_MARKER}\n[alias]\n")


def test_no_block():
    assert extract_managed_block(f"[build]\n{END_MARKER}\n") is None
    assert read_link_search("[build]\njobs = 1\n", TARGET) is None


def test_patch_rejects_tables_the_project_already_declares():
    fragment = render_cargo_fragment(target=TARGET, link_search="C:/lib", features=[])
    existing = f'[target.{TARGET}]\nlinker = "lld-link"\n\n[alias]\nxtask = "run --package xtask --"\n'
    with pytest.raises(FragmentError):
        patch_managed_block(existing, fragment)


def test_fragment_error_is_a_convergence_failure():
    assert issubclass(FragmentError, ConvergenceFailed)
