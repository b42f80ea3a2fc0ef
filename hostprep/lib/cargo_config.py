"""Cargo configuration fragment for the editor build.

The fragment lives between two marker lines inside .cargo/config.toml so it
can be rewritten in place without disturbing anything the project keeps in
the same file.
"""

from __future__ import annotations

import logging
import tomllib
from typing import Optional, Sequence

from ..errors import ConvergenceFailed

logger = logging.getLogger(__name__)

BEGIN_MARKER = "# >>> hostprep managed block >>>"
END_MARKER = "# <<< hostprep managed block <<<"
BUILD_ALIAS = "editor-build"


class FragmentError(ConvergenceFailed, ValueError):
    """The cargo config cannot carry the managed block as-is."""


def normalize_link_path(path: str) -> str:
    """Forward slashes only; cargo and rustc accept them on Windows too."""
    p = path.replace("\\", "/")
    while "//" in p[1:]:
        p = p[0] + p[1:].replace("//", "/")
    return p.rstrip("/") if len(p) > 1 else p


def _toml_str(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_args(features: Sequence[str], *, minimal: bool = False) -> list[str]:
    args = ["build", "--release"]
    if minimal:
        args.append("--no-default-features")
    elif features:
        args += ["--features", ",".join(features)]
    return args


def render_cargo_fragment(*, target: str, link_search: str, features: Sequence[str]) -> str:
    lines = [
        BEGIN_MARKER,
        f"[target.{target}]",
        f'rustflags = ["-L", {_toml_str("native=" + normalize_link_path(link_search))}]',
        "",
        "[alias]",
        f"{BUILD_ALIAS} = {_toml_str(' '.join(build_args(features)))}",
        END_MARKER,
    ]
    return "\n".join(lines) + "\n"


def extract_managed_block(text: str) -> Optional[str]:
    start = text.find(BEGIN_MARKER)
    if start < 0:
        return None
    end = text.find(END_MARKER, start)
    if end < 0:
        raise FragmentError("managed block has no end marker")
    end += len(END_MARKER)
    if text[end:end + 1] == "\n":
        end += 1
    return text[start:end]


def patch_managed_block(existing: Optional[str], fragment: str) -> str:
    """Replace (or append) the managed block. Idempotent.

    The result is parsed before it is returned. A project that already
    declares one of the fragment's tables (say its own [alias]) would end up
    with a duplicate table, which cargo rejects, so that raises FragmentError
    and the file is left for the user to merge.
    """

    if not existing:
        patched = fragment
    else:
        current = extract_managed_block(existing)
        if current is not None:
            patched = existing.replace(current, fragment, 1)
        else:
            sep = "" if existing.endswith("\n") else "\n"
            patched = f"{existing}{sep}\n{fragment}"

    try:
        tomllib.loads(patched)
    except tomllib.TOMLDecodeError as e:
        raise FragmentError(f"cargo config would not be valid TOML with the managed block: {e}") from e
    return patched


def read_link_search(text: str, target: str) -> Optional[str]:
    """Return the -L native= path configured for target, as written."""

    data = tomllib.loads(text)
    flags = ((data.get("target") or {}).get(target) or {}).get("rustflags") or []
    for i, flag in enumerate(flags):
        if flag == "-L" and i + 1 < len(flags):
            value = str(flags[i + 1])
            return value.split("=", 1)[1] if value.startswith("native=") else value
    return None
