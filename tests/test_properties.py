import tempfile
from pathlib import Path

from hypothesis import given, settings
from hypothesis import strategies as st

from template_sync.differ import DiffKind, diff_dirs
from template_sync.propagate import propagate

# Strategy: relative paths built from a small alphabet so that collisions,
# nesting and version-control metadata show up often.
components = st.sampled_from(["a", "b", "docs", ".git", "ci.yml", "README.md"])
rel_paths = st.lists(components, min_size=1, max_size=3).map(tuple)
placements = st.tuples(st.sampled_from(["template", "repo", "both"]), st.binary())
layouts = st.dictionaries(rel_paths, placements, max_size=12)


def _files_only(layout: dict[tuple[str, ...], tuple[str, bytes]]) -> dict:
    """Drops paths that are a directory of another path (a file cannot be both)."""
    return {
        p: v
        for p, v in layout.items()
        if not any(len(q) > len(p) and q[: len(p)] == p for q in layout)
    }


def _materialize(layout: dict, template: Path, work: Path) -> None:
    for parts, (side, data) in layout.items():
        if side in ("template", "both"):
            path = template.joinpath(*parts)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        if side in ("repo", "both"):
            path = work.joinpath(*parts)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data + b"-repo")


def _visible(parts: tuple[str, ...]) -> bool:
    return ".git" not in parts


@settings(max_examples=60, deadline=None)
@given(layout=layouts)
def test_diff_partitions_all_paths(layout: dict) -> None:
    """
    Property: every non-excluded file path of either tree lands in exactly one
    kind, and excluded paths never appear.
    """
    layout = _files_only(layout)
    with tempfile.TemporaryDirectory() as tmp:
        template, work = Path(tmp, "t"), Path(tmp, "w")
        template.mkdir()
        work.mkdir()
        _materialize(layout, template, work)

        entries = diff_dirs(template, work)

    by_kind = {kind: {e.path for e in entries if e.kind is kind} for kind in DiffKind}
    expected_template = {
        Path(*p) for p, (side, _) in layout.items() if side != "repo" and _visible(p)
    }
    expected_repo = {
        Path(*p)
        for p, (side, _) in layout.items()
        if side != "template" and _visible(p)
    }

    # Disjoint, and each path reported once.
    assert len(entries) == len({e.path for e in entries})
    assert by_kind[DiffKind.TEMPLATE_ONLY] == expected_template - expected_repo
    assert by_kind[DiffKind.REPO_ONLY] == expected_repo - expected_template
    assert by_kind[DiffKind.COMMON] == expected_template & expected_repo
    assert all(".git" not in e.path.parts for e in entries)


@settings(max_examples=60, deadline=None)
@given(layout=layouts)
def test_propagation_is_faithful_and_idempotent(layout: dict) -> None:
    """
    Property: after one propagation, template-only files exist with identical
    bytes, common files keep the repository's content, and a second run copies
    nothing.
    """
    layout = _files_only(layout)
    with tempfile.TemporaryDirectory() as tmp:
        template, work = Path(tmp, "t"), Path(tmp, "w")
        template.mkdir()
        work.mkdir()
        _materialize(layout, template, work)

        entries = diff_dirs(template, work)
        copied = propagate(entries, template, work)

        expected = {e.path for e in entries if e.kind is DiffKind.TEMPLATE_ONLY}
        assert set(copied) == expected
        for rel in copied:
            assert (work / rel).read_bytes() == (template / rel).read_bytes()

        for parts, (side, data) in layout.items():
            if side == "both":
                assert work.joinpath(*parts).read_bytes() == data + b"-repo"

        again = diff_dirs(template, work)
        assert not [e for e in again if e.kind is DiffKind.TEMPLATE_ONLY]
        assert propagate(again, template, work) == []
