"""Line-based three-way merge.

Replays the incoming change (``ours``) and the branch tip (``theirs``) against
their common ``base``. Hunks changed on only one side merge cleanly; hunks
changed differently on both sides are conflicts, resolved by the configured
side or reported.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from difflib import SequenceMatcher


class ConflictSide(str, enum.Enum):
    OURS = "ours"
    THEIRS = "theirs"
    NONE = "none"


class MergeConflictError(Exception):
    def __init__(self, conflicts: int):
        super().__init__(f"{conflicts} conflicting hunk(s)")
        self.conflicts = conflicts


@dataclass(frozen=True)
class MergeResult:
    text: str
    conflicts: int


def _sync_regions(base: list[str], a: list[str], b: list[str]) -> list[tuple[int, int, int, int, int, int]]:
    """Regions of `base` left untouched by both `a` and `b`, with their positions in each."""

    ia = SequenceMatcher(None, base, a, autojunk=False).get_matching_blocks()
    ib = SequenceMatcher(None, base, b, autojunk=False).get_matching_blocks()
    regions = []
    i = j = 0
    while i < len(ia) and j < len(ib):
        abase, amatch, alen = ia[i]
        bbase, bmatch, blen = ib[j]
        start = max(abase, bbase)
        end = min(abase + alen, bbase + blen)
        if start < end:
            asub = amatch + (start - abase)
            bsub = bmatch + (start - bbase)
            regions.append((start, end, asub, asub + (end - start), bsub, bsub + (end - start)))
        if abase + alen < bbase + blen:
            i += 1
        else:
            j += 1
    regions.append((len(base), len(base), len(a), len(a), len(b), len(b)))
    return regions


def merge3(base: str, ours: str, theirs: str, prefer: ConflictSide = ConflictSide.NONE) -> MergeResult:
    """Merge `ours` and `theirs` relative to `base`.

    Raises MergeConflictError when hunks conflict and `prefer` is NONE.
    """

    base_lines = base.splitlines(keepends=True)
    a = ours.splitlines(keepends=True)
    b = theirs.splitlines(keepends=True)

    out: list[str] = []
    conflicts = 0
    iz = ia = ib = 0
    for zmatch, zend, amatch, aend, bmatch, bend in _sync_regions(base_lines, a, b):
        base_chunk = base_lines[iz:zmatch]
        a_chunk = a[ia:amatch]
        b_chunk = b[ib:bmatch]
        if a_chunk or b_chunk or base_chunk:
            if a_chunk == b_chunk or b_chunk == base_chunk:
                out.extend(a_chunk)
            elif a_chunk == base_chunk:
                out.extend(b_chunk)
            else:
                conflicts += 1
                if prefer is ConflictSide.OURS:
                    out.extend(a_chunk)
                elif prefer is ConflictSide.THEIRS:
                    out.extend(b_chunk)
        out.extend(base_lines[zmatch:zend])
        iz, ia, ib = zend, aend, bend

    if conflicts and prefer is ConflictSide.NONE:
        raise MergeConflictError(conflicts)
    return MergeResult(text="".join(out), conflicts=conflicts)
