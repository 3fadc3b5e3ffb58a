import pytest

from fleet_drift.core.merge3 import ConflictSide, MergeConflictError, merge3

BASE = "a\nb\nc\nd\ne\n"


def test_changes_in_separate_regions_merge_cleanly() -> None:
    ours = "A\nb\nc\nd\ne\n"
    theirs = "a\nb\nc\nd\nE\n"

    result = merge3(BASE, ours, theirs)

    assert result.text == "A\nb\nc\nd\nE\n"
    assert result.conflicts == 0


def test_identical_changes_are_not_conflicts() -> None:
    both = "a\nb\nX\nd\ne\n"

    assert merge3(BASE, both, both).text == both


def test_one_sided_change_is_taken() -> None:
    theirs = "a\nb\nc\nd\ne\nf\n"

    assert merge3(BASE, BASE, theirs).text == theirs
    assert merge3(BASE, theirs, BASE).text == theirs


def test_conflict_without_preference_raises() -> None:
    with pytest.raises(MergeConflictError) as exc:
        merge3(BASE, "a\nb\nOURS\nd\ne\n", "a\nb\nTHEIRS\nd\ne\n")

    assert exc.value.conflicts == 1


def test_conflict_resolved_by_preferred_side() -> None:
    ours = "a\nb\nOURS\nd\ne\n"
    theirs = "a\nb\nTHEIRS\nd\ne\n"

    favor_ours = merge3(BASE, ours, theirs, prefer=ConflictSide.OURS)
    favor_theirs = merge3(BASE, ours, theirs, prefer=ConflictSide.THEIRS)

    assert favor_ours.text == ours
    assert favor_ours.conflicts == 1
    assert favor_theirs.text == theirs
