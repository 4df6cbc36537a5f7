"""Group tabs over an already loaded list of registrants."""

from typing import Any, List, Sequence, Union

from app.registrants.rules import GROUP_NUMBERS, is_valid_group

ALL = "all"
UNASSIGNED = "unassigned"

GroupSelector = Union[int, str]


def parse_group_selector(value: str) -> GroupSelector:
    """Turn a tab value ("all", "unassigned" or a group number) into a selector."""
    text = value.strip().lower()
    if text in (ALL, UNASSIGNED):
        return text
    if text.isdigit() and is_valid_group(int(text)):
        return int(text)
    raise ValueError(
        f"Invalid group filter: {value!r}. Use 'all', 'unassigned' or one of "
        f"{', '.join(str(g) for g in GROUP_NUMBERS)}."
    )


def filter_by_group(records: Sequence[Any], selector: GroupSelector) -> List[Any]:
    """Records matching `selector`, keeping their relative order."""
    if selector == ALL:
        return list(records)
    if selector == UNASSIGNED:
        return [r for r in records if r.assigned_group is None]
    return [r for r in records if r.assigned_group == selector]
