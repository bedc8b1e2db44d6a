"""
Section Manager - organizes a recipe's ingredient lines into sections.

Sections are purely organizational; they never affect cost.

Rules:
- New sections are appended after the last declared section and start empty.
- A section that still owns lines cannot be deleted ("section not empty").
  Lines are never dropped or moved implicitly.
- Moving a line sets its section_id; the target must be a section of the
  same recipe or None (the unassigned bucket). Moving twice to the same
  target changes nothing.
- Grouping for display keeps the declared section order, puts unassigned
  lines in a trailing bucket and sends lines pointing at a section that
  does not exist to a recovery bucket (logged, never raised).

There is no optimistic locking; concurrent edits are last-write-wins.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Sequence

from menu_costing.services.dto import LineSnapshot, RecipeSnapshot, SectionSnapshot
from menu_costing.services.exceptions import LineNotFound, SectionNotFound, ValidationError
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.utils.constants import (
    ERROR_REQUIRED_FIELD,
    ERROR_SECTION_NOT_EMPTY,
    RECOVERY_BUCKET_NAME,
    UNASSIGNED_BUCKET_NAME,
)
from menu_costing.utils.validators import validate_line_data

logger = get_service_logger(__name__)

GROUP_SECTION = "section"
GROUP_UNASSIGNED = "unassigned"
GROUP_RECOVERY = "recovery"


@dataclass(frozen=True)
class LineGroup:
    """
    One display bucket of lines.

    Attributes:
        kind: "section", "unassigned" or "recovery"
        name: Section name or bucket label
        section_id: Section ID (None for synthetic buckets)
        lines: Lines in this bucket, in input order
    """

    kind: str
    name: str
    section_id: Optional[int]
    lines: tuple


# ============================================================================
# Pure rules (shared with recipe_service)
# ============================================================================


def next_section_order(sections: Iterable[SectionSnapshot]) -> int:
    """Order value that places a new section after all existing ones."""
    orders = [s.order for s in sections]
    return max(orders) + 1 if orders else 0


def validate_section_name(name: Optional[str]) -> str:
    """
    Strip and check a section name.

    Raises:
        ValidationError: If the name is empty
    """
    if name is None or not name.strip():
        raise ValidationError({"name": ERROR_REQUIRED_FIELD})
    return name.strip()


def ensure_section_empty(section_id: int, lines: Iterable[LineSnapshot]) -> None:
    """
    Refuse to delete a section that still owns lines.

    Raises:
        ValidationError: "section not empty", with the number of lines
    """
    owned = sum(1 for line in lines if line.section_id == section_id)
    if owned:
        log_operation(
            logger,
            operation="delete_section",
            outcome="rejected_not_empty",
            section_id=section_id,
            line_count=owned,
        )
        raise ValidationError(
            {"section_id": f"{ERROR_SECTION_NOT_EMPTY} ({owned} line(s) still assigned)"}
        )


def ensure_move_target(
    target_section_id: Optional[int],
    sections: Iterable[SectionSnapshot],
    recipe_id: Optional[int] = None,
) -> None:
    """
    Check that a move target is None or a section of this recipe.

    Raises:
        SectionNotFound: If the target is not one of ``sections``
    """
    if target_section_id is None:
        return
    if not any(s.id == target_section_id for s in sections):
        raise SectionNotFound(target_section_id, recipe_id)


def _ensure_valid_line(line: LineSnapshot) -> None:
    errors = validate_line_data(
        {
            "ingredient_id": line.ingredient_id,
            "quantity_per_serving": line.quantity_per_serving,
            "notes": line.notes,
        }
    )
    if errors:
        raise ValidationError(errors)


def group_lines(
    sections: Sequence[SectionSnapshot],
    lines: Iterable[LineSnapshot],
    recipe_id: Optional[int] = None,
) -> List[LineGroup]:
    """
    Partition lines for display.

    Returns:
        One group per declared section (in declared order, possibly empty),
        then an "unassigned" group and a "recovery" group when they hold
        any lines.
    """
    ordered = sorted(sections, key=lambda s: s.order)
    by_section = {s.id: [] for s in ordered}
    unassigned = []
    recovery = []

    for line in lines:
        if line.section_id is None:
            unassigned.append(line)
        elif line.section_id in by_section:
            by_section[line.section_id].append(line)
        else:
            log_operation(
                logger,
                operation="group_lines",
                outcome="orphaned_section_reference",
                level=logging.WARNING,
                recipe_id=recipe_id,
                line_id=line.id,
                section_id=line.section_id,
            )
            recovery.append(line)

    groups = [
        LineGroup(GROUP_SECTION, s.name, s.id, tuple(by_section[s.id])) for s in ordered
    ]
    if unassigned:
        groups.append(LineGroup(GROUP_UNASSIGNED, UNASSIGNED_BUCKET_NAME, None, tuple(unassigned)))
    if recovery:
        groups.append(LineGroup(GROUP_RECOVERY, RECOVERY_BUCKET_NAME, None, tuple(recovery)))
    return groups


def group_recipe_lines(recipe: RecipeSnapshot) -> List[LineGroup]:
    """group_lines() for a whole recipe snapshot."""
    return group_lines(recipe.sections, recipe.lines, recipe.id)


# ============================================================================
# In-memory working copy
# ============================================================================


class SectionManager:
    """
    Working copy of one recipe's sections and lines.

    Used for recipes being edited, including unsaved drafts. Sections and
    lines that have not been persisted yet get temporary negative IDs so
    lines can reference draft sections; they are replaced by real IDs when
    the draft is flushed.
    """

    def __init__(
        self,
        recipe_id: Optional[int] = None,
        sections: Iterable[SectionSnapshot] = (),
        lines: Iterable[LineSnapshot] = (),
    ):
        self.recipe_id = recipe_id
        self._temp_seq = 0
        self.sections: List[SectionSnapshot] = [
            s if s.id is not None else replace(s, id=self._temp_id()) for s in sections
        ]
        self.lines: List[LineSnapshot] = [
            line if line.id is not None else replace(line, id=self._temp_id()) for line in lines
        ]

    @classmethod
    def for_recipe(cls, recipe: RecipeSnapshot) -> "SectionManager":
        return cls(recipe.id, recipe.sections, recipe.lines)

    def _temp_id(self) -> int:
        self._temp_seq -= 1
        return self._temp_seq

    @staticmethod
    def is_temporary_id(value: Optional[int]) -> bool:
        return value is not None and value < 0

    def _section_index(self, section_id: int) -> int:
        for index, section in enumerate(self.sections):
            if section.id == section_id:
                return index
        raise SectionNotFound(section_id, self.recipe_id)

    def _line_index(self, line_id: int) -> int:
        for index, line in enumerate(self.lines):
            if line.id == line_id:
                return index
        raise LineNotFound(line_id)

    def get_section(self, section_id: int) -> SectionSnapshot:
        return self.sections[self._section_index(section_id)]

    def get_line(self, line_id: int) -> LineSnapshot:
        return self.lines[self._line_index(line_id)]

    def create_section(self, name: str, section_id: Optional[int] = None) -> SectionSnapshot:
        """Append an empty section at the end of the declared order."""
        section = SectionSnapshot(
            id=section_id if section_id is not None else self._temp_id(),
            recipe_id=self.recipe_id,
            name=validate_section_name(name),
            order=next_section_order(self.sections),
        )
        self.sections.append(section)
        return section

    def rename_section(self, section_id: int, name: str) -> SectionSnapshot:
        index = self._section_index(section_id)
        self.sections[index] = replace(self.sections[index], name=validate_section_name(name))
        return self.sections[index]

    def delete_section(self, section_id: int) -> None:
        """Remove an empty section; rejected while it owns lines."""
        index = self._section_index(section_id)
        ensure_section_empty(section_id, self.lines)
        del self.sections[index]

    def reorder_sections(self, section_ids: Sequence[int]) -> List[SectionSnapshot]:
        """
        Rewrite the declared order.

        Raises:
            ValidationError: If section_ids is not a permutation of the
                recipe's section IDs
        """
        if sorted(section_ids) != sorted(s.id for s in self.sections):
            raise ValidationError({"section_ids": "Must list every section of the recipe exactly once"})
        position = {section_id: order for order, section_id in enumerate(section_ids)}
        self.sections = sorted(
            (replace(s, order=position[s.id]) for s in self.sections), key=lambda s: s.order
        )
        return list(self.sections)

    def add_line(self, line: LineSnapshot) -> LineSnapshot:
        """Add a line to the working copy (temporary ID if it has none)."""
        _ensure_valid_line(line)
        ensure_move_target(line.section_id, self.sections, self.recipe_id)
        if any(existing.ingredient_id == line.ingredient_id for existing in self.lines):
            raise ValidationError({"ingredient_id": "Ingredient is already in the recipe"})
        if line.id is None:
            line = replace(line, id=self._temp_id())
        self.lines.append(line)
        return line

    def update_line(self, line_id: int, **changes) -> LineSnapshot:
        index = self._line_index(line_id)
        if "section_id" in changes:
            ensure_move_target(changes["section_id"], self.sections, self.recipe_id)
        updated = replace(self.lines[index], **changes)
        _ensure_valid_line(updated)
        self.lines[index] = updated
        return self.lines[index]

    def remove_line(self, line_id: int) -> None:
        del self.lines[self._line_index(line_id)]

    def move_line(self, line_id: int, target_section_id: Optional[int]) -> LineSnapshot:
        """Assign a line to a section (or None for unassigned). Idempotent."""
        index = self._line_index(line_id)
        ensure_move_target(target_section_id, self.sections, self.recipe_id)
        if self.lines[index].section_id != target_section_id:
            self.lines[index] = replace(self.lines[index], section_id=target_section_id)
        return self.lines[index]

    def grouped(self) -> List[LineGroup]:
        return group_lines(self.sections, self.lines, self.recipe_id)
