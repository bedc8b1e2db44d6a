"""
Recipe Editor - editing workflow for one recipe.

State machine:

    VIEWING --begin_edit--> EDITING --save--> SAVING --ok--> VIEWING
                               ^                 |
                               +---- invalid ----+

A failed validation returns to EDITING with the field -> message map in
``errors`` and writes nothing. Calling save() again while a save is running
raises SaveInProgressError.

Stored recipes write line and section edits through immediately, one
service call each; only the recipe fields wait for save(). A draft (a recipe
that does not exist yet) buffers everything in memory. Its first save
creates the recipe, then each buffered section, then each buffered line,
as independent calls; a failing call is reported and the rest still run.
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from menu_costing.services import costing, recipe_service
from menu_costing.services.dto import IngredientSnapshot, LineSnapshot, RecipeSnapshot, SectionSnapshot
from menu_costing.services.exceptions import (
    InvalidStateTransition,
    SaveInProgressError,
    ServiceError,
    ValidationError,
)
from menu_costing.services.logging_utils import get_service_logger, log_operation
from menu_costing.services.saga import Saga, SagaReport
from menu_costing.services.section_manager import LineGroup, SectionManager
from menu_costing.utils.constants import DEFAULT_TARGET_MARGIN
from menu_costing.utils.formatting import to_decimal

logger = get_service_logger(__name__)

_EXTRA_FIELDS = ("prep_time", "difficulty", "instructions")


class EditorState(Enum):
    VIEWING = "viewing"
    EDITING = "editing"
    SAVING = "saving"


@dataclass
class SaveResult:
    """
    Outcome of RecipeEditor.save().

    Attributes:
        saved: False when validation blocked the save
        errors: Field -> message map (empty when saved)
        recipe: Recipe as reloaded after the save
        sections_report: Per-section outcomes of a draft flush
        lines_report: Per-line outcomes of a draft flush
    """

    saved: bool
    errors: Dict[str, str] = field(default_factory=dict)
    recipe: Optional[RecipeSnapshot] = None
    sections_report: Optional[SagaReport] = None
    lines_report: Optional[SagaReport] = None

    @property
    def has_failures(self) -> bool:
        return any(r is not None and r.has_failures for r in (self.sections_report, self.lines_report))


class RecipeEditor:
    """Editing session for one recipe, stored or draft."""

    def __init__(
        self,
        recipe: RecipeSnapshot,
        extra: Optional[Dict[str, Any]] = None,
        ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
    ):
        self.ingredients = ingredients
        self.errors: Dict[str, str] = {}
        self.state = EditorState.VIEWING
        self._reset(recipe, extra)

    @classmethod
    def new(
        cls,
        name: str = "",
        servings: int = 1,
        production_servings: int = 1,
        net_price: Any = None,
        ingredients: Optional[Mapping[int, IngredientSnapshot]] = None,
        **extra: Any,
    ) -> "RecipeEditor":
        """Start a draft recipe, already in EDITING."""
        draft = RecipeSnapshot(
            name=name,
            servings=servings,
            production_servings=production_servings,
            net_price=to_decimal(net_price),
        )
        editor = cls(draft, extra, ingredients)
        editor.state = EditorState.EDITING
        return editor

    @classmethod
    def load(
        cls, recipe_id: int, ingredients: Optional[Mapping[int, IngredientSnapshot]] = None
    ) -> "RecipeEditor":
        """Open a stored recipe in VIEWING."""
        record = recipe_service.get_recipe(recipe_id)
        extra = {name: getattr(record, name) for name in _EXTRA_FIELDS}
        return cls(RecipeSnapshot.from_record(record), extra, ingredients)

    def _reset(self, recipe: RecipeSnapshot, extra: Optional[Dict[str, Any]]) -> None:
        self._original = recipe
        self._original_extra = dict(extra or {})
        self.fields = replace(recipe, sections=(), lines=())
        self.extra = dict(self._original_extra)
        self.manager = SectionManager.for_recipe(recipe)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_draft(self) -> bool:
        return self.fields.id is None

    @property
    def recipe(self) -> RecipeSnapshot:
        """Current working copy with sections and lines."""
        return replace(
            self.fields, sections=tuple(self.manager.sections), lines=tuple(self.manager.lines)
        )

    def _require(self, state: EditorState, requested: str) -> None:
        if self.state is not state:
            raise InvalidStateTransition(self.state.value, requested)

    def begin_edit(self) -> None:
        self._require(EditorState.VIEWING, "begin_edit")
        self.errors = {}
        self.state = EditorState.EDITING

    def cancel(self) -> None:
        """Drop unsaved field changes (and, for a draft, the buffered lines)."""
        self._require(EditorState.EDITING, "cancel")
        if self.is_draft:
            self._reset(self._original, self._original_extra)
        else:
            self.fields = replace(self._original, sections=(), lines=())
            self.extra = dict(self._original_extra)
        self.errors = {}
        self.state = EditorState.VIEWING

    def set_fields(self, **changes: Any) -> RecipeSnapshot:
        """Change name, servings, production_servings, net_price or extra fields."""
        self._require(EditorState.EDITING, "edit")
        for name in list(changes):
            if name in _EXTRA_FIELDS:
                self.extra[name] = changes.pop(name)
        if "net_price" in changes:
            changes["net_price"] = to_decimal(changes["net_price"])
        self.fields = replace(self.fields, **changes)
        return self.fields

    # ------------------------------------------------------------------
    # Sections and lines
    # ------------------------------------------------------------------

    def create_section(self, name: str) -> SectionSnapshot:
        self._require(EditorState.EDITING, "create_section")
        if self.is_draft:
            return self.manager.create_section(name)
        created = recipe_service.create_section(self.fields.id, name)
        return self.manager.create_section(created.name, section_id=created.id)

    def rename_section(self, section_id: int, name: str) -> SectionSnapshot:
        self._require(EditorState.EDITING, "rename_section")
        if not self.is_draft:
            recipe_service.rename_section(section_id, name)
        return self.manager.rename_section(section_id, name)

    def delete_section(self, section_id: int) -> None:
        self._require(EditorState.EDITING, "delete_section")
        if not self.is_draft:
            recipe_service.delete_section(section_id)
        self.manager.delete_section(section_id)

    def reorder_sections(self, section_ids: Sequence[int]) -> List[SectionSnapshot]:
        self._require(EditorState.EDITING, "reorder_sections")
        if not self.is_draft:
            recipe_service.reorder_sections(self.fields.id, section_ids)
        return self.manager.reorder_sections(section_ids)

    def add_line(
        self,
        ingredient: Any,
        quantity_per_serving: Any,
        section_id: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> LineSnapshot:
        """
        Add an ingredient line.

        Args:
            ingredient: IngredientSnapshot, or an ingredient ID resolved
                through ``ingredients``
            quantity_per_serving: Amount for ONE serving
        """
        self._require(EditorState.EDITING, "add_line")
        if isinstance(ingredient, IngredientSnapshot):
            snapshot = ingredient
        else:
            snapshot = (self.ingredients or {}).get(ingredient)
        line = LineSnapshot(
            ingredient_id=snapshot.id if snapshot is not None else ingredient,
            quantity_per_serving=to_decimal(quantity_per_serving),
            section_id=section_id,
            notes=notes,
            ingredient=snapshot,
        )
        if self.is_draft:
            return self.manager.add_line(line)
        return self.manager.add_line(recipe_service.add_line(self.fields.id, line))

    def update_line(self, line_id: int, **changes: Any) -> LineSnapshot:
        self._require(EditorState.EDITING, "update_line")
        if "quantity_per_serving" in changes:
            changes["quantity_per_serving"] = to_decimal(changes["quantity_per_serving"])
        if not self.is_draft:
            stored = recipe_service.update_line(line_id, changes)
            changes = {
                "quantity_per_serving": stored.quantity_per_serving,
                "notes": stored.notes,
                "section_id": stored.section_id,
            }
        return self.manager.update_line(line_id, **changes)

    def remove_line(self, line_id: int) -> None:
        self._require(EditorState.EDITING, "remove_line")
        if not self.is_draft:
            recipe_service.remove_line(line_id)
        self.manager.remove_line(line_id)

    def move_line(self, line_id: int, target_section_id: Optional[int]) -> LineSnapshot:
        self._require(EditorState.EDITING, "move_line")
        if not self.is_draft:
            recipe_service.move_line(line_id, target_section_id)
        return self.manager.move_line(line_id, target_section_id)

    def grouped(self) -> List[LineGroup]:
        return self.manager.grouped()

    # ------------------------------------------------------------------
    # Costing
    # ------------------------------------------------------------------

    def summary(self, target_margin: Any = DEFAULT_TARGET_MARGIN) -> costing.RecipeCostSummary:
        return costing.summarize(self.recipe, target_margin, self.ingredients)

    def total_cost(self) -> Decimal:
        return costing.recipe_cost(self.recipe, ingredients=self.ingredients)

    def allergens(self):
        return costing.recipe_allergens(self.recipe, self.ingredients)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def _field_values(self) -> Dict[str, Any]:
        values = {
            "name": self.fields.name,
            "servings": self.fields.servings,
            "production_servings": self.fields.production_servings,
            "net_price": self.fields.net_price,
        }
        values.update(self.extra)
        return values

    def save(self) -> SaveResult:
        """
        Validate and persist the recipe.

        Returns:
            SaveResult; ``saved`` is False when validation failed

        Raises:
            SaveInProgressError: If a save is already running
            InvalidStateTransition: If the editor is not EDITING
            DatabaseError: If creating or updating the recipe itself failed
                (the editor goes back to EDITING)
        """
        if self.state is EditorState.SAVING:
            raise SaveInProgressError(self.fields.name)
        self._require(EditorState.EDITING, "save")

        self.state = EditorState.SAVING
        values = self._field_values()
        errors = costing.recipe_save_errors(values)
        if errors:
            return self._reject(errors)

        try:
            if self.is_draft:
                result = self._flush_draft(values)
            else:
                recipe_service.update_recipe(self.fields.id, values)
                result = SaveResult(saved=True)
            record = recipe_service.get_recipe(result.recipe.id if result.recipe else self.fields.id)
        except ValidationError as e:
            return self._reject(e.errors)
        except ServiceError:
            self.state = EditorState.EDITING
            raise

        self._reset(
            RecipeSnapshot.from_record(record),
            {name: getattr(record, name) for name in _EXTRA_FIELDS},
        )
        result.recipe = self._original
        self.errors = {}
        self.state = EditorState.VIEWING
        log_operation(
            logger,
            operation="save_recipe",
            outcome="partial_failure" if result.has_failures else "success",
            level=logging.WARNING if result.has_failures else logging.INFO,
            recipe_id=self._original.id,
        )
        return result

    def _reject(self, errors: Dict[str, str]) -> SaveResult:
        self.errors = dict(errors)
        self.state = EditorState.EDITING
        log_operation(
            logger,
            operation="save_recipe",
            outcome="validation_failed",
            level=logging.WARNING,
            recipe_id=self.fields.id,
            fields=sorted(self.errors),
        )
        return SaveResult(saved=False, errors=dict(errors))

    def _flush_draft(self, values: Dict[str, Any]) -> SaveResult:
        """Create the recipe, then its buffered sections, then its buffered lines."""
        created = recipe_service.create_recipe(values)
        recipe_id = created.id
        # the recipe exists from here on; a retried save must update it
        self.fields = replace(self.fields, id=recipe_id)
        self._original = replace(self._original, id=recipe_id)
        self.manager.recipe_id = recipe_id

        sections_saga = Saga("flush_draft_sections", recipe_id=recipe_id)
        for section in sorted(self.manager.sections, key=lambda s: s.order):
            sections_saga.add(section.id, recipe_service.create_section, recipe_id, section.name)
        sections_report = sections_saga.run()
        section_ids = {o.key: o.result.id for o in sections_report.succeeded}

        lines_saga = Saga("flush_draft_lines", recipe_id=recipe_id)
        for line in self.manager.lines:
            # lines whose section could not be created fall back to unassigned
            target = section_ids.get(line.section_id) if line.section_id is not None else None
            lines_saga.add(
                line.ingredient_id,
                recipe_service.add_line,
                recipe_id,
                {
                    "ingredient_id": line.ingredient_id,
                    "quantity_per_serving": line.quantity_per_serving,
                    "section_id": target,
                    "notes": line.notes,
                },
            )
        lines_report = lines_saga.run()

        return SaveResult(
            saved=True,
            recipe=RecipeSnapshot(
                id=recipe_id,
                name=created.name,
                servings=created.servings,
                production_servings=created.production_servings,
            ),
            sections_report=sections_report,
            lines_report=lines_report,
        )
