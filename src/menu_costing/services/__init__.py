"""
Service layer for Menu Costing.

Pure computation modules (no database access):
- ingredient_valuation: waste-adjusted net price and ingredient validation
- costing: recipe cost, cost per serving, margin and suggested price
- section_manager: section bookkeeping and grouping of lines for display
- nutrition: unit-to-gram scaling of nutrition facts
- saga: ordered sequences of independent calls with per-step outcomes

Persistence collaborator (one SQLAlchemy session per call):
- ingredient_service, recipe_service, event_service, category_service

Workflows combining both:
- event_budgeting: menu item costs and event budget figures are pure
  functions; add_recipes_to_event and MenuBudget persist through
  event_service
- recipe_editor: Viewing/Editing/Saving state machine with draft flush
"""
