"""
Menu Costing - recipe costing and menu composition engine.

Turns ingredient prices, waste rates, quantities and portion counts into
consistent costs, margins and nutrition figures across ingredients, recipes
and event menus.
"""

__version__ = "0.1.0"
