"""Utility modules for Menu Costing."""
