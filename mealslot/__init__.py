"""
mealslot - find a free cooking slot for a recipe in your calendar.
"""

__version__ = "0.1.0"
