"""
Split Tracker - Source Package

The settlement core of a shared-expense tracker: split a bill among
participants, track who has paid, remind those who have not.

DESIGN PRINCIPLES:
1. Money is exact: shares add up to the total to the cent
2. Status is derived, never stored independently of participants
3. Fail early, fail visibly: validate before anything is written
4. Every step must be auditable
5. Storage and notification layers are swappable
"""

__version__ = "1.0.0"
__author__ = "Split Tracker Team"
