"""
slotbook - bookable appointment slots for small service businesses.
"""

__version__ = "0.1.0"
