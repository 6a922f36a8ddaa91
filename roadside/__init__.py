"""
Roadside Dispatch: маркетплейс помощи на дороге.
"""

__version__ = "0.1.0"
