"""
Tailor Ops Package

Back office for a tailoring and alterations service:
- Customer and tailor records
- Order and item lifecycle (pickup intent through delivery)
- Per-order financial rollups
- Dashboard activity feed of pickups and deliveries
"""

__version__ = "1.0.0"
__author__ = "Tailor Ops Team"
