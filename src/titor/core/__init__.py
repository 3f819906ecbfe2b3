# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/core/__init__.py

"""Backup decision engine: catalog, retention planner, capacity guard, space reclaimer."""
