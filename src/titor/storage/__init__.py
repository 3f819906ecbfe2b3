# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/storage/__init__.py

"""Remote store and transfer implementations (SSH, rsync)."""
