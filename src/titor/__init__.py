# Author: PB
# Maintainer: PB
# Original date: 2026.10.18
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/titor/__init__.py

"""titor - rotating, space-bounded backups to a remote host over SSH."""
