# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Logistica Uraba package tracking server."""
