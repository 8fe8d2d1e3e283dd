# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Incremental hot-swap loader for remotely managed scripts."""

__version__ = "0.1.0"
