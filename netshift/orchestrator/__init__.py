# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/orchestrator/__init__.py
