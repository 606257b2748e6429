# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/core/__init__.py
