# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/identity/__init__.py
