# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/config/__init__.py
