# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/apply/__init__.py
