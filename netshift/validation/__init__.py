# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/validation/__init__.py
