# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/host/__init__.py
