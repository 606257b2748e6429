# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/orphans/__init__.py
