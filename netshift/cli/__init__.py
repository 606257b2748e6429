# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/cli/__init__.py
