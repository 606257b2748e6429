# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/tunables/__init__.py
