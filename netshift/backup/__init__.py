# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/backup/__init__.py
