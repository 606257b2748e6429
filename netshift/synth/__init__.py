# SPDX-License-Identifier: LGPL-3.0-or-later
# netshift/synth/__init__.py
