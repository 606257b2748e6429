# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/__init__.py
__version__ = "0.1.0"
