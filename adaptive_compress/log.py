# -*- coding: utf-8 -*-
"""
Package logger
"""

import logging

logger = logging.getLogger("adaptive_compress")
