# -*- coding: utf-8 -*-
import logging


__version__ = '0.4.0'

root_logger = logging.getLogger(__name__)
