import logging

logger = logging.getLogger("looprun")
