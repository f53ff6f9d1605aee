
from utils.logger import logger
from utils.config import load_cfg

__all__ = ["logger", "load_cfg"]
