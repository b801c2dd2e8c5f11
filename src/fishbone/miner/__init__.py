from .config import *
from .node import *
from .base import *
from .queue import *
from .fishbone_miner import *
