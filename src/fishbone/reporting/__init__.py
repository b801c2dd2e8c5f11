from .records import *
from .visualize import *
from .logger import *
