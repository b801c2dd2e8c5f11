from .adjustment import *
from .significance import *
from .holdout import *
