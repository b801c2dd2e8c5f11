from .cache import *
from .predicates import *
from .parser import *
from .injector import *
from .rule import *
