from .distribution import *
