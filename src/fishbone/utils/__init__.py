from .log import *
from .safe_call import *
from .tasks import *
from .bounded_queue import *
