# app/models/__init__.py

from .client import *
from .user import *
from .field_mapping import *
from .import_history import *
from .enums import *
# add all your models here for easy import elsewhere
