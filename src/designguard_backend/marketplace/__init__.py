# marketplace/__init__.py
from .database import Base, Database, utcnow
