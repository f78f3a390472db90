from .base import Base, Database, get_database
from .models import DocumentRecord

__all__ = ["Base", "Database", "DocumentRecord", "get_database"]
