# SQLAlchemy models and session helpers
from .models import Base, WeaknessRecordRow

__all__ = ["Base", "WeaknessRecordRow"]
