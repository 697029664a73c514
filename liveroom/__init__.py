# Kept import-light: alembic loads Base from here without pulling in services
from liveroom.shared.models.base import Base

__all__ = ["Base"]
