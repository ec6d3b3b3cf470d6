"""ORM models. Importing this package registers every table on `Base.metadata`."""

from paintsnap.models.area import Area
from paintsnap.models.photo import Photo
from paintsnap.models.project import Project
from paintsnap.models.tag import Tag
from paintsnap.models.user import User

__all__ = ["User", "Project", "Area", "Photo", "Tag"]
