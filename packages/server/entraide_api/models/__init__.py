# SQLModel definitions, imported here so metadata is populated for create_all.
from .base import CreatedAtMixin, IntIdMixin  # noqa: F401
from .identity import Identity  # noqa: F401
from .user import User  # noqa: F401
from .project import Project  # noqa: F401
from .resources import Materiel, Outil, Transport  # noqa: F401
from .assignments import ProjectVolunteer, ProjectOutilRequest  # noqa: F401
from .offerings import MaterielOffering, OutilOffering, TransportOffering  # noqa: F401
