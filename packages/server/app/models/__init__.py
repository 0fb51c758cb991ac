# SQLModel definitions — imported here to ensure metadata is populated for create_all.
from .base import IntIdMixin, CreatedAtMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .user_org import UserOrganization  # noqa: F401
from .instance import Instance  # noqa: F401
from .instance_access import UserInstanceAccess  # noqa: F401
