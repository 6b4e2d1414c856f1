from users.models import User  # noqa
from projects.models import Project  # noqa
from boards.models import StatusColumn, Task  # noqa
