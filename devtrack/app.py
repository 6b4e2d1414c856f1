import logging
import logging.config

import falcon

from boards.resources import (
    BoardResource,
    StatusReorderResource,
    StatusResource,
    TaskReorderResource,
    TaskResource,
)
from broadcast.backends import create_broadcaster
from broadcast.publisher import Publisher
from projects.resources import ProjectResource
from users.resources import (
    LoginResource,
    ProfileResource,
    RegisterResource,
)
from .middleware import create_auth_middleware
from .resources import ModelResource
from .settings import (
    ALLOWED_ORIGINS, BROADCAST_BACKEND, LOGGING, REDIS_SOCKET_TIMEOUT, REDIS_URL,
)

logger = logging.getLogger(__name__)

def create_app(broadcaster=None):
    logging.config.dictConfig(LOGGING)

    if broadcaster is None:
        broadcaster = create_broadcaster(BROADCAST_BACKEND, REDIS_URL, REDIS_SOCKET_TIMEOUT)
    publisher = Publisher(broadcaster)

    cors = falcon.CORSMiddleware(allow_origins=ALLOWED_ORIGINS, allow_credentials=ALLOWED_ORIGINS)
    app = falcon.App(middleware=[cors, create_auth_middleware()])

    app.add_route('/login', LoginResource())
    app.add_route('/register', RegisterResource())
    app.add_route('/profile', ProfileResource())

    # literal segments win over /tasks/{obj_id} in the router
    app.add_route('/tasks/reorder', TaskReorderResource(publisher))
    app.add_route('/status/reorder', StatusReorderResource(publisher))
    app.add_route('/board/{project_id}', BoardResource())

    ModelResource.register_endpoints('/projects', app, ProjectResource(publisher))
    ModelResource.register_endpoints('/tasks', app, TaskResource(publisher))
    ModelResource.register_endpoints('/status', app, StatusResource(publisher))

    logger.info('Application created with %s broadcaster', type(broadcaster).__name__)
    return app

def get_app():
    return create_app()
