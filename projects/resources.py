import logging

from boards.models import StatusColumn, Task
from broadcast.channels import PROJECT_DELETED, PROJECTS_CHANNEL
from devtrack.resources import ModelResource
from users.permissions import AdminWriteFilter
from .models import Project
from .schemas import ProjectSchema

logger = logging.getLogger(__name__)

class ProjectResource(ModelResource):
    model_class = Project
    schema_class = ProjectSchema
    permissions = (AdminWriteFilter, )
    list_order = ('-created_at', '-id', )
    broadcast_models = (Project, )
    idempotent_delete = True

    def _get_scope(self, instance):
        return None

    def _delete(self, session, instance):
        # children first, all inside the handler's transaction
        session.query(Task).filter(Task.project_id == instance.id).delete(synchronize_session=False)
        session.query(StatusColumn).filter(StatusColumn.project_id == instance.id).delete(synchronize_session=False)
        session.delete(instance)
        logger.info('Deleting project %s and its board', instance.id)

    def _after_commit(self, method, scope, item_dump):
        if method == 'delete' and self.publisher is not None:
            self.publisher.publish(PROJECTS_CHANNEL, PROJECT_DELETED, {'id': item_dump['id']})
        super()._after_commit(method, scope, item_dump)

    def _deleted_response(self, item_dump):
        return {'success': True, 'message': 'Project deleted successfully.'}

    def _already_deleted_response(self, obj_id):
        return {'success': True, 'message': 'Project already deleted.'}
