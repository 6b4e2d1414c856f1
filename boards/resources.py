import logging

from falcon import HTTP_OK, Request, Response

from marshmallow import ValidationError

from sqlalchemy.exc import SQLAlchemyError

from broadcast.publisher import collection_snapshot
from devtrack.database import scoped_session
from devtrack.errors import Conflict, InvalidRequest, NotFound, PersistenceError, ResourceError
from devtrack.resources import ModelResource, parse_id, read_json, write_error, write_json
from projects.models import Project
from projects.schemas import ProjectSchema
from users.permissions import AdminDeleteFilter
from .exceptions import InvalidReorderEntry, LastColumn, ModelNotFound
from .models import StatusColumn, Task
from .ordering import (
    apply_column_reorder, apply_task_reorder, next_column_order, next_task_order, reassign_column_tasks,
)
from .schemas import ColumnOrderSchema, StatusColumnSchema, TaskOrderSchema, TaskSchema

logger = logging.getLogger(__name__)


def _get_project_column(session, status_id, project_id):
    column = session.get(StatusColumn, status_id)
    if column is None or column.project_id != project_id:
        raise InvalidRequest(errors={'statusId': ['Unknown status column for this project.']})
    return column

def _load_batch(schema_class, input_data):
    if not isinstance(input_data, list) or len(input_data) == 0:
        raise InvalidRequest('Invalid request body')
    try:
        return schema_class(many=True).load(input_data)
    except ValidationError as err:
        raise InvalidRequest(errors=err.messages)


class TaskResource(ModelResource):
    model_class = Task
    schema_class = TaskSchema
    list_filters = {'projectId': 'project_id'}
    list_order = ('status_id', 'order', 'id', )
    broadcast_models = (Task, )

    def _process_create(self, session, instance):
        _get_project_column(session, instance.status_id, instance.project_id)
        instance.order = next_task_order(session, instance.status_id)

    def _process_update_data(self, session, instance, input_data):
        input_data.pop('projectId', None)
        if input_data.get('statusId') is None:
            input_data.pop('statusId', None)
            return
        status_id = parse_id(input_data['statusId'])
        if status_id != instance.status_id:
            _get_project_column(session, status_id, instance.project_id)
            # moving through a plain update appends to the target column
            instance.order = next_task_order(session, status_id)
        input_data['statusId'] = status_id


class StatusResource(ModelResource):
    model_class = StatusColumn
    schema_class = StatusColumnSchema
    permissions = (AdminDeleteFilter, )
    list_filters = {'projectId': 'project_id'}
    list_order = ('order', 'id', )
    broadcast_models = (StatusColumn, )

    def _process_create(self, session, instance):
        if session.get(Project, instance.project_id) is None:
            raise InvalidRequest(errors={'projectId': ['Unknown project.']})
        instance.order = next_column_order(session, instance.project_id)

    def _process_update_data(self, session, instance, input_data):
        input_data.pop('projectId', None)

    def _delete(self, session, instance):
        try:
            fallback, moved = reassign_column_tasks(session, instance)
        except LastColumn:
            raise Conflict('A project must keep at least one status column')
        logger.info('Moved %d task(s) from column %s to %s', len(moved), instance.id, fallback.id)
        session.delete(instance)

    def _get_broadcast_models(self, method):
        if method == 'delete':
            return (StatusColumn, Task, )
        return self.broadcast_models


class TaskReorderResource:
    def __init__(self, publisher=None):
        self.publisher = publisher

    def on_put(self, req: Request, resp: Response):
        """Applies a batch of {id, statusId, order} moves atomically."""
        try:
            entries = _load_batch(TaskOrderSchema, read_json(req))
            with scoped_session() as session:
                try:
                    tasks, project_ids = apply_task_reorder(session, entries)
                except ModelNotFound as ex:
                    raise NotFound(str(ex))
                except InvalidReorderEntry as ex:
                    raise InvalidRequest(str(ex))
                updated = TaskSchema().dump(tasks, many=True)
        except ResourceError as err:
            logger.warning('Rejected task reorder: %s', err.to_dict())
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to reorder tasks')
            write_error(resp, PersistenceError('Failed to reorder tasks'))
            return

        if self.publisher is not None:
            for project_id in project_ids:
                self.publisher.publish_collection(Task, project_id)
        write_json(resp, HTTP_OK, {'success': True, 'updatedTasks': updated})


class StatusReorderResource:
    def __init__(self, publisher=None):
        self.publisher = publisher

    def on_put(self, req: Request, resp: Response):
        """Applies a batch of {id, order} column moves atomically."""
        try:
            entries = _load_batch(ColumnOrderSchema, read_json(req))
            with scoped_session() as session:
                try:
                    columns, project_ids = apply_column_reorder(session, entries)
                except ModelNotFound as ex:
                    raise NotFound(str(ex))
                except InvalidReorderEntry as ex:
                    raise InvalidRequest(str(ex))
                updated = StatusColumnSchema().dump(columns, many=True)
        except ResourceError as err:
            logger.warning('Rejected column reorder: %s', err.to_dict())
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to reorder columns')
            write_error(resp, PersistenceError('Failed to reorder columns'))
            return

        if self.publisher is not None:
            for project_id in project_ids:
                self.publisher.publish_collection(StatusColumn, project_id)
        write_json(resp, HTTP_OK, {'success': True, 'updatedColumns': updated})


class BoardResource:
    def on_get(self, req: Request, resp: Response, project_id):
        try:
            pid = parse_id(project_id)
            with scoped_session() as session:
                project = session.get(Project, pid)
                if project is None:
                    raise NotFound('Project not found')
                payload = ProjectSchema().dump(project)
                payload['statuses'] = collection_snapshot(session, StatusColumn, pid)
                payload['tasks'] = collection_snapshot(session, Task, pid)
        except ResourceError as err:
            write_error(resp, err)
            return
        write_json(resp, HTTP_OK, payload)
