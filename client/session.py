import itertools
import logging

from functools import partial

from broadcast.channels import (
    COLUMNS_UPDATED, PROJECT_DELETED, PROJECTS_CHANNEL, PROJECTS_UPDATED, TASKS_UPDATED, project_channel,
)
from users.roles import ROLE_ADMIN
from . import store as actions
from .api import ApiError
from .moves import column_group, plan_column_move, plan_task_move, task_group

logger = logging.getLogger(__name__)

ERROR = 'error'
SUCCESS = 'success'


def log_notify(level, title, message):
    log_level = logging.ERROR if level == ERROR else logging.INFO
    logger.log(log_level, '%s: %s', title, message)


class BoardSession:
    """Keeps a ``Store`` in step with one project while it is being viewed.

    Local gestures are applied optimistically and then persisted; canonical
    broadcasts replace the affected collections whole. Failures are reported
    through ``notify(level, title, message)`` and rolled back, never retried.
    """

    def __init__(self, store, api, broadcaster, user=None, notify=None, temp_ids=None):
        self.store = store
        self.api = api
        self.broadcaster = broadcaster
        self.user = user
        self.notify = notify or log_notify
        self.project_id = None
        self.__temp_ids = temp_ids if temp_ids is not None else itertools.count(1)
        self.__subscriptions = []

    @property
    def is_admin(self):
        return self.user is not None and self.user.get('role') == ROLE_ADMIN

    def open(self, project_id):
        if self.project_id is not None:
            self.close()
        self.project_id = project_id
        self.store.dispatch(actions.action(actions.SET_ACTIVE_PROJECT, project_id))
        self.__subscriptions = [
            self.broadcaster.subscribe(project_channel(project_id), partial(self._on_project_event, project_id)),
            self.broadcaster.subscribe(PROJECTS_CHANNEL, self._on_projects_event),
        ]
        self.resync()
        logger.info('Watching project %s', project_id)
        return self

    def close(self):
        for subscription in self.__subscriptions:
            subscription.unsubscribe()
        self.__subscriptions = []
        if self.project_id is not None:
            logger.info('Stopped watching project %s', self.project_id)
        self.project_id = None

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        self.close()

    def resync(self):
        """Replace the project's columns and tasks with a fresh board read."""
        self.store.dispatch(actions.action(actions.SET_LOADING, True))
        try:
            board = self.api.get_board(self.project_id)
        except ApiError as ex:
            self.notify(ERROR, 'Failed to load board', ex.message)
            return False
        finally:
            self.store.dispatch(actions.action(actions.SET_LOADING, False))
        self._set_board(board)
        return True

    def _set_board(self, board):
        self.store.dispatch(actions.action(
            actions.SET_STATUS_COLUMNS, board['statuses'], project_id=self.project_id))
        self.store.dispatch(actions.action(
            actions.SET_TASKS, board['tasks'], project_id=self.project_id))

    def _on_project_event(self, project_id, event, data):
        if event == TASKS_UPDATED:
            self.store.dispatch(actions.action(actions.SET_TASKS, data, project_id=project_id))
        elif event == COLUMNS_UPDATED:
            self.store.dispatch(actions.action(actions.SET_STATUS_COLUMNS, data, project_id=project_id))
        else:
            logger.debug('Ignoring %s on project %s', event, project_id)

    def _on_projects_event(self, event, data):
        if event == PROJECTS_UPDATED:
            self.store.dispatch(actions.action(actions.SET_PROJECTS, data))
        elif event == PROJECT_DELETED:
            self.store.dispatch(actions.action(actions.DELETE_PROJECT, data['id']))

    def _next_temp_id(self):
        return 'temp-{}'.format(next(self.__temp_ids))

    def _deny(self, what):
        self.notify(ERROR, 'Permission denied', 'Only admins can {}.'.format(what))
        return None

    # drag and drop

    def drop_task(self, task_id, target):
        batch = plan_task_move(self.store.state.tasks, task_id, target)
        if batch is None:
            return False
        self.store.dispatch(actions.action(actions.MOVE_TASK, {'taskId': task_id, 'target': target}))
        try:
            self.api.reorder_tasks(batch)
        except ApiError as ex:
            self.notify(ERROR, 'Failed to move task', ex.message)
            self.resync()
            return False
        return True

    def drop_column(self, column_id, target):
        batch = plan_column_move(self.store.state.status_columns, column_id, target)
        if batch is None:
            return False
        self.store.dispatch(actions.action(actions.REORDER_STATUS_COLUMNS, batch))
        try:
            self.api.reorder_columns(batch)
        except ApiError as ex:
            self.notify(ERROR, 'Failed to reorder columns', ex.message)
            self.resync()
            return False
        return True

    # optimistic creation

    def add_task(self, data):
        temp_id = self._next_temp_id()
        row = dict(data, id=temp_id, projectId=self.project_id)
        row['order'] = len(task_group(self.store.state.tasks, self.project_id, row.get('statusId')))
        self.store.dispatch(actions.action(actions.ADD_TASK, row))
        try:
            created = self.api.create_task(dict(data, projectId=self.project_id))
        except ApiError as ex:
            self.store.dispatch(actions.action(actions.DELETE_TASK, temp_id))
            self.notify(ERROR, 'Failed to create task', ex.message)
            return None
        self.store.dispatch(actions.action(actions.UPDATE_TASK, created, id=temp_id))
        self.notify(SUCCESS, 'Task created', created['title'])
        return created

    def add_column(self, name, color=None):
        temp_id = self._next_temp_id()
        row = {
            'id': temp_id,
            'projectId': self.project_id,
            'name': name,
            'color': color,
            'order': len(column_group(self.store.state.status_columns, self.project_id)),
        }
        self.store.dispatch(actions.action(actions.ADD_STATUS_COLUMN, row))
        try:
            created = self.api.create_column(self.project_id, name, color)
        except ApiError as ex:
            self.store.dispatch(actions.action(actions.DELETE_STATUS_COLUMN, temp_id))
            self.notify(ERROR, 'Failed to create column', ex.message)
            return None
        self.store.dispatch(actions.action(actions.UPDATE_STATUS_COLUMN, created, id=temp_id))
        self.notify(SUCCESS, 'Column created', created['name'])
        return created

    def add_project(self, name, description=''):
        if not self.is_admin:
            return self._deny('create projects')
        temp_id = self._next_temp_id()
        self.store.dispatch(actions.action(
            actions.ADD_PROJECT, {'id': temp_id, 'name': name, 'description': description}))
        try:
            created = self.api.create_project(name, description)
        except ApiError as ex:
            self.store.dispatch(actions.action(actions.DELETE_PROJECT, temp_id))
            self.notify(ERROR, 'Failed to create project', ex.message)
            return None
        self.store.dispatch(actions.action(actions.UPDATE_PROJECT, created, id=temp_id))
        self.notify(SUCCESS, 'Project created', created['name'])
        return created

    # optimistic edits, rolled back to a snapshot on failure

    def _attempt(self, local_action, call, title):
        snapshot = self.store.state
        self.store.dispatch(local_action)
        try:
            result = call()
        except ApiError as ex:
            self.store.dispatch(actions.action(actions.RESTORE, snapshot))
            self.notify(ERROR, title, ex.message)
            return None
        return result if result is not None else True

    def update_task(self, task_id, **changes):
        result = self._attempt(
            actions.action(actions.UPDATE_TASK, dict(changes, id=task_id)),
            lambda: self.api.update_task(task_id, **changes),
            'Failed to update task',
        )
        if isinstance(result, dict):
            self.store.dispatch(actions.action(actions.UPDATE_TASK, result))
        return result

    def delete_task(self, task_id):
        return self._attempt(
            actions.action(actions.DELETE_TASK, task_id),
            lambda: self.api.delete_task(task_id),
            'Failed to delete task',
        ) is not None

    def delete_column(self, column_id):
        if not self.is_admin:
            self._deny('delete columns')
            return False
        return self._attempt(
            actions.action(actions.DELETE_STATUS_COLUMN, column_id),
            lambda: self.api.delete_column(column_id),
            'Failed to delete column',
        ) is not None

    def delete_project(self, project_id):
        if not self.is_admin:
            self._deny('delete projects')
            return False
        deleted = self._attempt(
            actions.action(actions.DELETE_PROJECT, project_id),
            lambda: self.api.delete_project(project_id),
            'Failed to delete project',
        ) is not None
        if deleted and project_id == self.project_id:
            self.close()
        return deleted
