"""Client side board state.

``reduce`` is pure: every action yields a new ``BoardState`` and rows are
replaced, never edited in place. ``SET_*`` actions replace a collection
whole, which is how canonical broadcasts override optimistic edits.
"""
import logging
import threading

from collections import namedtuple

from .moves import apply_batch, column_group, plan_task_move, task_group

logger = logging.getLogger(__name__)

SET_PROJECTS = 'SET_PROJECTS'
ADD_PROJECT = 'ADD_PROJECT'
UPDATE_PROJECT = 'UPDATE_PROJECT'
DELETE_PROJECT = 'DELETE_PROJECT'
SET_ACTIVE_PROJECT = 'SET_ACTIVE_PROJECT'
SET_TASKS = 'SET_TASKS'
ADD_TASK = 'ADD_TASK'
UPDATE_TASK = 'UPDATE_TASK'
DELETE_TASK = 'DELETE_TASK'
MOVE_TASK = 'MOVE_TASK'
SET_STATUS_COLUMNS = 'SET_STATUS_COLUMNS'
ADD_STATUS_COLUMN = 'ADD_STATUS_COLUMN'
UPDATE_STATUS_COLUMN = 'UPDATE_STATUS_COLUMN'
DELETE_STATUS_COLUMN = 'DELETE_STATUS_COLUMN'
REORDER_STATUS_COLUMNS = 'REORDER_STATUS_COLUMNS'
SET_LOADING = 'SET_LOADING'
RESTORE = 'RESTORE'

BoardState = namedtuple('BoardState', (
    'projects', 'active_project_id', 'tasks', 'status_columns', 'loading',
))

INITIAL_STATE = BoardState(
    projects=(),
    active_project_id=None,
    tasks=(),
    status_columns=(),
    loading=False,
)


def action(action_type, payload=None, **extra):
    """Build an action dict; ``project_id`` scopes a SET_*, ``id`` names the row an UPDATE_* replaces."""
    return dict(extra, type=action_type, payload=payload)

def _replace(items, rows, project_id=None):
    rows = tuple(dict(row) for row in rows)
    if project_id is None:
        return rows
    kept = tuple(item for item in items if item.get('projectId') != project_id)
    return kept + rows

def _update(items, row, item_id=None):
    item_id = row['id'] if item_id is None else item_id
    return tuple(dict(item, **row) if item['id'] == item_id else item for item in items)

def _remove(items, item_id):
    return tuple(item for item in items if item['id'] != item_id)

def _delete_column(state, column_id):
    column = next((col for col in state.status_columns if col['id'] == column_id), None)
    if column is None:
        return state
    project_id = column['projectId']
    siblings = [col for col in column_group(state.status_columns, project_id) if col['id'] != column_id]
    orphans = task_group(state.tasks, project_id, column_id)
    if not siblings:
        if orphans:
            logger.warning('Refusing to drop the last column of project %s', project_id)
            return state
        return state._replace(status_columns=_remove(state.status_columns, column_id))
    fallback = siblings[0]['id']
    offset = len(task_group(state.tasks, project_id, fallback))
    batch = [
        {'id': task['id'], 'statusId': fallback, 'order': offset + index}
        for index, task in enumerate(orphans)
    ]
    return state._replace(
        status_columns=_remove(state.status_columns, column_id),
        tasks=apply_batch(state.tasks, batch),
    )

def reduce(state, act):
    kind = act['type']
    payload = act.get('payload')

    if kind == SET_PROJECTS:
        return state._replace(projects=tuple(dict(row) for row in payload))
    if kind == ADD_PROJECT:
        # newest first, as the server lists them
        return state._replace(projects=(dict(payload), ) + state.projects)
    if kind == UPDATE_PROJECT:
        return state._replace(projects=_update(state.projects, payload, act.get('id')))
    if kind == DELETE_PROJECT:
        return state._replace(
            projects=_remove(state.projects, payload),
            tasks=tuple(task for task in state.tasks if task['projectId'] != payload),
            status_columns=tuple(col for col in state.status_columns if col['projectId'] != payload),
            active_project_id=None if state.active_project_id == payload else state.active_project_id,
        )
    if kind == SET_ACTIVE_PROJECT:
        return state._replace(active_project_id=payload)

    if kind == SET_TASKS:
        return state._replace(tasks=_replace(state.tasks, payload, act.get('project_id')))
    if kind == ADD_TASK:
        return state._replace(tasks=state.tasks + (dict(payload), ))
    if kind == UPDATE_TASK:
        return state._replace(tasks=_update(state.tasks, payload, act.get('id')))
    if kind == DELETE_TASK:
        return state._replace(tasks=_remove(state.tasks, payload))
    if kind == MOVE_TASK:
        batch = plan_task_move(state.tasks, payload['taskId'], payload['target'])
        if batch is None:
            return state
        return state._replace(tasks=apply_batch(state.tasks, batch))

    if kind == SET_STATUS_COLUMNS:
        return state._replace(status_columns=_replace(state.status_columns, payload, act.get('project_id')))
    if kind == ADD_STATUS_COLUMN:
        return state._replace(status_columns=state.status_columns + (dict(payload), ))
    if kind == UPDATE_STATUS_COLUMN:
        return state._replace(status_columns=_update(state.status_columns, payload, act.get('id')))
    if kind == DELETE_STATUS_COLUMN:
        return _delete_column(state, payload)
    if kind == REORDER_STATUS_COLUMNS:
        return state._replace(status_columns=apply_batch(state.status_columns, payload))

    if kind == SET_LOADING:
        return state._replace(loading=bool(payload))
    if kind == RESTORE:
        return payload

    logger.warning('Ignoring unknown action %s', kind)
    return state


class Store:
    """Holds one ``BoardState`` and notifies listeners after every dispatch."""

    def __init__(self, state=None):
        self.__state = INITIAL_STATE if state is None else state
        self.__listeners = []
        self.__lock = threading.RLock()

    @property
    def state(self):
        return self.__state

    def dispatch(self, act):
        with self.__lock:
            self.__state = reduce(self.__state, act)
            state = self.__state
            listeners = list(self.__listeners)
        for listener in listeners:
            listener(state, act)
        return state

    def subscribe(self, listener):
        with self.__lock:
            self.__listeners.append(listener)

        def unsubscribe():
            with self.__lock:
                if listener in self.__listeners:
                    self.__listeners.remove(listener)
        return unsubscribe

    def tasks_for(self, project_id, status_id):
        return task_group(self.__state.tasks, project_id, status_id)

    def columns_for(self, project_id):
        return column_group(self.__state.status_columns, project_id)
