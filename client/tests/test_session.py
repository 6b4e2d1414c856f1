import itertools

import httpx
import pytest
import ujson as json

from broadcast.backends import MemoryBroadcaster
from client import store as actions
from client.api import ApiClient, ApiError
from client.moves import COLUMN, DropTarget, TASK
from client.session import BoardSession
from client.store import Store

ADMIN = {'id': 1, 'email': 'admin@devtrack.test', 'role': 'ADMIN'}
MEMBER = {'id': 2, 'email': 'member@devtrack.test', 'role': 'USER'}


def _task(task_id, status_id, order):
    return {
        'id': task_id, 'projectId': 1, 'statusId': status_id, 'order': order,
        'title': 'task {}'.format(task_id), 'assignee': 'alice', 'priority': 'medium', 'tags': [],
    }

def _column(column_id, order):
    return {'id': column_id, 'projectId': 1, 'name': 'column {}'.format(column_id), 'color': None, 'order': order}


class FakeServer:
    """Answers board API calls from canned data and records every request."""

    def __init__(self):
        self.board = {
            'id': 1,
            'name': 'Board',
            'statuses': [_column(10, 0), _column(11, 1)],
            'tasks': [_task(100, 10, 0), _task(101, 10, 1), _task(102, 11, 0)],
        }
        self.requests = []
        self.failures = {}

    def fail(self, method, path, status=500, message='Internal error'):
        self.failures[(method, path)] = (status, message)

    def calls(self, method, path):
        return [body for m, p, body in self.requests if m == method and p == path]

    def __call__(self, request):
        body = json.loads(request.content) if request.content else None
        method, path = request.method, request.url.path
        self.requests.append((method, path, body))
        if (method, path) in self.failures:
            status, message = self.failures[(method, path)]
            return httpx.Response(status, json={'message': message})
        if path == '/board/1':
            return httpx.Response(200, json=self.board)
        if method == 'POST' and path == '/tasks':
            return httpx.Response(201, json=dict(body, id=500, order=0))
        if method == 'POST' and path == '/projects':
            return httpx.Response(201, json=dict(body, id=7))
        if method == 'PUT' and path == '/tasks/reorder':
            return httpx.Response(200, json={'success': True, 'updatedTasks': body})
        if method == 'PUT' and path == '/status/reorder':
            return httpx.Response(200, json={'success': True, 'updatedColumns': body})
        if method == 'PUT' and path.startswith('/tasks/'):
            task_id = int(path.rsplit('/', 1)[1])
            task = next(t for t in self.board['tasks'] if t['id'] == task_id)
            return httpx.Response(200, json=dict(task, **body))
        if method == 'DELETE':
            return httpx.Response(200, json={'success': True})
        return httpx.Response(404, json={'message': 'Not found'})


@pytest.fixture
def server():
    return FakeServer()

@pytest.fixture
def hub():
    return MemoryBroadcaster()

@pytest.fixture
def notifications():
    return []

def _session(server, hub, notifications, user=MEMBER):
    api = ApiClient('http://devtrack.test', token='token', transport=httpx.MockTransport(server))
    return BoardSession(
        Store(), api, hub,
        user=user,
        notify=lambda level, title, message: notifications.append((level, title)),
        temp_ids=itertools.count(123),
    )

@pytest.fixture
def session(server, hub, notifications):
    with _session(server, hub, notifications).open(1) as board_session:
        yield board_session

@pytest.fixture
def admin_session(server, hub, notifications):
    with _session(server, hub, notifications, user=ADMIN).open(1) as board_session:
        yield board_session


def _ids(session, status_id):
    return [task['id'] for task in session.store.tasks_for(1, status_id)]


# -------- Lifetime -------------------
def test_open_loads_board_and_subscribes(server, hub, notifications):
    board_session = _session(server, hub, notifications)
    with board_session.open(1):
        state = board_session.store.state
        assert state.active_project_id == 1
        assert state.loading is False
        assert [c['id'] for c in state.status_columns] == [10, 11]
        assert len(state.tasks) == 3
        assert hub.subscriber_count('project-1') == 1
        assert hub.subscriber_count('projects') == 1
    assert hub.subscriber_count('project-1') == 0
    assert hub.subscriber_count('projects') == 0

def test_broadcasts_replace_collections(session, hub):
    hub.publish('project-1', 'tasks-updated', [_task(102, 10, 0)])
    assert [task['id'] for task in session.store.state.tasks] == [102]

    hub.publish('project-1', 'columns-updated', [_column(11, 0), _column(10, 1)])
    assert [c['id'] for c in session.store.columns_for(1)] == [11, 10]

    hub.publish('projects', 'projects-updated', [{'id': 1, 'name': 'Board'}, {'id': 2, 'name': 'Other'}])
    assert [p['id'] for p in session.store.state.projects] == [1, 2]

    hub.publish('projects', 'project-deleted', {'id': 1})
    assert session.store.state.tasks == ()
    assert session.store.state.active_project_id is None


# -------- Drag and drop --------------
def test_drop_task_persists_batch(session, server):
    assert session.drop_task(100, DropTarget(TASK, 102)) is True
    assert _ids(session, 11) == [100, 102]
    assert _ids(session, 10) == [101]
    assert server.calls('PUT', '/tasks/reorder') == [[
        {'id': 100, 'statusId': 11, 'order': 0, 'projectId': 1},
        {'id': 102, 'statusId': 11, 'order': 1, 'projectId': 1},
        {'id': 101, 'statusId': 10, 'order': 0, 'projectId': 1},
    ]]

def test_drop_task_no_op_skips_request(session, server):
    assert session.drop_task(100, None) is False
    assert session.drop_task(100, DropTarget(TASK, 100)) is False
    assert server.calls('PUT', '/tasks/reorder') == []

def test_drop_task_failure_resyncs(session, server, notifications):
    server.fail('PUT', '/tasks/reorder')
    assert session.drop_task(100, DropTarget(COLUMN, 11)) is False
    assert ('error', 'Failed to move task') in notifications
    assert _ids(session, 10) == [100, 101]
    assert len(server.calls('GET', '/board/1')) == 2
    assert len(server.calls('PUT', '/tasks/reorder')) == 1

def test_drop_column(session, server):
    assert session.drop_column(11, DropTarget(COLUMN, 10)) is True
    assert [c['id'] for c in session.store.columns_for(1)] == [11, 10]
    assert server.calls('PUT', '/status/reorder') == [[
        {'id': 11, 'order': 0, 'projectId': 1},
        {'id': 10, 'order': 1, 'projectId': 1},
    ]]


# -------- Optimistic creation --------
def test_add_task_rolls_back_temp_id(session, server, notifications):
    server.fail('POST', '/tasks')
    seen_ids = []
    session.store.subscribe(lambda state, act: seen_ids.extend(task['id'] for task in state.tasks))

    assert session.add_task({'title': 'New', 'assignee': 'bob', 'priority': 'low', 'statusId': 10}) is None
    assert 'temp-123' in seen_ids
    assert 'temp-123' not in [task['id'] for task in session.store.state.tasks]
    assert notifications == [('error', 'Failed to create task')]
    assert not [n for n in notifications if n[0] == 'success']

def test_add_task_replaces_temp_row(session, server, notifications):
    created = session.add_task({'title': 'New', 'assignee': 'bob', 'priority': 'low', 'statusId': 10})
    assert created['id'] == 500
    ids = [task['id'] for task in session.store.state.tasks]
    assert 500 in ids and 'temp-123' not in ids
    assert server.calls('POST', '/tasks')[0]['projectId'] == 1
    assert notifications == [('success', 'Task created')]

def test_member_cannot_create_project(session, server, notifications):
    assert session.add_project('Nope') is None
    assert server.calls('POST', '/projects') == []
    assert notifications == [('error', 'Permission denied')]

def test_admin_creates_project(admin_session, server):
    created = admin_session.add_project('Apollo')
    assert created['id'] == 7
    assert [p['id'] for p in admin_session.store.state.projects] == [7]


# -------- Optimistic edits -----------
def test_delete_task_failure_restores_snapshot(session, server, notifications):
    before = session.store.state
    server.fail('DELETE', '/tasks', status=404, message='Not found')
    assert session.delete_task(100) is False
    assert session.store.state == before
    assert notifications == [('error', 'Failed to delete task')]

def test_update_task(session, server):
    result = session.update_task(101, title='Renamed')
    assert result['title'] == 'Renamed'
    assert server.calls('PUT', '/tasks/101') == [{'title': 'Renamed'}]

def test_update_task_failure_restores(session, server):
    server.fail('PUT', '/tasks/101')
    assert session.update_task(101, title='Renamed') is None
    assert next(t for t in session.store.state.tasks if t['id'] == 101)['title'] == 'task 101'

def test_member_cannot_delete_column(session, server, notifications):
    assert session.delete_column(10) is False
    assert server.calls('DELETE', '/status') == []
    assert [c['id'] for c in session.store.columns_for(1)] == [10, 11]

def test_admin_deletes_column(admin_session, server):
    assert admin_session.delete_column(10) is True
    assert [c['id'] for c in admin_session.store.columns_for(1)] == [11]
    assert [t['id'] for t in admin_session.store.tasks_for(1, 11)] == [102, 100, 101]


# -------- Api client -----------------
def test_api_client_login_and_errors():
    def handler(request):
        if request.url.path == '/login':
            return httpx.Response(200, json={'token': 'abc', 'user': {'id': 1, 'role': 'ADMIN'}})
        assert request.headers['Authorization'] == 'JWT abc'
        return httpx.Response(404, json={'message': 'Project not found'})

    with ApiClient('http://devtrack.test', transport=httpx.MockTransport(handler)) as api:
        assert api.login('admin@devtrack.test', 'secret')['role'] == 'ADMIN'
        with pytest.raises(ApiError) as excinfo:
            api.get_board(9)
    assert excinfo.value.status == 404
    assert excinfo.value.message == 'Project not found'

class CapturingBroadcaster(MemoryBroadcaster):
    def __init__(self):
        super().__init__()
        self.handlers = {}

    def subscribe(self, channel, handler):
        self.handlers[channel] = handler
        return super().subscribe(channel, handler)

def test_late_project_event_stays_in_its_project(server, notifications):
    hub = CapturingBroadcaster()
    board_session = _session(server, hub, notifications)
    other = dict(_task(900, 90, 0), projectId=9)
    board_session.store.dispatch(actions.action(actions.SET_TASKS, [other], project_id=9))
    with board_session.open(1):
        pass
    # a listener thread may still deliver after close()
    hub.handlers['project-1']('tasks-updated', [_task(102, 10, 0)])
    assert sorted(task['id'] for task in board_session.store.state.tasks) == [102, 900]
