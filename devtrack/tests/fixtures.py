import pytest

from falcon import testing

from boards.models import StatusColumn, Task
from broadcast.backends import MemoryBroadcaster
from devtrack.app import create_app
from devtrack.database import create_tables, drop_tables, scoped_session
from devtrack.middleware import auth_backend
from projects.models import Project
from users.hasher import make_password
from users.models import User
from users.roles import ROLE_ADMIN, ROLE_USER

ADMIN_PASSWORD = 'admin-secret'
MEMBER_PASSWORD = 'member-secret'


class RecordingBroadcaster(MemoryBroadcaster):
    """Memory broadcaster keeping a log of everything published."""

    def __init__(self):
        super().__init__()
        self.published = []

    def publish(self, channel, event, data):
        self.published.append((channel, event, data))
        return super().publish(channel, event, data)

    def events(self, channel=None):
        return [(ch, event) for ch, event, _ in self.published if channel is None or ch == channel]

    def last(self, channel, event):
        for ch, ev, data in reversed(self.published):
            if ch == channel and ev == event:
                return data
        return None


def _create_user(email, name, password, role):
    with scoped_session() as session:
        user = User(email=email, name=name, password=make_password(password), role=role)
        session.add(user)
        session.flush()
        return {'id': user.id, 'email': email, 'name': name, 'password': password, 'role': role}

def auth_headers(user):
    token = auth_backend.get_auth_token({'user_id': user['id'], 'email': user['email'], 'role': user['role']})
    return {'Authorization': 'JWT {}'.format(token)}

def seed_project(name='Board', columns=('To Do', 'In Progress', 'Done'), tasks=None):
    """Create a project directly in the database.

    ``tasks`` maps a column index to the titles created there in order.
    Returns ids: ``{'id', 'columns': [...], 'tasks': {title: id}}``.
    """
    tasks = tasks or {}
    with scoped_session() as session:
        project = Project(name=name, description='')
        session.add(project)
        session.flush()
        column_ids = []
        for order, column_name in enumerate(columns):
            column = StatusColumn(project_id=project.id, name=column_name, order=order)
            session.add(column)
            session.flush()
            column_ids.append(column.id)
        task_ids = {}
        for index, titles in tasks.items():
            for order, title in enumerate(titles):
                task = Task(
                    project_id=project.id,
                    status_id=column_ids[index],
                    title=title,
                    assignee='alice',
                    priority='medium',
                    tags=[],
                    order=order,
                )
                session.add(task)
                session.flush()
                task_ids[title] = task.id
        return {'id': project.id, 'columns': column_ids, 'tasks': task_ids}

def column_layout(project_id):
    """``{status_id: [task ids by order]}`` as stored."""
    with scoped_session() as session:
        layout = {}
        for task in session.query(Task).filter(Task.project_id == project_id).order_by(Task.order, Task.id):
            layout.setdefault(task.status_id, []).append(task.id)
        return layout

def task_orders(project_id):
    """``{task id: (status id, order)}`` as stored."""
    with scoped_session() as session:
        return {
            task.id: (task.status_id, task.order)
            for task in session.query(Task).filter(Task.project_id == project_id)
        }

def column_orders(project_id):
    with scoped_session() as session:
        return {
            column.id: column.order
            for column in session.query(StatusColumn).filter(StatusColumn.project_id == project_id)
        }


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()

@pytest.fixture
def client(broadcaster):
    drop_tables()
    create_tables()
    yield testing.TestClient(create_app(broadcaster=broadcaster))
    drop_tables()

@pytest.fixture
def admin(client):
    return _create_user('admin@devtrack.test', 'Admin', ADMIN_PASSWORD, ROLE_ADMIN)

@pytest.fixture
def member(client):
    return _create_user('member@devtrack.test', 'Member', MEMBER_PASSWORD, ROLE_USER)

@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)

@pytest.fixture
def member_headers(member):
    return auth_headers(member)

@pytest.fixture
def board(client):
    # To Do: t1, t2 / In Progress: t3 / Done: empty
    return seed_project(tasks={0: ['t1', 't2'], 1: ['t3']})
