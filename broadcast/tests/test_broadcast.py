import pytest
import redis
import ujson as json

from boards.models import StatusColumn, Task
from broadcast.backends import MemoryBroadcaster, RedisBroadcaster, create_broadcaster
from broadcast.channels import PROJECTS_CHANNEL, project_channel
from broadcast.decorators import broadcast_model
from broadcast.exceptions import BroadcastError, UnknownBackend, UnregisteredModel
from broadcast.publisher import Publisher, collection_snapshot
from broadcast.utils import get_broadcast_model, get_registered_broadcast_models
from devtrack.database import scoped_session
from projects.models import Project
from users.models import User

from devtrack.tests.fixtures import broadcaster, client, seed_project


# -------- Memory backend -------------
def test_memory_delivers_private_copies():
    hub = MemoryBroadcaster()
    first, second = [], []
    hub.subscribe('project-1', lambda event, data: first.append((event, data)))
    hub.subscribe('project-1', lambda event, data: second.append((event, data)))
    hub.subscribe('project-2', lambda event, data: pytest.fail('wrong channel'))

    payload = [{'id': 1, 'order': 0}]
    assert hub.publish('project-1', 'tasks-updated', payload) == 2
    assert first == second == [('tasks-updated', payload)]

    first[0][1][0]['order'] = 5
    assert second[0][1][0]['order'] == 0
    assert payload[0]['order'] == 0

def test_memory_unsubscribe():
    hub = MemoryBroadcaster()
    received = []
    subscription = hub.subscribe('projects', lambda event, data: received.append(event))
    with hub.subscribe('projects', lambda event, data: None):
        assert hub.subscriber_count('projects') == 2
    assert hub.subscriber_count('projects') == 1

    subscription.unsubscribe()
    subscription.unsubscribe()
    assert hub.subscriber_count('projects') == 0
    assert hub.publish('projects', 'projects-updated', []) == 0
    assert received == []


# -------- Redis backend --------------
class FakePubSub:
    def __init__(self):
        self.handlers = {}
        self.stopped = False

    def subscribe(self, **handlers):
        self.handlers.update(handlers)

    def run_in_thread(self, sleep_time=0, daemon=False):
        pubsub = self

        class Worker:
            def stop(self):
                pubsub.stopped = True

            def join(self, timeout=None):
                pass
        return Worker()

    def deliver(self, channel, data):
        self.handlers[channel]({'type': 'message', 'channel': channel, 'data': data})


class FakeRedis:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []
        self.pubsubs = []

    def publish(self, channel, message):
        if self.fail:
            raise redis.ConnectionError('connection refused')
        self.sent.append((channel, message))
        return 1

    def pubsub(self, ignore_subscribe_messages=False):
        pubsub = FakePubSub()
        self.pubsubs.append(pubsub)
        return pubsub


def test_redis_publishes_envelope():
    fake = FakeRedis()
    hub = RedisBroadcaster(fake)
    assert hub.publish('project-3', 'columns-updated', [{'id': 1}]) == 1
    channel, message = fake.sent[0]
    assert channel == 'project-3'
    assert json.loads(message) == {'event': 'columns-updated', 'data': [{'id': 1}]}

def test_redis_publish_failure():
    hub = RedisBroadcaster(FakeRedis(fail=True))
    with pytest.raises(BroadcastError) as excinfo:
        hub.publish('projects', 'projects-updated', [])
    assert excinfo.value.channel == 'projects'

def test_redis_subscription():
    fake = FakeRedis()
    hub = RedisBroadcaster(fake)
    received = []
    subscription = hub.subscribe('project-3', lambda event, data: received.append((event, data)))

    pubsub = fake.pubsubs[0]
    pubsub.deliver('project-3', json.dumps({'event': 'tasks-updated', 'data': [{'id': 9}]}))
    pubsub.deliver('project-3', 'garbage')
    assert received == [('tasks-updated', [{'id': 9}])]

    subscription.unsubscribe()
    assert pubsub.stopped

def test_create_broadcaster():
    assert isinstance(create_broadcaster('memory'), MemoryBroadcaster)
    assert isinstance(create_broadcaster('redis', 'redis://localhost:6379/0', 1), RedisBroadcaster)
    with pytest.raises(UnknownBackend):
        create_broadcaster('carrier-pigeon')


# -------- Registry -------------------
def test_registered_collections():
    registered = get_registered_broadcast_models()
    assert set(registered) >= {Project, StatusColumn, Task}
    assert get_broadcast_model(Task).channel.format(scope=4) == project_channel(4)
    assert get_broadcast_model(Project).channel == PROJECTS_CHANNEL
    assert get_broadcast_model(Project).scope is None

def test_broadcast_model_ignores_plain_classes():
    class NotASchema:
        pass
    assert broadcast_model('nothing', 'nowhere')(NotASchema) is NotASchema
    assert get_broadcast_model(User) is None


# -------- Publisher ------------------
def test_publish_collection(client, broadcaster):
    project = seed_project(tasks={1: ['b'], 0: ['a']})
    publisher = Publisher(broadcaster)
    received = []
    with broadcaster.subscribe(project_channel(project['id']), lambda event, data: received.append((event, data))):
        items = publisher.publish_collection(Task, project['id'])
    assert [task['title'] for task in items] == ['a', 'b']
    assert received == [('tasks-updated', items)]

def test_collection_snapshot_scopes(client):
    first = seed_project(name='First', tasks={0: ['x']})
    seed_project(name='Second', tasks={0: ['y']})
    with scoped_session() as session:
        tasks = collection_snapshot(session, Task, first['id'])
        projects = collection_snapshot(session, Project)
    assert [task['title'] for task in tasks] == ['x']
    assert [p['name'] for p in projects] == ['Second', 'First']

def test_publisher_swallows_transport_errors(client):
    publisher = Publisher(RedisBroadcaster(FakeRedis(fail=True)))
    assert publisher.publish('projects', 'projects-updated', []) is False

def test_publisher_rejects_unregistered_models(client, broadcaster):
    with pytest.raises(UnregisteredModel):
        Publisher(broadcaster).publish_collection(User)
