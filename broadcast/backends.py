"""Publish/subscribe transports for canonical board state.

Every backend exposes the same two calls:

    publish(channel, event, data)
    subscribe(channel, handler) -> Subscription

Handlers are called as ``handler(event, data)`` with a private copy of the
payload, decoded from JSON exactly as a remote subscriber would see it.
"""
import logging
import threading

from collections import defaultdict

import redis
import ujson as json

from .exceptions import BroadcastError, UnknownBackend

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, channel, handler, on_close):
        self.channel = channel
        self.handler = handler
        self.__on_close = on_close
        self.closed = False

    def unsubscribe(self):
        if self.closed:
            return
        self.closed = True
        self.__on_close(self)

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        self.unsubscribe()


class MemoryBroadcaster:
    """In-process fan-out; delivery happens synchronously inside publish()."""

    def __init__(self):
        self.__subscribers = defaultdict(list)
        self.__lock = threading.Lock()

    def publish(self, channel, event, data):
        envelope = json.dumps({'event': event, 'data': data})
        with self.__lock:
            subscribers = list(self.__subscribers.get(channel, ()))
        for subscription in subscribers:
            message = json.loads(envelope)
            subscription.handler(message['event'], message['data'])
        return len(subscribers)

    def subscribe(self, channel, handler):
        subscription = Subscription(channel, handler, self.__remove)
        with self.__lock:
            self.__subscribers[channel].append(subscription)
        return subscription

    def subscriber_count(self, channel):
        with self.__lock:
            return len(self.__subscribers.get(channel, ()))

    def __remove(self, subscription):
        with self.__lock:
            subscribers = self.__subscribers.get(subscription.channel, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self.__subscribers.pop(subscription.channel, None)


class RedisBroadcaster:
    """Redis pub/sub transport; each subscription owns a listener thread."""

    poll_interval = 0.01

    def __init__(self, client):
        self.__client = client

    @classmethod
    def from_url(cls, url, socket_timeout=None):
        client = redis.Redis.from_url(url, socket_timeout=socket_timeout, decode_responses=True)
        return cls(client)

    def publish(self, channel, event, data):
        envelope = json.dumps({'event': event, 'data': data})
        try:
            return self.__client.publish(channel, envelope)
        except redis.RedisError as ex:
            raise BroadcastError(channel, event) from ex

    def subscribe(self, channel, handler):
        pubsub = self.__client.pubsub(ignore_subscribe_messages=True)

        def on_message(message):
            try:
                envelope = json.loads(message['data'])
                event, data = envelope['event'], envelope['data']
            except (KeyError, TypeError, ValueError):
                logger.warning('Dropping malformed message on %s', channel)
                return
            handler(event, data)

        try:
            pubsub.subscribe(**{channel: on_message})
        except redis.RedisError as ex:
            raise BroadcastError(channel, 'subscribe') from ex
        worker = pubsub.run_in_thread(sleep_time=self.poll_interval, daemon=True)

        def close(_subscription):
            worker.stop()
            worker.join(timeout=1)

        return Subscription(channel, handler, close)


def create_broadcaster(backend, redis_url=None, socket_timeout=None):
    if backend == 'memory':
        return MemoryBroadcaster()
    if backend == 'redis':
        return RedisBroadcaster.from_url(redis_url, socket_timeout=socket_timeout)
    raise UnknownBackend(backend)
