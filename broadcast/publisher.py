import logging

from sqlalchemy.exc import SQLAlchemyError

from devtrack.database import scoped_session
from .exceptions import BroadcastError, UnregisteredModel
from .utils import get_broadcast_model

logger = logging.getLogger(__name__)


def _get_entry(model_class):
    entry = get_broadcast_model(model_class)
    if entry is None:
        raise UnregisteredModel(model_class)
    return entry

def collection_snapshot(session, model_class, scope_id=None):
    """Dump a registered collection in its canonical order."""
    entry = _get_entry(model_class)
    query = session.query(model_class)
    if entry.scope is not None:
        query = query.filter(getattr(model_class, entry.scope) == scope_id)
    for name in entry.order_by:
        if name.startswith('-'):
            query = query.order_by(getattr(model_class, name[1:]).desc())
        else:
            query = query.order_by(getattr(model_class, name))
    return entry.schema_class().dump(query.all(), many=True)


class Publisher:
    """Publishes the canonical, committed state of registered collections.

    Publishing runs after the mutation committed, so a failure here is
    logged and never reaches the caller.
    """

    def __init__(self, broadcaster):
        self.broadcaster = broadcaster

    def publish_collection(self, model_class, scope_id=None):
        """Re-read the collection in a fresh session and publish it whole."""
        entry = _get_entry(model_class)
        try:
            with scoped_session() as session:
                items = collection_snapshot(session, model_class, scope_id)
        except SQLAlchemyError:
            logger.warning('Could not read %s for broadcast', entry.event, exc_info=True)
            return None
        self.publish(entry.channel.format(scope=scope_id), entry.event, items)
        return items

    def publish(self, channel, event, data):
        try:
            receivers = self.broadcaster.publish(channel, event, data)
        except BroadcastError:
            # subscribers catch up on the next publish
            logger.warning('Broadcast of %s on %s failed', event, channel, exc_info=True)
            return False
        except Exception:
            logger.exception('Subscriber of %s on %s failed', event, channel)
            return False
        logger.info('Published %s on %s to %s subscriber(s)', event, channel, receivers)
        return True
