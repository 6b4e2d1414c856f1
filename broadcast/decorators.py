import logging

from marshmallow_sqlalchemy import SQLAlchemyAutoSchema

from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.inspection import inspect

from .utils import register_broadcast_model
logger = logging.getLogger(__name__)


def _broadcast_model(cls, event, channel, scope, order_by):
    if not issubclass(cls, SQLAlchemyAutoSchema):
        logger.info('Class %s is not a valid model schema', cls.__name__)
        return cls

    model_class = cls.Meta.model
    try:
        mapper = inspect(model_class)
    except NoInspectionAvailable:
        logger.warning('Class %s is not a valid model', model_class.__name__)
        return cls

    if scope is not None and scope not in mapper.columns:
        logger.warning('Model %s has no %s column to scope broadcasts', model_class.__name__, scope)
        return cls

    register_broadcast_model(model_class, cls, event, channel, scope, order_by)
    logger.debug('Class %s registered as broadcast model', model_class.__name__)
    return cls

def broadcast_model(event, channel, scope=None, order_by=('id', )):
    """Register a schema's model as a collection published in full after each change.

    ``channel`` may hold a ``{scope}`` placeholder filled with the value of the
    ``scope`` column; ``order_by`` lists column names, ``-name`` sorts descending.
    """
    def wrapper(cls):
        return _broadcast_model(cls, event, channel, scope, order_by)
    return wrapper
