from collections import namedtuple

BroadcastModel = namedtuple('BroadcastModel', ('schema_class', 'event', 'channel', 'scope', 'order_by', ))

__registered_broadcast_models = {}

def register_broadcast_model(model_class, schema_class, event, channel, scope, order_by):
    if model_class not in __registered_broadcast_models:
        __registered_broadcast_models[model_class] = BroadcastModel(
            schema_class, event, channel, scope, tuple(order_by),
        )

def get_broadcast_model(model_class):
    return __registered_broadcast_models.get(model_class)

def get_registered_broadcast_models():
    return dict(__registered_broadcast_models)
