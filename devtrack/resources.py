import logging

import ujson as json

from falcon import (
    HTTP_CREATED, HTTP_METHOD_NOT_ALLOWED, HTTP_OK, MEDIA_JSON, Request, Response
)

from marshmallow import ValidationError

from sqlalchemy.exc import SQLAlchemyError

from .database import Base, scoped_session
from .errors import Forbidden, InvalidRequest, NotFound, PersistenceError, ResourceError

logger = logging.getLogger(__name__)


def read_json(req: Request):
    try:
        return json.loads(req.stream.read(req.content_length or 0))
    except (TypeError, ValueError):
        raise InvalidRequest('Invalid JSON body')

def parse_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRequest('Invalid id')

def write_json(resp: Response, status, payload):
    resp.content_type = MEDIA_JSON
    resp.status = status
    resp.text = json.dumps(payload)

def write_error(resp: Response, error: ResourceError):
    write_json(resp, error.status, error.to_dict())


class ModelBaseResource:
    model_class = Base
    permissions = ()

    def get_base_query(self, session):
        return session.query(self.model_class)

    def _is_allowed(self, req: Request, method, obj):
        perms_num = len(self.permissions)
        if perms_num == 0:
            return True
        ctx = {
            'method': method,
            'model': self.model_class,
            'user': req.context.user,
        }
        for perm in self.permissions:
            if not getattr(perm, 'can_{}'.format(method))(ctx, obj):
                return False
        return True

    def _check_permission(self, req: Request, method, obj):
        if not self._is_allowed(req, method, obj):
            logger.warning('User %s denied %s on %s', req.context.user.id, method, self.model_class.__name__)
            raise Forbidden('You are not allowed to {} this resource'.format(method))


class ModelResource(ModelBaseResource):
    """CRUD over one model.

    The object id comes from the path (``/tasks/{obj_id}``), from the ``id``
    query parameter on DELETE or from the ``id`` body member on PUT/PATCH.
    After a committed mutation the collections named by ``broadcast_models``
    are published in full for the affected scope.
    """
    schema_class = None
    schema_classes = {}
    uri = None
    list_filters = {}
    list_order = ('id', )
    broadcast_models = ()
    idempotent_delete = False

    def __init__(self, publisher=None):
        self.publisher = publisher

    @classmethod
    def register_endpoints(cls, base_url, app, resource):
        resource.uri = base_url
        app.add_route(base_url, resource)
        app.add_route('{}/{{obj_id}}'.format(base_url), resource)

    def on_get(self, req: Request, resp: Response, obj_id=None):
        """Lists objects, or returns the one named by obj_id."""
        try:
            if obj_id is None:
                payload = self.__list_items(req)
            else:
                payload = self.__get_item(req, parse_id(obj_id))
        except ResourceError as err:
            write_error(resp, err)
            return
        write_json(resp, HTTP_OK, payload)

    def on_post(self, req: Request, resp: Response, obj_id=None):
        if obj_id is not None:
            resp.status = HTTP_METHOD_NOT_ALLOWED
            return

        schema_class = self.__get_schema_class('post')
        try:
            input_data = read_json(req)
            if not isinstance(input_data, dict):
                raise InvalidRequest('Expected a JSON object')
            self._check_permission(req, 'create', input_data)
            with scoped_session() as session:
                item = self.__load(schema_class, input_data, session)
                self._process_create(session, item)
                session.add(item)
                session.flush()
                self._post_create(session, item)
                item_dump = schema_class().dump(item)
                scope = self._get_scope(item)
        except ResourceError as err:
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to create %s', self.model_class.__name__)
            write_error(resp, PersistenceError('Failed to create {}'.format(self.model_class.__name__.lower())))
            return

        logger.info('Created %s %s', self.model_class.__name__, item_dump.get('id'))
        self._after_commit('create', scope, item_dump)
        if self.uri is not None:
            resp.append_header('Location', '{}/{}'.format(self.uri, item_dump.get('id')))
        write_json(resp, HTTP_CREATED, item_dump)

    def on_put(self, req: Request, resp: Response, obj_id=None):
        self.__update_item(req, resp, obj_id, 'put')

    def on_patch(self, req: Request, resp: Response, obj_id=None):
        self.__update_item(req, resp, obj_id, 'patch')

    def on_delete(self, req: Request, resp: Response, obj_id=None):
        schema_class = self.__get_schema_class('delete')
        try:
            raw_id = obj_id if obj_id is not None else req.get_param('id')
            if raw_id is None:
                raise InvalidRequest('Missing ID')
            nid = parse_id(raw_id)
            self._check_permission(req, 'delete', None)
            with scoped_session() as session:
                item = self.get_base_query(session).filter(self.model_class.id == nid).first()
                if item is None:
                    if self.idempotent_delete:
                        write_json(resp, HTTP_OK, self._already_deleted_response(nid))
                        return
                    raise NotFound('Not found')
                self._check_permission(req, 'delete', item)
                item_dump = schema_class().dump(item)
                scope = self._get_scope(item)
                self._delete(session, item)
        except ResourceError as err:
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to delete %s %s', self.model_class.__name__, obj_id)
            write_error(resp, PersistenceError('Failed to delete {}'.format(self.model_class.__name__.lower())))
            return

        logger.info('Deleted %s %s', self.model_class.__name__, item_dump.get('id'))
        self._after_commit('delete', scope, item_dump)
        write_json(resp, HTTP_OK, self._deleted_response(item_dump))

    def _process_create(self, session, instance):
        pass

    def _post_create(self, session, instance):
        pass

    def _process_update_data(self, session, instance, input_data):
        pass

    def _post_update(self, session, instance, previous_scope):
        pass

    def _delete(self, session, instance):
        session.delete(instance)

    def _get_scope(self, instance):
        return getattr(instance, 'project_id', None)

    def _get_broadcast_models(self, method):
        return self.broadcast_models

    def _after_commit(self, method, scope, item_dump):
        if self.publisher is None:
            return
        for model_class in self._get_broadcast_models(method):
            self.publisher.publish_collection(model_class, scope)

    def _deleted_response(self, item_dump):
        return item_dump

    def _already_deleted_response(self, obj_id):
        return {'success': True}

    def __update_item(self, req: Request, resp: Response, obj_id, method):
        schema_class = self.__get_schema_class(method)
        try:
            input_data = read_json(req)
            if not isinstance(input_data, dict):
                raise InvalidRequest('Expected a JSON object')
            raw_id = obj_id if obj_id is not None else input_data.get('id')
            if raw_id is None:
                raise InvalidRequest('Missing ID')
            nid = parse_id(raw_id)
            with scoped_session() as session:
                item = self.get_base_query(session).filter(self.model_class.id == nid).first()
                if item is None:
                    raise NotFound('Not found')
                self._check_permission(req, 'update', item)
                previous_scope = self._get_scope(item)
                self._process_update_data(session, item, input_data)
                item = self.__load(schema_class, input_data, session, instance=item, partial=True)
                session.flush()
                self._post_update(session, item, previous_scope)
                item_dump = schema_class().dump(item)
                scope = self._get_scope(item)
        except ResourceError as err:
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to update %s %s', self.model_class.__name__, obj_id)
            write_error(resp, PersistenceError('Failed to update {}'.format(self.model_class.__name__.lower())))
            return

        self._after_commit('update', scope, item_dump)
        write_json(resp, HTTP_OK, item_dump)

    def __load(self, schema_class, input_data, session, **kwargs):
        try:
            return schema_class().load(input_data, session=session, **kwargs)
        except ValidationError as err:
            raise InvalidRequest(errors=err.messages)

    def __get_schema_class(self, method):
        if self.schema_classes is not None and method in self.schema_classes:
            return self.schema_classes[method]
        return self.schema_class

    def __get_item(self, req: Request, nid):
        schema_class = self.__get_schema_class('get')
        with scoped_session() as session:
            instance = self.get_base_query(session).filter(self.model_class.id == nid).first()
            if instance is None:
                raise NotFound('Not found')
            self._check_permission(req, 'read', instance)
            return schema_class().dump(instance)

    def __list_items(self, req: Request):
        schema_class = self.__get_schema_class('list')
        with scoped_session() as session:
            query = self.get_base_query(session)
            for param, attr in self.list_filters.items():
                value = req.get_param(param)
                if value is None:
                    return []
                query = query.filter(getattr(self.model_class, attr) == parse_id(value))
            for name in self.list_order:
                if name.startswith('-'):
                    query = query.order_by(getattr(self.model_class, name[1:]).desc())
                else:
                    query = query.order_by(getattr(self.model_class, name))
            return schema_class().dump(query.all(), many=True)
