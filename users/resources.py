import logging

from falcon import HTTP_CREATED, HTTP_OK, Request, Response

from marshmallow import ValidationError

from sqlalchemy.exc import SQLAlchemyError

from devtrack.database import scoped_session
from devtrack.errors import (
    Conflict, InvalidRequest, NotFound, PersistenceError, ResourceError, Unauthorized,
)
from devtrack.middleware import auth_backend
from devtrack.resources import read_json, write_error, write_json
from .hasher import get_random_string, make_password
from .models import DEFAULT_AVATAR_URL, User
from .roles import ROLE_USER
from .schemas import LoginSchema, ProfileUpdateSchema, RegisterSchema, TokenPayloadSchema, UserSchema
from .utils import get_user_by_email

logger = logging.getLogger(__name__)


def _load(schema_class, req: Request):
    input_data = read_json(req)
    if not isinstance(input_data, dict):
        raise InvalidRequest('Expected a JSON object')
    try:
        return schema_class().load(input_data)
    except ValidationError as err:
        raise InvalidRequest(errors=err.messages)


class LoginResource:
    def on_post(self, req: Request, resp: Response):
        """Unprotected user login endpoint.
        ---
        post:
            description: Logs an existing user in returning a JWT
            consumes: ["json"]
            parameters:
            -   in: body
                name: credentials
                description: The email and password chosen during the registration
                required: true
            responses:
                200:
                    description: Token and user, role included
                400:
                    description: Malformed email or password shorter than 6 characters
                401:
                    description: Wrong password
                404:
                    description: No user with this email
        """
        try:
            credentials = _load(LoginSchema, req)
            with scoped_session() as session:
                user = get_user_by_email(session, credentials['email'])
                if user is None:
                    raise NotFound('User not found')
                if not user.verify_password(credentials['password']):
                    raise Unauthorized('Invalid credentials')
                payload = {
                    'token': auth_backend.get_auth_token(TokenPayloadSchema().dump(user)),
                    'user': UserSchema().dump(user),
                }
        except ResourceError as err:
            logger.warning('Rejected login: %s', err.to_dict())
            write_error(resp, err)
            return
        logger.info('User %s logged in', payload['user']['id'])
        write_json(resp, HTTP_OK, payload)


class RegisterResource:
    def on_post(self, req: Request, resp: Response):
        """Unprotected registration endpoint, new users always get the USER role."""
        try:
            data = _load(RegisterSchema, req)
            with scoped_session() as session:
                if get_user_by_email(session, data['email']) is not None:
                    raise Conflict('User already exists')
                user = User(
                    email=data['email'],
                    name=data['name'],
                    password=make_password(data['password']),
                    role=ROLE_USER,
                    avatar_url=DEFAULT_AVATAR_URL,
                )
                session.add(user)
                session.flush()
                user_dump = UserSchema().dump(user)
        except ResourceError as err:
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to register %s', req.path)
            write_error(resp, PersistenceError('Failed to create user'))
            return
        logger.info('Registered user %s', user_dump['id'])
        write_json(resp, HTTP_CREATED, {'user': user_dump})


class ProfileResource:
    """Profile keyed by the ``X-User-Email`` header rather than by the token."""

    def on_get(self, req: Request, resp: Response):
        try:
            email = req.get_header('X-User-Email')
            if not email:
                raise Unauthorized('Unauthorized')
            with scoped_session() as session:
                user = get_user_by_email(session, email)
                if user is None:
                    user = User(
                        email=email,
                        name=email.split('@')[0],
                        password=make_password(get_random_string(24)),
                        role=ROLE_USER,
                        avatar_url=DEFAULT_AVATAR_URL,
                    )
                    session.add(user)
                    session.flush()
                    logger.info('Created placeholder profile for %s', email)
                payload = UserSchema().dump(user)
        except ResourceError as err:
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to load profile')
            write_error(resp, PersistenceError('Failed to load profile'))
            return
        write_json(resp, HTTP_OK, payload)

    def on_put(self, req: Request, resp: Response):
        try:
            input_data = read_json(req)
            if not isinstance(input_data, dict) or not input_data.get('email'):
                raise InvalidRequest('Email is required')
            try:
                data = ProfileUpdateSchema().load(input_data)
            except ValidationError as err:
                raise InvalidRequest(errors=err.messages)
            with scoped_session() as session:
                user = get_user_by_email(session, data['email'])
                if user is None:
                    raise NotFound('User not found')
                if data.get('name'):
                    user.name = data['name']
                if 'avatar_url' in data:
                    user.avatar_url = data['avatar_url']
                session.flush()
                payload = UserSchema().dump(user)
        except ResourceError as err:
            write_error(resp, err)
            return
        except SQLAlchemyError:
            logger.exception('Failed to update profile')
            write_error(resp, PersistenceError('Failed to update profile'))
            return
        write_json(resp, HTTP_OK, payload)
