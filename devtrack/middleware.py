from datetime import datetime, timedelta, timezone

import falcon
import jwt

from jwt import InvalidTokenError

from falcon_auth import FalconAuthMiddleware, JWTAuthBackend

from users.utils import get_authenticated_user
from devtrack.settings import JWT_EXPIRATION_DELTA, SECRET_KEY

OPEN_ROUTES = ['/login', '/register', '/profile']


class TokenAuthBackend(JWTAuthBackend):
    """JWT backend issuing and checking tokens with the PyJWT 2 API."""

    def __init__(self, user_loader, secret_key, token_lifetime, **kwargs):
        super().__init__(user_loader, secret_key, expiration_delta=token_lifetime, **kwargs)
        self.token_lifetime = timedelta(seconds=token_lifetime)

    def get_auth_token(self, user_payload):
        now = datetime.now(timezone.utc)
        payload = {
            'user': user_payload,
            'iat': now,
            'nbf': now,
            'exp': now + self.token_lifetime,
        }
        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        if isinstance(token, bytes):
            return token.decode('utf-8')
        return token

    def _decode_jwt_token(self, req):
        auth_header = req.get_header('Authorization')
        token = self.parse_auth_token_from_request(auth_header=auth_header)

        try:
            payload = jwt.decode(
                token,
                key=self.secret_key,
                algorithms=[self.algorithm],
                options={'require': ['exp', 'iat', 'nbf']},
            )
        except InvalidTokenError as ex:
            raise falcon.HTTPUnauthorized(
                title='401 Unauthorized',
                description=str(ex),
                challenges=None)

        return payload


auth_backend = TokenAuthBackend(get_authenticated_user, SECRET_KEY, JWT_EXPIRATION_DELTA)

def create_auth_middleware():
    return FalconAuthMiddleware(
        auth_backend,
        exempt_routes=OPEN_ROUTES,
        exempt_methods=['OPTIONS'],
    )
