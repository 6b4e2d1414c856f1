from sqlalchemy import Column, Integer, String

from devtrack.database import Base
from .hasher import verify_password
from .roles import ROLE_ADMIN, ROLE_USER

DEFAULT_AVATAR_URL = '/placeholder.svg?height=128&width=128'

class User(Base):
    __tablename__ = 'users_user'

    id = Column(Integer, primary_key=True)
    email = Column(String(254), unique=True, nullable=False)
    name = Column(String(150), nullable=False)
    password = Column(String(128), nullable=False)
    role = Column(String(10), nullable=False, default=ROLE_USER, server_default=ROLE_USER)
    avatar_url = Column(String(512), nullable=True)

    def verify_password(self, password):
        return verify_password(password, self.password)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return '<User(email="{}", role="{}")>'.format(self.email, self.role)
