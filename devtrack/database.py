""" This module exports the database engine.
Notes:
     Using the scoped_session contextmanager ensures the session
     gets closed and keeps handlers free of manual commit/rollback
     bookkeeping when an exception occurs.
"""
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, declared_attr, sessionmaker
from sqlalchemy.pool import StaticPool

from .settings import DATABASE_URL


def _engine_options(url):
    if url.startswith('sqlite'):
        # a single shared connection keeps in-memory databases alive
        return {
            'connect_args': {'check_same_thread': False},
            'poolclass': StaticPool,
        }
    return {'pool_pre_ping': True}


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

# Session to be used throughout app.
Session = sessionmaker(bind=engine)

class BaseModel:
    @declared_attr
    def __tablename__(self):
        return self.__name__.lower()


Base = declarative_base(cls=BaseModel)

@contextmanager
def scoped_session() -> Session:
    session = Session()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()

def create_tables():
    import devtrack.models  # noqa
    Base.metadata.create_all(bind=engine)

def drop_tables():
    import devtrack.models  # noqa
    Base.metadata.drop_all(bind=engine)
