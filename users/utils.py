from devtrack.database import scoped_session
from .models import User

def get_authenticated_user(payload):
    try:
        user_id = payload['user']['user_id']
        with scoped_session() as session:
            user = session.query(User).filter(
                User.id == user_id
            ).one_or_none()
            session.expunge_all()
        return user
    except (KeyError, TypeError):
        return None

def get_user_by_email(session, email):
    return session.query(User).filter(User.email == email).one_or_none()
