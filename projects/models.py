from sqlalchemy import (
    Column, DateTime, func, Integer, String, Text
)

from devtrack.database import Base


class Project(Base):
    __tablename__ = 'projects_project'

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default='', server_default='')
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return '<Project(name="{}")>'.format(self.name)
