from sqlalchemy import (
    Column, Date, ForeignKey, Integer, JSON, String, Text
)

from devtrack.database import Base
from projects.models import Project

PRIORITIES = ('low', 'medium', 'high', )

class StatusColumn(Base):
    __tablename__ = 'boards_status_column'

    id = Column(Integer, primary_key=True)
    project_id = Column(ForeignKey(Project.id), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    color = Column(String(100), nullable=True)
    order = Column(Integer, nullable=False, default=0, server_default='0')

    def __repr__(self):
        return '<StatusColumn(name="{}", order={})>'.format(self.name, self.order)

class Task(Base):
    __tablename__ = 'boards_task'

    id = Column(Integer, primary_key=True)
    project_id = Column(ForeignKey(Project.id), nullable=False, index=True)
    status_id = Column(ForeignKey(StatusColumn.id), nullable=False, index=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    assignee = Column(String(150), nullable=False)
    due_date = Column(Date, nullable=True)
    priority = Column(String(10), nullable=False, default='medium')
    tags = Column(JSON, nullable=False, default=list)
    github_link = Column(String(512), nullable=True)
    order = Column(Integer, nullable=False, default=0, server_default='0')

    def __repr__(self):
        return '<Task(title="{}", status_id={}, order={})>'.format(self.title, self.status_id, self.order)
