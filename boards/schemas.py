from marshmallow import EXCLUDE, fields, pre_load, Schema, validate
from marshmallow_sqlalchemy import auto_field, SQLAlchemyAutoSchema

from broadcast.channels import COLUMNS_UPDATED, PROJECT_CHANNEL, TASKS_UPDATED
from broadcast.decorators import broadcast_model
from .models import PRIORITIES, StatusColumn, Task

def _split_tags(value):
    return [tag.strip() for tag in value.split(',') if tag.strip()]

@broadcast_model(COLUMNS_UPDATED, PROJECT_CHANNEL, scope='project_id', order_by=('order', 'id', ))
class StatusColumnSchema(SQLAlchemyAutoSchema):
    project_id = auto_field(data_key='projectId')

    class Meta:
        model = StatusColumn
        include_fk = True
        load_instance = True
        unknown = EXCLUDE
        fields = ('id', 'project_id', 'name', 'color', 'order', )
        dump_only = ('id', 'order', )

@broadcast_model(TASKS_UPDATED, PROJECT_CHANNEL, scope='project_id', order_by=('status_id', 'order', 'id', ))
class TaskSchema(SQLAlchemyAutoSchema):
    project_id = auto_field(data_key='projectId')
    status_id = auto_field(data_key='statusId')
    due_date = auto_field(data_key='dueDate')
    github_link = auto_field(data_key='githubLink')
    priority = auto_field(required=True, validate=validate.OneOf(PRIORITIES))
    tags = fields.List(fields.String(), load_default=list)

    class Meta:
        model = Task
        include_fk = True
        load_instance = True
        unknown = EXCLUDE
        fields = (
            'id', 'project_id', 'status_id', 'title', 'description', 'assignee',
            'due_date', 'priority', 'tags', 'github_link', 'order',
        )
        dump_only = ('id', 'order', )

    @pre_load
    def normalize_input(self, data, **_kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        tags = data.get('tags', [])
        if isinstance(tags, str):
            data['tags'] = _split_tags(tags)
        elif tags is None:
            data['tags'] = []
        # empty optional values are stored as null
        for key in ('description', 'githubLink', 'dueDate', ):
            if key in data and not data[key]:
                data[key] = None
        due_date = data.get('dueDate')
        if isinstance(due_date, str) and 'T' in due_date:
            data['dueDate'] = due_date.split('T', 1)[0]
        return data

class TaskOrderSchema(Schema):
    id = fields.Integer(required=True)
    status_id = fields.Integer(required=True, data_key='statusId')
    order = fields.Integer(required=True, validate=validate.Range(min=0))
    project_id = fields.Integer(data_key='projectId', allow_none=True)

    class Meta:
        unknown = EXCLUDE

class ColumnOrderSchema(Schema):
    id = fields.Integer(required=True)
    order = fields.Integer(required=True, validate=validate.Range(min=0))
    project_id = fields.Integer(data_key='projectId', allow_none=True)

    class Meta:
        unknown = EXCLUDE
