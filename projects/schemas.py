from marshmallow import EXCLUDE, pre_load, validate
from marshmallow_sqlalchemy import auto_field, SQLAlchemyAutoSchema

from broadcast.channels import PROJECTS_CHANNEL, PROJECTS_UPDATED
from broadcast.decorators import broadcast_model
from .models import Project

@broadcast_model(PROJECTS_UPDATED, PROJECTS_CHANNEL, order_by=('-created_at', '-id', ))
class ProjectSchema(SQLAlchemyAutoSchema):
    name = auto_field(validate=validate.Length(min=1, error='Project name is required.'))
    created_at = auto_field(data_key='createdAt', dump_only=True)

    class Meta:
        model = Project
        load_instance = True
        unknown = EXCLUDE
        fields = ('id', 'name', 'description', 'created_at', )
        dump_only = ('id', )

    @pre_load
    def strip_text(self, data, **_kwargs):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ('name', 'description', ):
            if isinstance(data.get(key), str):
                data[key] = data[key].strip()
        if data.get('description') is None and 'description' in data:
            data['description'] = ''
        return data
