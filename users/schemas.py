from marshmallow import fields, Schema, validate
from marshmallow_sqlalchemy import auto_field, SQLAlchemyAutoSchema

from .models import User

class UserSchema(SQLAlchemyAutoSchema):
    avatar_url = auto_field(data_key='avatarUrl')

    class Meta:
        model = User
        load_instance = True
        fields = (
            'id', 'email', 'name', 'role', 'avatar_url',
        )
        dump_only = ('id', 'role', )

class LoginSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate.Length(min=6))

class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate.Length(min=1))
    name = fields.String(required=True, validate=validate.Length(min=1))

class ProfileUpdateSchema(Schema):
    email = fields.Email(required=True)
    name = fields.String()
    avatar_url = fields.String(data_key='avatarUrl', allow_none=True)

class TokenPayloadSchema(Schema):
    user_id = fields.Function(lambda obj: obj.id)
    email = fields.String()
    role = fields.String()
