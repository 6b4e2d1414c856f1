from .roles import ROLE_ADMIN

def _is_admin(ctx):
    user = ctx.get('user')
    return user is not None and user.role == ROLE_ADMIN

class AdminWriteFilter:
    """Any authenticated user may read, only admins may write."""

    @classmethod
    def can_read(cls, _ctx, _obj):
        return True

    @classmethod
    def can_create(cls, ctx, _new_obj):
        return _is_admin(ctx)

    @classmethod
    def can_update(cls, ctx, _obj):
        return _is_admin(ctx)

    @classmethod
    def can_delete(cls, ctx, _obj):
        return _is_admin(ctx)

class AdminDeleteFilter:
    """Members create and edit freely, deletion is reserved to admins."""

    @classmethod
    def can_read(cls, _ctx, _obj):
        return True

    @classmethod
    def can_create(cls, _ctx, _new_obj):
        return True

    @classmethod
    def can_update(cls, _ctx, _obj):
        return True

    @classmethod
    def can_delete(cls, ctx, _obj):
        return _is_admin(ctx)
