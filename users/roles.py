ROLE_ADMIN = 'ADMIN'
ROLE_USER = 'USER'

ROLES = (ROLE_ADMIN, ROLE_USER, )
