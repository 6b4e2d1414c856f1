#!/usr/bin/env python

import argparse
import logging
import logging.config


def run_app(_args):
    from gunicorn.app.wsgiapp import WSGIApplication
    wsgi_app = WSGIApplication("%(prog)s [OPTIONS] [APP_MODULE]")
    wsgi_app.app_uri = 'devtrack.app:create_app()'
    wsgi_app.cfg.set('reload', True)
    wsgi_app.run()

def create_db(args):
    from devtrack.database import create_tables, drop_tables
    if args.drop:
        drop_tables()
        print('Dropped all tables')
    create_tables()
    print('Created all tables')

def test(args):
    import sys
    import pytest
    sys.exit(pytest.main(args=args.pytest_args))

def import_demo_data(args):
    from boards.models import StatusColumn, Task
    from devtrack.database import create_tables, scoped_session
    from devtrack.settings import LOGGING
    from projects.models import Project
    from users.hasher import make_password
    from users.models import DEFAULT_AVATAR_URL, User
    from users.roles import ROLE_ADMIN
    from users.utils import get_user_by_email

    logging.config.dictConfig(LOGGING)
    create_tables()
    with scoped_session() as session:
        if get_user_by_email(session, args.admin_email) is None:
            session.add(User(
                email=args.admin_email,
                name='Admin',
                password=make_password(args.admin_password),
                role=ROLE_ADMIN,
                avatar_url=DEFAULT_AVATAR_URL,
            ))
            print('Created admin user {}'.format(args.admin_email))

        project = Project(name='DevTrack', description='Demo board')
        session.add(project)
        session.flush()

        columns = []
        for order, (name, color) in enumerate((
                ('To Do', 'bg-slate-100'),
                ('In Progress', 'bg-blue-100'),
                ('Done', 'bg-green-100'), )):
            column = StatusColumn(project_id=project.id, name=name, color=color, order=order)
            session.add(column)
            columns.append(column)
        session.flush()

        tasks = (
            (0, 'Set up the repository', 'high', ['setup']),
            (0, 'Write the board API', 'medium', ['backend', 'api']),
            (1, 'Drag and drop tasks', 'medium', ['frontend']),
            (2, 'Pick a name', 'low', []),
        )
        counts = [0] * len(columns)
        for column_index, title, priority, tags in tasks:
            session.add(Task(
                project_id=project.id,
                status_id=columns[column_index].id,
                title=title,
                assignee='Admin',
                priority=priority,
                tags=tags,
                order=counts[column_index],
            ))
            counts[column_index] += 1
        print('Imported demo project {} with {} tasks'.format(project.id, len(tasks)))

def encpass(args):
    from users.hasher import make_password
    password = args.password
    print(make_password(password))

def manage():
    parser = argparse.ArgumentParser()
    subparsers = parser.add_subparsers()

    parser_run = subparsers.add_parser('run')
    parser_run.set_defaults(func=run_app)

    parser_createdb = subparsers.add_parser('createdb')
    parser_createdb.add_argument('--drop', action='store_true')
    parser_createdb.set_defaults(func=create_db)

    parser_test = subparsers.add_parser('test')
    parser_test.add_argument('pytest_args', nargs=argparse.REMAINDER)
    parser_test.set_defaults(func=test)

    parser_demo_data = subparsers.add_parser('demo_data')
    parser_demo_data.add_argument('--admin-email', default='admin@devtrack.local')
    parser_demo_data.add_argument('--admin-password', default='admin123')
    parser_demo_data.set_defaults(func=import_demo_data)

    parser_encpass = subparsers.add_parser('encpass')
    parser_encpass.add_argument('password')
    parser_encpass.set_defaults(func=encpass)

    args = parser.parse_args()
    if hasattr(args, 'func'):
        args.func(args)
    else:
        parser.print_help()


if __name__ == '__main__':
    manage()
