"""Blocking HTTP client for the board API."""
import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    def __init__(self, status, payload=None):
        super().__init__(status, payload)

        self.status = status
        self.payload = payload or {}

    @property
    def message(self):
        if 'message' in self.payload:
            return self.payload['message']
        if 'errors' in self.payload:
            return str(self.payload['errors'])
        return 'Request failed with status {}'.format(self.status)

    def __str__(self):
        return '{}: {}'.format(self.status, self.message)


class ApiClient:
    def __init__(self, base_url, token=None, timeout=DEFAULT_TIMEOUT, transport=None):
        self.token = token
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        self.close()

    def close(self):
        self._client.close()

    def request(self, method, path, json=None, params=None, headers=None):
        headers = dict(headers or {})
        if self.token is not None:
            headers['Authorization'] = 'JWT {}'.format(self.token)
        logger.debug('%s %s', method, path)
        try:
            response = self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.HTTPError as ex:
            logger.warning('%s %s failed: %s', method, path, ex)
            raise ApiError(0, {'message': str(ex)}) from ex

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = {'message': response.text}
        if response.is_error:
            logger.warning('%s %s returned %s', method, path, response.status_code)
            raise ApiError(response.status_code, payload if isinstance(payload, dict) else None)
        return payload

    # auth

    def login(self, email, password):
        payload = self.request('POST', '/login', json={'email': email, 'password': password})
        self.token = payload['token']
        return payload['user']

    def register(self, email, password, name):
        return self.request('POST', '/register', json={'email': email, 'password': password, 'name': name})['user']

    def get_profile(self, email):
        return self.request('GET', '/profile', headers={'X-User-Email': email})

    def update_profile(self, email, **changes):
        return self.request('PUT', '/profile', json=dict(changes, email=email))

    # projects

    def list_projects(self):
        return self.request('GET', '/projects')

    def create_project(self, name, description=''):
        return self.request('POST', '/projects', json={'name': name, 'description': description})

    def update_project(self, project_id, **changes):
        return self.request('PUT', '/projects/{}'.format(project_id), json=changes)

    def delete_project(self, project_id):
        return self.request('DELETE', '/projects/{}'.format(project_id))

    def get_board(self, project_id):
        return self.request('GET', '/board/{}'.format(project_id))

    # tasks

    def list_tasks(self, project_id):
        return self.request('GET', '/tasks', params={'projectId': project_id})

    def create_task(self, data):
        return self.request('POST', '/tasks', json=data)

    def update_task(self, task_id, **changes):
        return self.request('PUT', '/tasks/{}'.format(task_id), json=changes)

    def delete_task(self, task_id):
        return self.request('DELETE', '/tasks', params={'id': task_id})

    def reorder_tasks(self, batch):
        return self.request('PUT', '/tasks/reorder', json=batch)['updatedTasks']

    # status columns

    def list_columns(self, project_id):
        return self.request('GET', '/status', params={'projectId': project_id})

    def create_column(self, project_id, name, color=None):
        return self.request('POST', '/status', json={'projectId': project_id, 'name': name, 'color': color})

    def update_column(self, column_id, **changes):
        return self.request('PUT', '/status/{}'.format(column_id), json=changes)

    def delete_column(self, column_id):
        return self.request('DELETE', '/status', params={'id': column_id})

    def reorder_columns(self, batch):
        return self.request('PUT', '/status/reorder', json=batch)['updatedColumns']
