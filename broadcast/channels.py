PROJECT_CHANNEL = 'project-{scope}'
PROJECTS_CHANNEL = 'projects'

TASKS_UPDATED = 'tasks-updated'
COLUMNS_UPDATED = 'columns-updated'
PROJECTS_UPDATED = 'projects-updated'
PROJECT_DELETED = 'project-deleted'

def project_channel(project_id):
    return PROJECT_CHANNEL.format(scope=project_id)
