"""Dense ordering of board entities.

Columns are ordered within a project and tasks within a (project, column)
pair. Every reorder pass leaves each group it touched numbered exactly
``0..n-1``; requested positions only rank entities, they are never stored
verbatim.
"""
import logging

from sqlalchemy import func

from .exceptions import InvalidReorderEntry, LastColumn, ModelNotFound
from .models import StatusColumn, Task

logger = logging.getLogger(__name__)


def _rank(item, requested):
    if item.id in requested:
        order, position = requested[item.id]
        return (order, 0, position)
    # untouched siblings yield to batch entries asking for the same slot
    return (item.order, 1, item.id)

def renumber(items, requested=None):
    """Assign ``order = index`` following requested positions, then current ones."""
    requested = requested or {}
    ordered = sorted(items, key=lambda item: _rank(item, requested))
    for index, item in enumerate(ordered):
        item.order = index
    return ordered

def next_column_order(session, project_id):
    return session.query(func.count(StatusColumn.id)).filter(
        StatusColumn.project_id == project_id
    ).scalar()

def next_task_order(session, status_id):
    return session.query(func.count(Task.id)).filter(
        Task.status_id == status_id
    ).scalar()

def project_columns(session, project_id):
    return session.query(StatusColumn).filter(
        StatusColumn.project_id == project_id
    ).order_by(StatusColumn.order, StatusColumn.id).all()

def column_tasks(session, project_id, status_id):
    return session.query(Task).filter(
        Task.project_id == project_id,
        Task.status_id == status_id,
    ).order_by(Task.order, Task.id).all()

def _check_unique(table_name, entries):
    seen = set()
    for entry in entries:
        if entry['id'] in seen:
            raise InvalidReorderEntry(table_name, entry, 'duplicate id')
        seen.add(entry['id'])

def apply_task_reorder(session, entries):
    """Move and rank tasks, then densify every column the batch touched.

    Returns the reordered tasks (in batch order) and the affected project ids.
    Raises before anything is flushed when an entry is invalid, so the
    caller's transaction rolls back as a whole.
    """
    table_name = Task.__tablename__
    _check_unique(table_name, entries)

    ids = [entry['id'] for entry in entries]
    tasks = {task.id: task for task in session.query(Task).filter(Task.id.in_(ids))}
    missing = [tid for tid in ids if tid not in tasks]
    if missing:
        raise ModelNotFound(table_name, missing)

    status_ids = {entry['status_id'] for entry in entries}
    columns = {col.id: col for col in session.query(StatusColumn).filter(StatusColumn.id.in_(status_ids))}

    groups = set()
    requested = {}
    for position, entry in enumerate(entries):
        task = tasks[entry['id']]
        column = columns.get(entry['status_id'])
        if column is None or column.project_id != task.project_id:
            raise InvalidReorderEntry(table_name, entry, 'status column is not part of the task\'s project')
        project_id = entry.get('project_id')
        if project_id is not None and project_id != task.project_id:
            raise InvalidReorderEntry(table_name, entry, 'task belongs to another project')
        groups.add((task.project_id, task.status_id))
        groups.add((task.project_id, column.id))
        task.status_id = column.id
        requested[task.id] = (entry['order'], position)

    session.flush()
    for project_id, status_id in sorted(groups):
        renumber(column_tasks(session, project_id, status_id), requested)
    session.flush()

    logger.info('Reordered %d task(s) across %d column(s)', len(entries), len(groups))
    return [tasks[tid] for tid in ids], sorted({project_id for project_id, _ in groups})

def apply_column_reorder(session, entries):
    """Rank columns as requested and densify every project the batch touched."""
    table_name = StatusColumn.__tablename__
    _check_unique(table_name, entries)

    ids = [entry['id'] for entry in entries]
    columns = {col.id: col for col in session.query(StatusColumn).filter(StatusColumn.id.in_(ids))}
    missing = [cid for cid in ids if cid not in columns]
    if missing:
        raise ModelNotFound(table_name, missing)

    projects = set()
    requested = {}
    for position, entry in enumerate(entries):
        column = columns[entry['id']]
        project_id = entry.get('project_id')
        if project_id is not None and project_id != column.project_id:
            raise InvalidReorderEntry(table_name, entry, 'column belongs to another project')
        projects.add(column.project_id)
        requested[column.id] = (entry['order'], position)

    for project_id in sorted(projects):
        renumber(project_columns(session, project_id), requested)
    session.flush()

    logger.info('Reordered %d column(s) in %d project(s)', len(entries), len(projects))
    return [columns[cid] for cid in ids], sorted(projects)

def reassign_column_tasks(session, column):
    """Move the tasks of ``column`` to the end of the first remaining column."""
    siblings = [col for col in project_columns(session, column.project_id) if col.id != column.id]
    if not siblings:
        raise LastColumn(column.id)
    fallback = siblings[0]

    offset = len(column_tasks(session, column.project_id, fallback.id))
    orphans = column_tasks(session, column.project_id, column.id)
    for index, task in enumerate(orphans):
        task.status_id = fallback.id
        task.order = offset + index
    session.flush()
    return fallback, orphans
