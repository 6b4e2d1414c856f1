"""Turns a drop gesture into a dense reorder batch.

Entities are wire dicts (``id``, ``projectId``, ``statusId``, ``order``).
Planners never touch their input; they return the batch to send to the
reorder endpoint, or ``None`` when the gesture changes nothing.
"""
from collections import namedtuple

TASK = 'task'
COLUMN = 'column'

DropTarget = namedtuple('DropTarget', ('kind', 'id', ))


def _sort_key(item):
    # server ids are integers, optimistic temp ids are strings and sort last
    item_id = item['id']
    return (item.get('order', 0), isinstance(item_id, str), item_id)

def _find(items, item_id):
    for item in items:
        if item['id'] == item_id:
            return item
    return None

def _insert(group, moving, target_id=None):
    """Take the moving entity out, then put it where the target sits among the rest."""
    remaining = [item for item in group if item['id'] != moving['id']]
    ids = [item['id'] for item in remaining]
    index = ids.index(target_id) if target_id in ids else len(remaining)
    return remaining[:index] + [moving] + remaining[index:]

def _array_move(group, moving, target_id):
    """The moving entity lands at the target's current index."""
    ids = [item['id'] for item in group]
    index = ids.index(target_id) if target_id in ids else len(ids)
    remaining = [item for item in group if item['id'] != moving['id']]
    index = min(index, len(remaining))
    return remaining[:index] + [moving] + remaining[index:]

def task_group(tasks, project_id, status_id):
    return sorted(
        (task for task in tasks if task['projectId'] == project_id and task['statusId'] == status_id),
        key=_sort_key,
    )

def column_group(columns, project_id):
    return sorted((col for col in columns if col['projectId'] == project_id), key=_sort_key)

def plan_task_move(tasks, task_id, target):
    if target is None:
        return None
    moving = _find(tasks, task_id)
    if moving is None:
        return None
    project_id = moving['projectId']
    source_id = moving['statusId']

    if target.kind == TASK:
        if target.id == task_id:
            return None
        sibling = _find(tasks, target.id)
        if sibling is None or sibling['projectId'] != project_id:
            return None
        dest_id = sibling['statusId']
        target_id = sibling['id']
    elif target.kind == COLUMN:
        dest_id = target.id
        target_id = None
        # dropped back on its own column body
        if dest_id == source_id:
            return None
    else:
        return None

    dest = _insert(task_group(tasks, project_id, dest_id), moving, target_id)
    batch = [
        {'id': task['id'], 'statusId': dest_id, 'order': index, 'projectId': project_id}
        for index, task in enumerate(dest)
    ]
    if dest_id != source_id:
        source = [task for task in task_group(tasks, project_id, source_id) if task['id'] != task_id]
        batch.extend(
            {'id': task['id'], 'statusId': source_id, 'order': index, 'projectId': project_id}
            for index, task in enumerate(source)
        )
    return batch

def plan_column_move(columns, column_id, target):
    if target is None or target.kind != COLUMN or target.id == column_id:
        return None
    moving = _find(columns, column_id)
    sibling = _find(columns, target.id)
    if moving is None or sibling is None or sibling['projectId'] != moving['projectId']:
        return None
    group = _array_move(column_group(columns, moving['projectId']), moving, sibling['id'])
    return [
        {'id': col['id'], 'order': index, 'projectId': col['projectId']}
        for index, col in enumerate(group)
    ]

def apply_batch(items, batch):
    """Return a copy of ``items`` with every batch entry merged into its row."""
    updates = {entry['id']: entry for entry in batch}
    result = []
    for item in items:
        if item['id'] in updates:
            item = dict(item, **updates[item['id']])
        result.append(item)
    return tuple(result)
