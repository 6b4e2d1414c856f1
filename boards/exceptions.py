import ujson as json

class InvalidReorderEntry(Exception):
    def __init__(self, table_name, entry, reason):
        super().__init__()

        self.table_name = table_name
        self.entry = entry
        self.reason = reason

    def __str__(self):
        return 'Invalid reorder entry for {}: {} ({})'.format(self.table_name, json.dumps(self.entry), self.reason)

class ModelNotFound(Exception):
    def __init__(self, table_name, object_ids):
        super().__init__()

        self.table_name = table_name
        self.object_ids = list(object_ids)

    def __str__(self):
        return 'No {} rows for ids {}'.format(self.table_name, self.object_ids)

class LastColumn(Exception):
    def __init__(self, column_id):
        super().__init__()

        self.column_id = column_id

    def __str__(self):
        return 'Column {} is the last one of its project and can\'t be deleted'.format(self.column_id)
