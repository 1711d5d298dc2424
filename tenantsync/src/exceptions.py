# filepath: tenantsync/src/exceptions.py

"""Error taxonomy shared by the resolver, stores, migrator and sweeper."""


class ConfigurationError(Exception):
    """Missing or malformed tenant binding input. Fatal before any remote call."""


class ConnectivityError(Exception):
    """Transport or authentication failure talking to a tenant's data store."""


class SchemaConflictError(Exception):
    """A statement or relation was rejected by the data store."""


class DataIntegrityWarning(UserWarning):
    """A row whose referential state looks inconsistent. Reported, never corrected."""

    def __init__(self, table: str, row_id, message: str):
        super().__init__(f"{table}[{row_id}]: {message}")
        self.table = table
        self.row_id = row_id
        self.message = message

    def to_dict(self):
        return {'table': self.table, 'row_id': self.row_id, 'message': self.message}
