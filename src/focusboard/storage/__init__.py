from .container import Container
from .file_repos import YamlTableStore
from .interfaces import StorageError, TableStore, any_of, equals

__all__ = ["Container", "StorageError", "TableStore", "YamlTableStore", "any_of", "equals"]
