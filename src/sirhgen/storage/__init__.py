"""Physical schema management.

Each generated entity owns a dedicated table with an integer primary key,
``created_at``/``updated_at`` timestamps, one column per scalar field and a
``<field>_id`` foreign key per owning to-one relation. Owning many-to-many
relations get a junction table.
"""

from sirhgen.storage.synchronizer import SchemaSynchronizer

__all__ = ["SchemaSynchronizer"]
