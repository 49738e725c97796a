from __future__ import annotations

from dialects.mysql import MySQLDialect


class TiDBDialect(MySQLDialect):
    """TiDB speaks the MySQL protocol and honours the same session flags.

    Integrity suspension (``FOREIGN_KEY_CHECKS``) and ``AUTO_INCREMENT``
    resets are inherited. Fingerprints come from ``ADMIN CHECKSUM TABLE``,
    whose row is ``(Db_name, Table_name, Checksum_crc64_xor, Total_kvs,
    Total_bytes)``; a NULL checksum means the table is gone.
    """

    engine = "tidb"
    default_port = 4000

    checksum_query = "ADMIN CHECKSUM TABLE {table}"
    checksum_column = 2
