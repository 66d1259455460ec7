"""Session table definition."""

from sqlalchemy import Column, DateTime, Integer, MetaData, Table, Text, func
from sqlalchemy.dialects import mysql


def session_table(name: str, metadata: MetaData) -> Table:
    """
    Define the session table called ``name``.

    +--------------+-----------+------+-----+---------+--------------------------+
    | Field        | Type      | Null | Key | Default | Extra                    |
    +--------------+-----------+------+-----+---------+--------------------------+
    | id           | int(11)   | NO   | PRI | NULL    | auto_increment           |
    | session_data | longtext  | YES  |     | NULL    |                          |
    | created_on   | timestamp | NO   |     | now()   |                          |
    | modified_on  | timestamp | NO   |     | now()   | set to now() on update   |
    | expires_on   | timestamp | NO   |     | now()   | now() + max age on insert|
    +--------------+-----------+------+-----+---------+--------------------------+
    """
    return Table(
        name, metadata,
        Column('id', Integer, primary_key=True, autoincrement=True),
        Column('session_data', Text().with_variant(mysql.LONGTEXT(), 'mysql')),
        Column('created_on', DateTime, nullable=False,
               server_default=func.now()),
        Column('modified_on', DateTime, nullable=False,
               server_default=func.now(), onupdate=func.now()),
        Column('expires_on', DateTime, nullable=False,
               server_default=func.now()),
        mysql_engine='InnoDB'
    )
