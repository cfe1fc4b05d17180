# sql2csv/database.py
"""
Database connection wrapper that provides a uniform interface
to the supported database adapters.
"""

import importlib
import importlib.util
import logging
import os
from typing import Any, List, Optional

from .cursors import Cursor

logger = logging.getLogger(__name__)

APP_NAME = 'sql2csv'

DRIVERS = {
    # SQL Server Drivers
    'pymssql': {
        'database_type': 'sqlserver',
        'priority': 11,
        'param_map': {'host': 'server'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'password', 'port', 'timeout', 'login_timeout', 'charset', 'appname',
                            'tds_version'},
        'defaults': {'appname': APP_NAME},
        'connection_method': 'kwargs',
        'default_port': 1433,
    },
    'pyodbc': {
        'database_type': 'sqlserver',
        'priority': 12,
        'param_map': {'host': 'server', 'user': 'uid', 'password': 'pwd'},
        'required_params': [{'host', 'database', 'user'}, {'host', 'database', 'trusted_connection'}],
        'optional_params': {'password', 'port', 'encrypt', 'trustservercertificate', 'applicationintent',
                            'app', 'odbc_driver_name'},
        'defaults': {'app': APP_NAME, 'applicationintent': 'ReadOnly',
                     'odbc_driver_name': 'ODBC Driver 18 for SQL Server'},
        'connection_method': 'odbc_string',
        'default_port': 1433,
    },

    # PostgreSQL Drivers
    'psycopg2': {
        'database_type': 'postgres',
        'priority': 11,
        'param_map': {'database': 'dbname'},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'sslmode', 'connect_timeout', 'application_name',
                            'client_encoding', 'options'},
        'defaults': {'application_name': APP_NAME},
        'connection_method': 'connection_string',
        'default_port': 5432,
    },

    # MySQL Drivers
    'pymysql': {
        'database_type': 'mysql',
        'priority': 11,
        'param_map': {},
        'required_params': [{'host', 'database', 'user'}],
        'optional_params': {'port', 'password', 'charset', 'connect_timeout', 'ssl'},
        'connection_method': 'kwargs',
        'default_port': 3306,
    },

    # SQLite Driver
    'sqlite3': {
        'database_type': 'sqlite',
        'priority': 1,
        'param_map': {},
        'required_params': [{'database'}],
        'optional_params': {'timeout', 'detect_types', 'isolation_level', 'uri'},
        'connection_method': 'kwargs'
    }
}


def get_drivers_for_database(db_type: str, valid_only: bool = True) -> List[str]:
    """
    List the drivers registered for a database type, preferred first.

    Parameters:
        db_type (str): Database type ('sqlserver', 'postgres', 'mysql', 'sqlite')
        valid_only (bool): Only include drivers that are importable (default True)

    Returns:
        List[str]: Driver names sorted by priority
    """
    drivers = []
    for driver_name, info in DRIVERS.items():
        if info['database_type'] != db_type:
            continue
        if valid_only and importlib.util.find_spec(driver_name) is None:
            continue
        drivers.append(driver_name)
    drivers.sort(key=lambda d: DRIVERS[d]['priority'])
    return drivers


def get_supported_db_types() -> set:
    """Get all supported database types."""
    return {info['database_type'] for info in DRIVERS.values()}


def get_params_for_database(db_type: str) -> set:
    """All parameter names accepted by any driver of a database type."""
    valid_params = set()
    for info in DRIVERS.values():
        if info['database_type'] == db_type:
            for param_set in info['required_params']:
                valid_params.update(param_set)
            valid_params.update(info.get('optional_params', set()))
    return valid_params


def validate_connection_params(driver_name: str, **params) -> dict:
    """
    Validate connection parameters against driver requirements.

    Args:
        driver_name: Name of the database driver
        **params: Connection parameters

    Returns:
        Dict of validated parameters, renamed for the driver, extras removed

    Raises:
        ValueError: If the driver is unknown or required parameters are missing
    """
    if driver_name not in DRIVERS:
        raise ValueError(f"Unknown driver: {driver_name}")

    driver_info = DRIVERS[driver_name]
    params = {key: val for key, val in params.items() if val is not None}
    if 'username' in params and 'user' not in params:
        params['user'] = params.pop('username')

    if 'port' not in params and driver_info.get('default_port'):
        params['port'] = driver_info['default_port']
    for key, val in driver_info.get('defaults', {}).items():
        params.setdefault(key, val)

    if not any(required.issubset(params.keys()) for required in driver_info['required_params']):
        raise ValueError(f"Missing required parameters. Need one of: {driver_info['required_params']}")

    all_valid_params = set(driver_info.get('optional_params', set()))
    for required in driver_info['required_params']:
        all_valid_params.update(required)

    param_map = driver_info.get('param_map', {})
    return {param_map.get(key, key): val for key, val in params.items() if key in all_valid_params}


def get_connection_string(**kwargs) -> str:
    """Get libpq style connection string from keyword arguments."""
    return " ".join([f"{key}={value}" for key, value in kwargs.items()])


def get_odbc_connection_string(**kwargs) -> str:
    """Get ODBC connection string from keyword arguments."""
    odbc_driver_name = kwargs.pop('odbc_driver_name', None)
    server = kwargs.pop('server', 'localhost')
    port = kwargs.pop('port', None)
    params = {'SERVER': f'{server},{port}' if port else server}
    params.update({key.upper(): value for key, value in kwargs.items()})
    conn_str = ";".join([f"{key}={value}" for key, value in params.items()])
    if odbc_driver_name:
        return f"DRIVER={{{odbc_driver_name}}};" + conn_str
    return conn_str


class Database:
    """
    Database connection wrapper that provides uniform interface
    across different database adapters.

    Example
    -------
    ::

        with Database.create('sqlserver', host='db01', database='blog', user='sa', password='...') as db:
            db.ping()
            cursor = db.cursor()
            cursor.execute('SELECT id, name FROM posts')
    """

    # Attributes stored locally, others delegated to _connection
    _local_attrs = ['_connection', 'server_type', 'database_name', 'interface']

    def __init__(self, connection, interface, database_name: Optional[str] = None):
        """
        Initialize Database wrapper.

        Args:
            connection: Underlying database connection object
            interface: Database adapter module (pymssql, pyodbc, sqlite3, etc.)
            database_name: Name of the database
        """
        self._connection = connection
        self.interface = interface
        self.database_name = database_name
        name = getattr(interface, '__name__', '')
        if name in DRIVERS:
            self.server_type = DRIVERS[name]['database_type']
        else:
            self.server_type = 'unknown'

    def __getattr__(self, key: str) -> Any:
        """Delegate attribute access to underlying connection."""
        return getattr(self._connection, key)

    def __setattr__(self, key: str, value: Any) -> None:
        """Set attributes locally or delegate to connection."""
        if key in self._local_attrs:
            self.__dict__[key] = value
        else:
            setattr(self._connection, key, value)

    def __str__(self) -> str:
        """String representation of the database connection."""
        if self.database_name:
            return f'Database({self.database_name}:{self.server_type})'
        else:
            return f'Database({self.server_type})'

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close connection."""
        self.close()

    def cursor(self, **kwargs) -> Cursor:
        """Create an export cursor. Keyword arguments are passed to Cursor."""
        return Cursor(self, **kwargs)

    def ping(self) -> None:
        """Round-trip a trivial query to prove the connection is usable."""
        cursor = self._connection.cursor()
        try:
            cursor.execute('SELECT 1')
            cursor.fetchall()
        finally:
            cursor.close()
        logger.debug(f"Ping succeeded: {self}")

    def validate_query(self, query: str) -> bool:
        """
        Compile a query without running it.

        SQL Server uses SET NOEXEC ON and SQLite uses EXPLAIN. Other servers
        are not checked.

        Returns:
            True if the query was checked, False if the server type has no dry-run mode

        Raises:
            The driver's error if the query does not compile
        """
        cursor = self._connection.cursor()
        try:
            if self.server_type == 'sqlserver':
                cursor.execute('SET NOEXEC ON')
                try:
                    cursor.execute(query)
                finally:
                    cursor.execute('SET NOEXEC OFF')
            elif self.server_type == 'sqlite':
                cursor.execute(f'EXPLAIN {query}')
                cursor.fetchall()
            else:
                logger.debug(f"Query validation not supported for {self.server_type}")
                return False
        finally:
            cursor.close()
        logger.debug("Query validated")
        return True

    @classmethod
    def create(cls, db_type: str, driver: str = None, **kwargs) -> 'Database':
        """
        Factory method to create database connections.

        Args:
            db_type: Database type ('sqlserver', 'postgres', 'mysql', 'sqlite')
            driver: Specific driver module name; the highest priority installed driver otherwise
            **kwargs: Connection parameters

        Returns:
            Database instance
        """
        if db_type not in get_supported_db_types():
            raise ValueError(f"Unsupported database type '{db_type}'. "
                             f"Must be one of: {sorted(get_supported_db_types())}")
        db_driver = None
        driver_name = None
        if driver:
            if driver not in DRIVERS:
                raise ValueError(f"Unknown driver: {driver}")
            if DRIVERS[driver]['database_type'] != db_type:
                raise ValueError(f"Driver '{driver}' is not compatible with database type '{db_type}'")
            try:
                db_driver = importlib.import_module(driver)
                driver_name = driver
            except ImportError:
                logger.warning(f"Driver '{driver}' not available, falling back to default")

        if db_driver is None:
            for name in get_drivers_for_database(db_type):
                try:
                    db_driver = importlib.import_module(name)
                    driver_name = name
                    break
                except ImportError:
                    pass

        if db_driver is None:
            raise ImportError(f"No database driver found for database type '{db_type}'")

        params = validate_connection_params(driver_name, **kwargs)
        database_name = kwargs.get('database')

        method = DRIVERS[driver_name]['connection_method']
        if method == 'kwargs':
            connection = db_driver.connect(**params)
        elif method == 'connection_string':
            connection = db_driver.connect(get_connection_string(**params))
        elif method == 'odbc_string':
            connection = db_driver.connect(get_odbc_connection_string(**params))
        else:
            raise ValueError(f"Unknown connection method: {method}")

        logger.debug(f"Connected with {driver_name} to {database_name}")
        return cls(connection, db_driver, database_name)


def sqlserver(user: str, password: Optional[str] = None, database: str = None,
              host: str = 'localhost', port: int = 1433, driver: str = None, **kwargs) -> Database:
    """Create SQL Server connection."""
    return Database.create('sqlserver', user=user, password=password, database=database,
                           host=host, port=port, driver=driver, **kwargs)


def postgres(user: str, password: Optional[str] = None, database: str = 'postgres',
             host: str = 'localhost', port: int = 5432, **kwargs) -> Database:
    """Create PostgreSQL connection."""
    return Database.create('postgres', user=user, password=password, database=database,
                           host=host, port=port, **kwargs)


def sqlite(database: str, **kwargs) -> Database:
    """Create SQLite connection."""
    import sqlite3

    connection = sqlite3.connect(str(database), **kwargs)
    return Database(connection, sqlite3, os.path.basename(str(database)))
