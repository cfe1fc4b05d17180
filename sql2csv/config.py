# sql2csv/config.py
"""
Configuration management for sql2csv.
Supports YAML configuration files with named connections, optional password
encryption and global export settings.
"""

import os
import logging
from pathlib import Path
from textwrap import dedent
from typing import Any, Dict, List, Optional

from .defaults import settings
from .database import Database, get_params_for_database
from .utils import reset_format_cache

try:
    import yaml
except ImportError:
    raise ImportError("PyYAML is required. Install with: pip install PyYAML")

try:
    from cryptography.fernet import Fernet
    HAS_CRYPTO = True
except ImportError:
    HAS_CRYPTO = False

try:
    import keyring
    HAS_KEYRING = True
except ImportError:
    HAS_KEYRING = False

logger = logging.getLogger(__name__)

ENCRYPTION_KEY_VAR = 'SQL2CSV_ENCRYPTION_KEY'
KEYRING_SERVICE = 'sql2csv'

CONFIG_CANDIDATES = [
    Path("sql2csv.yml"),
    Path("sql2csv.yaml"),
    Path.home() / ".config" / "sql2csv.yml",
    Path.home() / ".config" / "sql2csv.yaml",
]

_config_manager = None


def _valid_fernet(key: str) -> bool:
    try:
        Fernet(key.encode())
        return True
    except Exception:
        return False


class ConfigManager:
    """
    Manage sql2csv configuration from YAML files.

    Configuration File Structure
    ----------------------------
    ::

        # sql2csv.yml
        settings:
          delimiter: ';'
          eol: lf
          include_headers: true
          logging:
            directory: /var/log/sql2csv

        connections:
          blog:
            type: sqlserver
            host: db01
            database: blog
            user: exporter
            encrypted_password: gAAAAABh...
          warehouse:
            type: postgres
            host: dw
            database: dw
            user: reader
            password: ${DW_PASSWORD}

    Configuration Locations
    -----------------------
    1. File specified in config_file parameter
    2. ``./sql2csv.yml`` or ``./sql2csv.yaml``
    3. ``~/.config/sql2csv.yml`` or ``~/.config/sql2csv.yaml``

    When no file is given and none of the default locations exist the
    configuration is empty and the built-in defaults apply.

    Parameters
    ----------
    config_file : str or Path, optional
        Path to YAML config file. If None, searches standard locations.

    Notes
    -----
    * Connections require a 'type' field (sqlserver, postgres, mysql, sqlite)
    * Encrypted passwords require the SQL2CSV_ENCRYPTION_KEY environment variable
      or a key stored in the system keyring
    * Passwords written as ${VAR_NAME} are read from the environment
    """

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize config manager and load configuration.

        Raises
        ------
        FileNotFoundError
            If an explicit config_file does not exist
        ValueError
            If the config file is invalid or malformed
        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._fernet = None

        # Apply global settings
        self._apply_settings()

    def _find_config_file(self, config_file: Optional[str]) -> Optional[Path]:
        """Find the configuration file."""
        if config_file:
            path = Path(config_file)
            if not path.exists():
                raise FileNotFoundError(f"Config file not found: {config_file}")
            return path

        for candidate in CONFIG_CANDIDATES:
            if candidate.exists():
                return candidate

        logger.debug("No config file found. Looked in: " + ", ".join(str(c) for c in CONFIG_CANDIDATES))
        return None

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate configuration file."""
        if self.config_file is None:
            return {}
        try:
            with open(self.config_file, 'r') as f:
                config = yaml.safe_load(f) or {}
            if not isinstance(config, dict):
                raise ValueError(f"Invalid config file {self.config_file}.")

            if 'connections' in config:
                if not isinstance(config['connections'], dict):
                    raise ValueError(f"Invalid config file {self.config_file}: 'connections' must be a dictionary")
                for name, conn in config['connections'].items():
                    if not isinstance(conn, dict) or 'type' not in conn:
                        raise ValueError(f"Invalid connection '{name}' in {self.config_file}: 'type' is required")

            if 'settings' in config:
                if not isinstance(config['settings'], dict):
                    raise ValueError(f"Invalid config file {self.config_file}: 'settings' must be a dictionary")

            logger.info(f"Loaded config from {self.config_file}")
            return config
        except Exception as e:
            raise ValueError(f"Failed to load config file {self.config_file}: {e}")

    def _apply_settings(self) -> None:
        """Apply global settings from config."""
        config_settings = dict(self.config.get('settings', {}))
        logging_settings = config_settings.pop('logging', None)
        settings.update(config_settings)
        if isinstance(logging_settings, dict):
            settings['logging'] = {**settings.get('logging', {}), **logging_settings}
        # date/time formats may have changed
        reset_format_cache()

    def get_setting(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value, falling back to the built-in defaults.

        Args:
            key: Setting key (supports dot notation like 'logging.level')
            default: Default value if key not found

        Returns:
            Setting value or default

        Example:
            delimiter = config.get_setting('delimiter', ',')
            level = config.get_setting('logging.level', 'INFO')
        """
        value = settings
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def _get_encryption_key(self) -> bytes:
        """Get encryption key from environment variable or keyring."""
        # environment variable takes precedence
        key_str = os.environ.get(ENCRYPTION_KEY_VAR)
        if key_str:
            logger.debug(f"Using {ENCRYPTION_KEY_VAR} from environment")
            return key_str.encode()

        if HAS_KEYRING:
            try:
                key_str = keyring.get_password(KEYRING_SERVICE, 'encryption_key')
            except Exception as e:
                logger.warning(f"Keyring access failed: {e}")
                key_str = None
            if key_str:
                logger.debug("Using encryption key from keyring")
                return key_str.encode()

        if not HAS_CRYPTO:
            raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
        if HAS_KEYRING:
            msg = dedent(f"""\
            Encryption key not found in environment or keyring.
            Run: `sql2csv store-key` to generate and store a new encryption key in the keyring,
            or set the {ENCRYPTION_KEY_VAR} environment variable.""")
        else:
            msg = dedent(f"""\
            Encryption key not found in environment.
            Run `sql2csv generate-key` to generate a new encryption key
            then store it in the {ENCRYPTION_KEY_VAR} environment variable.""")
        raise ValueError(msg)

    def _get_fernet(self) -> 'Fernet':
        """Get or create Fernet instance for encryption/decryption."""
        if self._fernet is None:
            self._fernet = Fernet(self._get_encryption_key())
        return self._fernet

    def decrypt_password(self, encrypted_password: str) -> str:
        """Decrypt an encrypted password."""
        try:
            fernet = self._get_fernet()
            return fernet.decrypt(encrypted_password.encode()).decode()
        except Exception as e:
            raise ValueError(f"Failed to decrypt password: {e}")

    def encrypt_password(self, password: str) -> str:
        """Encrypt a password for storage."""
        try:
            fernet = self._get_fernet()
            return fernet.encrypt(password.encode()).decode()
        except Exception as e:
            raise ValueError(f"Failed to encrypt password: {e}")

    def get_connection_config(self, name: str) -> Dict[str, Any]:
        """Get configuration for a named connection, with the password resolved."""
        connections = self.config.get('connections', {})

        if name not in connections:
            available = list(connections.keys())
            raise ValueError(
                f"Connection '{name}' not found in config. "
                f"Available connections: {available}"
            )

        config = connections[name].copy()

        # Handle password decryption
        if 'encrypted_password' in config:
            config['password'] = self.decrypt_password(config.pop('encrypted_password'))

        # Handle environment variable substitution for password
        password = config.get('password')
        if isinstance(password, str) and password.startswith('${') and password.endswith('}'):
            env_var = password[2:-1]
            config['password'] = os.environ.get(env_var)
            if config['password'] is None:
                raise ValueError(f"Environment variable {env_var} not set")

        return config

    def list_connections(self) -> List[str]:
        """List all available connection names."""
        return list(self.config.get('connections', {}).keys())


def _get_manager(config_file: Optional[str] = None) -> ConfigManager:
    global _config_manager
    if config_file:
        return ConfigManager(config_file)
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config_file(config_file: Optional[str]) -> ConfigManager:
    """Set the configuration file to use globally."""
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager


def connect(name: str, password: str = None, config_file: Optional[str] = None) -> Database:
    """
    Connect to a named database from configuration.

    Args:
        name: Connection name from config file
        password: Optional password if not stored in config
        config_file: Optional path to config file

    Returns:
        Database connection instance

    Example:
        db = connect('blog')
        cursor = db.cursor()
        cursor.execute("SELECT id, name FROM posts")
    """
    config = _get_manager(config_file).get_connection_config(name)
    if password:
        config['password'] = password
    info = {key: val for key, val in config.items() if key != 'password'}
    logger.debug(f"Connecting to database {name} with config: {info}")

    db_type = config.pop('type')
    driver = config.pop('driver', None)

    # remove any params that are not allowed for the database type
    allowed_params = get_params_for_database(db_type)
    ignored = set(config) - allowed_params
    if ignored:
        logger.warning(f"Unknown connection settings for '{name}' (ignored): {sorted(ignored)}")
    config = {key: val for key, val in config.items() if key in allowed_params}

    return Database.create(db_type, driver=driver, **config)


def get_setting(key: str, default: Any = None, config_file: Optional[str] = None) -> Any:
    """
    Get a setting value from configuration.

    Args:
        key: Setting key (supports dot notation like 'logging.level')
        default: Default value if key not found
        config_file: Optional path to config file

    Example:
        level = get_setting('logging.level', 'INFO')
    """
    return _get_manager(config_file).get_setting(key, default)


def _generate_encryption_key() -> str:
    return Fernet.generate_key().decode()


def generate_encryption_key() -> str:
    """
    Generate a random encryption key.

    The key should be stored in the SQL2CSV_ENCRYPTION_KEY environment variable
    or in the keyring by calling `sql2csv store-key [your key]`.

    Returns:
        str: A randomly generated encryption key.
    """
    if not HAS_CRYPTO:
        raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
    key = _generate_encryption_key()
    if HAS_KEYRING:
        msg = "Key generated.  Store in system keyring with `sql2csv store-key [your key]`"
    else:
        msg = f"Key generated.  Store in {ENCRYPTION_KEY_VAR} environment variable"
    print(msg)
    print(key)
    return key


def store_key(key: Optional[str] = None, force: bool = False) -> None:
    """CLI utility to store encryption key in system keyring."""
    if not HAS_CRYPTO:
        raise ValueError("Encryption not available. Install cryptography package to enable encryption.")
    if not HAS_KEYRING:
        raise ValueError("Keyring not available. Install keyring package to store key in system keyring.")

    try:
        current_key = keyring.get_password(KEYRING_SERVICE, "encryption_key")
    except Exception:
        current_key = None

    if current_key and not force:
        msg = "Encryption key already stored in system keyring. Use --force to overwrite."
        logger.warning(msg)
        print(msg)
        return
    if current_key:
        logger.warning("Encryption key already stored in system keyring. Overwriting!")

    if key is None:
        key = _generate_encryption_key()
    elif not _valid_fernet(key):
        raise ValueError("Invalid encryption key. Must be 32 url-safe base64-encoded bytes.")

    try:
        keyring.set_password(KEYRING_SERVICE, "encryption_key", key)
    except Exception as e:
        msg = f"Failed to store encryption key in system keyring: {e}"
        logger.error(msg)
        raise ValueError(msg)
    msg = "Stored encryption key in system keyring"
    logger.info(msg)
    print(msg)


def encrypt_password(password: str = None, encryption_key: str = None) -> str:
    """
    CLI utility function to encrypt a password for a config file.

    Args:
        password: Password to encrypt (if None, prompts for input)
        encryption_key: Optional encryption key. If None, uses SQL2CSV_ENCRYPTION_KEY or the keyring

    Returns:
        str: Encrypted password
    """
    if password is None:
        import getpass
        password = getpass.getpass("Enter password to encrypt: ")

    if encryption_key:
        encrypted = Fernet(encryption_key.encode()).encrypt(password.encode()).decode()
    else:
        temp_config = ConfigManager.__new__(ConfigManager)
        temp_config._fernet = None
        encrypted = temp_config.encrypt_password(password)

    print(encrypted)
    return encrypted
