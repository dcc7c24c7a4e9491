import os
import logging
from urllib.parse import urlparse
import json
import shutil
from utilities.settings_schema import SETTINGS_SCHEMA
from utilities.file_lock import FileLock

def get_config_dir():
    """Config directory, from USER_CONFIG."""
    return os.environ.get('USER_CONFIG', '/user/config')

def get_config_file_path():
    return os.path.join(get_config_dir(), 'config.json')

def get_backup_file_path():
    return get_config_file_path() + '.backup'

def get_lock_file_path():
    return os.path.join(get_config_dir(), '.config.lock')

class Settings:
    """Holds the config lock file for the duration of a read or write."""

    def __init__(self, lock_file_path):
        self.lock_file_path = lock_file_path
        self.fd = None
        self.lock = None
        os.makedirs(os.path.dirname(lock_file_path), exist_ok=True)

    def __enter__(self):
        # 'a+' creates the lock file on first use
        self.fd = open(self.lock_file_path, 'a+')
        try:
            self.lock = FileLock(self.fd)
            self.lock.acquire()
        except OSError:
            self.fd.close()
            self.fd = None
            raise
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.fd is None:
            return
        try:
            self.lock.release()
        except OSError as e:
            logging.error(f"Could not release config lock {self.lock_file_path}: {e}")
        finally:
            self.fd.close()
            self.fd = None

def _read_json(path):
    with open(path, 'r') as f:
        return json.load(f)

def load_config():
    """
    Read config.json under the config lock.

    A corrupt file falls back to the .backup copy written by save_config; an
    unreadable config of any kind gives {} so callers see schema defaults.
    """
    config_file_path = get_config_file_path()
    try:
        with Settings(get_lock_file_path()):
            if not os.path.exists(config_file_path):
                logging.debug(f"No config file at {config_file_path}, using defaults")
                return {}
            try:
                return _read_json(config_file_path)
            except json.JSONDecodeError as e:
                logging.error(f"Config file {config_file_path} is not valid JSON ({e}), trying the backup")

            backup_file = get_backup_file_path()
            if not os.path.exists(backup_file):
                return {}
            try:
                config = _read_json(backup_file)
            except (OSError, json.JSONDecodeError) as e:
                logging.error(f"Config backup {backup_file} is unreadable too: {e}")
                return {}
            logging.info(f"Loaded config from backup {backup_file}")
            return config
    except OSError as e:
        logging.error(f"Could not read config {config_file_path}: {e}")
        return {}

def save_config(config):
    """Write config.json, keeping the previous file as .backup and restoring it if the write fails."""
    config_file_path = get_config_file_path()
    backup_file = get_backup_file_path()
    try:
        with Settings(get_lock_file_path()):
            if os.path.exists(config_file_path):
                shutil.copy2(config_file_path, backup_file)
            try:
                with open(config_file_path, 'w') as config_file:
                    json.dump(config, config_file, indent=2)
            except OSError as e:
                logging.error(f"Writing {config_file_path} failed: {e}")
                if os.path.exists(backup_file):
                    shutil.copy2(backup_file, config_file_path)
                    logging.warning(f"Restored {config_file_path} from backup")
                return
            logging.debug(f"Saved config to {config_file_path}")
    except OSError as e:
        logging.error(f"Could not save config {config_file_path}: {e}")

def parse_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ('true', 'yes', '1', 'on')
    return bool(value)

def get_default(section, key):
    schema_value = SETTINGS_SCHEMA.get(section, {}).get(key)
    if isinstance(schema_value, dict):
        return schema_value.get('default')
    return None

def get_setting(section, key=None, default=None):
    """
    Read a setting, falling back to `default` and then to the schema default.

    Boolean strings are coerced and keys ending in 'url' are validated.
    """
    config = load_config()

    if key is None:
        return config.get(section, {})

    section_data = config.get(section, {})
    value = section_data.get(key)
    if value is None:
        value = default if default is not None else get_default(section, key)

    if isinstance(value, str) and value.lower() in ('true', 'false'):
        return parse_bool(value)

    if isinstance(key, str) and key.lower().endswith('url'):
        validated_url = validate_url(value)
        if validated_url != value:
            logging.debug(f"get_setting: Validated URL '{value}' to '{validated_url}'")
        return validated_url

    return value

def set_setting(section, key, value):
    config = load_config()

    if section not in config:
        config[section] = {}
        for schema_key, schema_value in SETTINGS_SCHEMA.get(section, {}).items():
            if isinstance(schema_value, dict) and 'default' in schema_value:
                config[section][schema_key] = schema_value['default']

    if isinstance(key, str) and key.lower().endswith('url'):
        value = validate_url(value)
    if isinstance(value, str) and value.lower() in ('true', 'false'):
        value = parse_bool(value)

    config[section][key] = value
    save_config(config)

def validate_url(url):
    if not url or not isinstance(url, str):
        return ''
    if not url.startswith(('http://', 'https://')):
        url = f'http://{url}'
    result = urlparse(url)
    if all([result.scheme, result.netloc]):
        return url
    logging.warning(f"Invalid URL structure (scheme or netloc missing): {url}")
    return ''

def ensure_settings_file():
    """Create config.json with schema defaults when it is missing or unreadable."""
    config_file_path = get_config_file_path()
    if os.path.exists(config_file_path) and load_config():
        logging.debug(f"ensure_settings_file: Config file {config_file_path} already exists.")
        return

    logging.info(f"ensure_settings_file: Creating default config at {config_file_path}")
    config = {}
    for section, section_data in SETTINGS_SCHEMA.items():
        config[section] = {}
        for key, value_schema in section_data.items():
            if key != 'tab' and isinstance(value_schema, dict) and 'default' in value_schema:
                config[section][key] = value_schema['default']
    save_config(config)
