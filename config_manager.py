# config_manager.py
import os
import tomllib
import re
import logging
from dataclasses import dataclass

from constants import DEFAULT_LISTEN_INTERFACES, DEFAULT_LOG_PATH, DEFAULT_SAVE_PATH, DESCRIPTOR_CREATOR

logger = logging.getLogger("ConfigManager")

@dataclass
class EngineConfig:
    listen_interfaces: str = DEFAULT_LISTEN_INTERFACES
    enable_dht: bool = False
    alert_poll_ms: int = 500
    status_interval_ms: int = 1000

@dataclass
class StorageConfig:
    save_path: str = DEFAULT_SAVE_PATH
    temp_path: str = ""

@dataclass
class DescriptorConfig:
    creator: str = DESCRIPTOR_CREATOR
    private: bool = True

@dataclass
class LoggingConfig:
    debug: bool = False
    file_path: str = DEFAULT_LOG_PATH
    max_size_mb: int = 10
    backup_count: int = 5

class Settings:
    def __init__(self, config_path):
        self.path = config_path
        self.load()

    def load(self):
        if not os.path.exists(self.path):
            raise FileNotFoundError(f"Configuration file not found: {self.path}")

        try:
            with open(self.path, "rb") as f:
                data = tomllib.load(f)

            self.engine = EngineConfig(**data.get('engine', {}))
            self.storage = StorageConfig(**data.get('storage', {}))
            self.descriptor = DescriptorConfig(**data.get('descriptor', {}))
            self.logging = LoggingConfig(**data.get('logging', {}))

            # Ensure storage directories exist
            os.makedirs(self.storage.save_path, exist_ok=True)
            if self.storage.temp_path:
                os.makedirs(self.storage.temp_path, exist_ok=True)

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Invalid TOML format in {self.path}: {e}")
            raise ValueError(f"Config syntax error: {e}")
        except TypeError as e:
            logger.error(f"Unknown key in {self.path}: {e}")
            raise ValueError(f"Config key error: {e}")
        except OSError as e:
            logger.error(f"Could not access config or create directories: {e}")
            raise

class ConfigEditor:
    """Helper class to safely update TOML files while preserving comments."""
    def __init__(self, path):
        self.path = path

    def update_key(self, section: str, key: str, value) -> tuple[bool, str]:
        if not os.path.exists(self.path):
            return False, "Configuration file not found"

        if isinstance(value, bool):
            val_str = "true" if value else "false"
        elif isinstance(value, str):
            val_str = f'"{value}"'
        else:
            val_str = str(value)

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                lines = f.readlines()
        except UnicodeDecodeError:
            return False, "Encoding error: File is not UTF-8 compatible"
        except PermissionError:
            return False, "Permission denied: Cannot read configuration file"

        new_lines = []
        in_section = False
        updated = False
        key_pattern = re.compile(rf'^\s*{re.escape(key)}\s*=\s*(.*)')

        for line in lines:
            stripped = line.strip()

            if stripped.startswith('[') and stripped.endswith(']'):
                in_section = (stripped[1:-1] == section)

            if in_section and key_pattern.match(stripped):
                # Keep trailing comment and indentation
                comment = ""
                if "#" in line:
                    comment = " #" + line.split("#", 1)[1].rstrip()
                indent = line[:line.find(key)]
                new_lines.append(f"{indent}{key} = {val_str}{comment}\n")
                updated = True
            else:
                new_lines.append(line)

        if updated:
            try:
                with open(self.path, 'w', encoding='utf-8') as f:
                    f.writelines(new_lines)
                return True, f"Updated [{section}] {key} = {val_str}"
            except PermissionError:
                return False, "Permission denied: Cannot write to configuration file"
            except OSError as e:
                logger.error(f"Failed to write config: {e}")
                return False, f"Write error: {e}"

        return False, f"Key '{key}' not found in section [{section}]"
