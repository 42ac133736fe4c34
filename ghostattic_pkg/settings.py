#!/usr/bin/env python3
"""
Settings loader for Ghostattic.
Supports configuration from ghostattic.yml, ghostattic.yaml, or ghostattic.json files,
plus Ghost credentials from the environment or a .env file.
"""

import os
import json
import yaml
from dotenv import load_dotenv
from typing import Dict, Any, Optional


class GhostatticSettings:
    """Load and manage Ghostattic configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'input': 'src',
        'output': 'dist',
        'cache_dir': '.cache',
        'image_url_path': '/img/',
        'ghost_api_version': 'v4',
        'request_timeout': 30,
        'minify': True,
        'external_links': True,
        'workers': 4,
        'port': 8080,
    }

    # Environment variables mapped onto settings keys
    ENV_SETTINGS = {
        'GHOST_API_URL': 'ghost_api_url',
        'GHOST_CONTENT_API_KEY': 'ghost_content_api_key',
        'SITE_URL': 'site_url',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['ghostattic.yml', 'ghostattic.yaml', 'ghostattic.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config and .env files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from the configuration file and environment.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if loaded_settings:
                self.settings.update(loaded_settings)

        self.settings.update(self.load_environment())
        return self.settings.copy()

    def load_environment(self) -> Dict[str, Any]:
        """Read Ghost credentials from the environment; a .env file never overrides real variables."""
        load_dotenv(os.path.join(self.config_dir, '.env'), override=False)
        env_settings = {}
        for env_name, key in self.ENV_SETTINGS.items():
            value = os.environ.get(env_name)
            if value:
                env_settings[key] = value
        return env_settings

    def _find_config_file(self) -> Optional[str]:
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    loaded = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    loaded = json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")
        except (IOError, OSError) as e:
            raise IOError(f"Error reading configuration file {config_path}: {e}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return loaded

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'ghostattic.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Ghostattic Configuration File\n")
                    f.write("# Ghost credentials are read from GHOST_API_URL and\n")
                    f.write("# GHOST_CONTENT_API_KEY (environment or .env), never from here.\n\n")
                    f.write("# Build settings\n")
                    f.write("input: src\n")
                    f.write("output: dist\n")
                    f.write("cache_dir: .cache\n")
                    f.write("image_url_path: /img/\n\n")
                    f.write("# Ghost Content API\n")
                    f.write("ghost_api_version: v4\n")
                    f.write("request_timeout: 30\n\n")
                    f.write("# Output\n")
                    f.write("minify: true\n")
                    f.write("external_links: true  # open external links in a new tab\n\n")
                    f.write("# Development settings\n")
                    f.write("workers: 4\n")
                    f.write("port: 8080\n")
                elif file_format == 'json':
                    json.dump(self.DEFAULT_SETTINGS, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()
        for key, value in args_dict.items():
            if value is not None:
                merged[key] = value
        return merged
