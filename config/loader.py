"""
Configuration loading and management with template support.

Handles project setup, template substitution and environment overrides.
"""

import json
import logging
import os
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional, Union

from core.models.config import GlobalSettings, ProjectConfig
from .defaults import ENV_VAR_MAPPING, get_default_project_config

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".workspace-indexer"
CONFIG_FILE_NAME = "config.json"


class ConfigurationLoader:
    """Load and manage project configurations with template support"""

    def __init__(self, global_settings: Optional[GlobalSettings] = None):
        self.global_settings = global_settings or GlobalSettings()
        self.config_cache: Dict[str, ProjectConfig] = {}

    def load_project_config(
        self,
        project_path: Union[str, Path],
        project_name: Optional[str] = None
    ) -> ProjectConfig:
        """Load the saved configuration of a project, or build a default one"""
        project_path = Path(project_path).resolve()

        if not project_name:
            project_name = self._safe_project_name(project_path.name)

        cache_key = str(project_path)
        if cache_key in self.config_cache:
            return self.config_cache[cache_key]

        config_file = project_path / CONFIG_DIR_NAME / CONFIG_FILE_NAME

        if config_file.exists():
            config = self._load_existing_config(config_file)
        else:
            config = self._create_project_config(project_path, project_name)

        self.config_cache[cache_key] = config
        return config

    def _load_existing_config(self, config_file: Path) -> ProjectConfig:
        """Load existing configuration file with validation"""
        project_path = config_file.parent.parent
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            data = self._apply_env_overrides(data)
            data['path'] = str(project_path)
            return ProjectConfig.from_dict(data)

        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"Failed to load config from {config_file}: {e}")
            # Fall back to creating new config
            return self._create_project_config(
                project_path,
                self._safe_project_name(project_path.name)
            )

    def _create_project_config(self, project_path: Path, project_name: str) -> ProjectConfig:
        """Create new project configuration from template"""
        safe_project_name = self._safe_project_name(project_name)

        config_data = get_default_project_config()
        config_data = self._substitute_template_vars(config_data, {
            'project_name': safe_project_name,
            'project_path': str(project_path)
        })

        # Global settings take precedence over built-in defaults
        config_data['qdrant']['url'] = self.global_settings.default_qdrant_url
        config_data['embedding']['model_name'] = self.global_settings.default_model_name
        config_data['embedding']['model_base_path'] = str(self.global_settings.model_base_path)

        config_data = self._apply_env_overrides(config_data)
        return ProjectConfig.from_dict(config_data)

    @staticmethod
    def _safe_project_name(name: str) -> str:
        """Project name usable in a collection name"""
        safe = "".join(
            char if char.isalnum() else "-"
            for char in name.lower().strip()
        ).strip("-")
        return safe or "workspace"

    def _substitute_template_vars(
        self,
        data: Any,
        substitutions: Dict[str, str]
    ) -> Any:
        """Recursively substitute template variables in configuration"""
        if isinstance(data, dict):
            return {
                key: self._substitute_template_vars(value, substitutions)
                for key, value in data.items()
            }
        elif isinstance(data, list):
            return [
                self._substitute_template_vars(item, substitutions)
                for item in data
            ]
        elif isinstance(data, str):
            return Template(data).safe_substitute(substitutions)
        else:
            return data

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration"""
        for env_var, config_path in ENV_VAR_MAPPING.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                self._set_nested_value(config_data, config_path, env_value)

        return config_data

    def _set_nested_value(self, data: Dict[str, Any], path: str, value: str) -> None:
        """Set nested dictionary value using dot notation path"""
        keys = path.split('.')
        current = data

        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            current = current[key]

        current[keys[-1]] = self._convert_env_value(value)

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable string to appropriate type"""
        if value.lower() in ('true', 'yes', 'on'):
            return True
        elif value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if '.' in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        return value

    def save_project_config(self, config: ProjectConfig) -> bool:
        """Save project configuration to disk"""
        try:
            config_dir = config.get_config_dir()
            config_file = config.get_config_file()

            config_dir.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)

            logger.info(f"Saved configuration to {config_file}")
            self.config_cache[str(config.path)] = config
            return True

        except OSError as e:
            logger.error(f"Failed to save config for {config.path}: {e}")
            return False

    def setup_project(
        self,
        project_path: Union[str, Path],
        project_name: Optional[str] = None,
        overwrite: bool = False
    ) -> ProjectConfig:
        """Create and save the configuration of a project"""
        project_path = Path(project_path).resolve()

        if not project_path.exists():
            raise ValueError(f"Project path does not exist: {project_path}")

        if not project_name:
            project_name = self._safe_project_name(project_path.name)

        logger.info(f"Setting up project '{project_name}' at {project_path}")

        if overwrite:
            self.config_cache.pop(str(project_path), None)
            config = self._create_project_config(project_path, project_name)
        else:
            config = self.load_project_config(project_path, project_name)
            if config.is_initialized:
                logger.info(f"Project already initialized at {project_path}")
                return config

        self.save_project_config(config)
        logger.info(f"Project setup complete for '{project_name}'")
        return config

    def clear_cache(self) -> None:
        """Clear configuration cache"""
        self.config_cache.clear()
        logger.info("Configuration cache cleared")
