"""
Configuration management for SkillSwap.

This module provides configuration management including:
- .env file support for environment variables
- Settings persistence and validation
- Default values and type checking
- Conversion of the matching section into engine settings
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional, List
from dotenv import load_dotenv, set_key, unset_key
from rich.console import Console
from rich.table import Table

from .models import MatchingConfig, WeightVector


class ConfigManager:
    """Manages SkillSwap configuration settings and .env files."""

    DEFAULT_CONFIG = {
        # Embedding provider settings
        "embeddings": {
            "provider": "ollama",
            "host": "localhost",
            "port": 11434,
            "model": "nomic-embed-text",
            "timeout": 10,
            "retry_after_seconds": 300,
            "cache_size": 4096
        },

        # Matching settings
        "matching": {
            "w1": 0.30,
            "w2": 0.30,
            "w3": 0.15,
            "w4": 0.15,
            "w5": 0.10,
            "min_match_score": 0.0,
            "max_results": 50,
            "bidirectional_min_score": 0.3,
            "max_workers": 1,
            "verbose": False
        },

        # Export settings
        "export": {
            "default_format": "csv",
            "output_directory": ".",
            "score_precision": 3
        },

        # CLI settings
        "cli": {
            "default_table_limit": 20
        }
    }

    VALID_PROVIDERS = ("ollama", "none")
    VALID_EXPORT_FORMATS = ("csv", "json")

    def __init__(self, config_dir: str = "."):
        self.config_dir = Path(config_dir)
        self.env_file = self.config_dir / ".env"
        self.config_file = self.config_dir / "skillswap.config.json"
        self.console = Console()

        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from .env and config files."""
        config = self._deep_copy_dict(self.DEFAULT_CONFIG)

        if self.env_file.exists():
            load_dotenv(str(self.env_file))

        if self.config_file.exists():
            try:
                with open(self.config_file, 'r') as f:
                    file_config = json.load(f)
                config = self._merge_configs(config, file_config)
            except (json.JSONDecodeError, FileNotFoundError) as e:
                self.console.print(f"[yellow]Warning: Could not load config file: {e}[/yellow]")

        config = self._apply_env_overrides(config)

        return config

    def _deep_copy_dict(self, d: Dict[str, Any]) -> Dict[str, Any]:
        """Deep copy a dictionary."""
        result = {}
        for key, value in d.items():
            if isinstance(value, dict):
                result[key] = self._deep_copy_dict(value)
            elif isinstance(value, list):
                result[key] = value.copy()
            else:
                result[key] = value
        return result

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Merge two configuration dictionaries."""
        result = self._deep_copy_dict(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        env_mappings = {
            # Embedding settings
            "SKILLSWAP_EMBEDDING_PROVIDER": ("embeddings", "provider"),
            "SKILLSWAP_OLLAMA_HOST": ("embeddings", "host"),
            "SKILLSWAP_OLLAMA_PORT": ("embeddings", "port"),
            "SKILLSWAP_OLLAMA_MODEL": ("embeddings", "model"),
            "SKILLSWAP_EMBEDDING_TIMEOUT": ("embeddings", "timeout"),
            "SKILLSWAP_EMBEDDING_RETRY_AFTER": ("embeddings", "retry_after_seconds"),
            "SKILLSWAP_EMBEDDING_CACHE_SIZE": ("embeddings", "cache_size"),

            # Matching settings
            "SKILLSWAP_WEIGHT_OFFER_WANT": ("matching", "w1"),
            "SKILLSWAP_WEIGHT_WANT_OFFER": ("matching", "w2"),
            "SKILLSWAP_WEIGHT_LOCATION": ("matching", "w3"),
            "SKILLSWAP_WEIGHT_LANGUAGE": ("matching", "w4"),
            "SKILLSWAP_WEIGHT_TRUST": ("matching", "w5"),
            "SKILLSWAP_MIN_MATCH_SCORE": ("matching", "min_match_score"),
            "SKILLSWAP_MAX_RESULTS": ("matching", "max_results"),
            "SKILLSWAP_BIDIRECTIONAL_MIN": ("matching", "bidirectional_min_score"),
            "SKILLSWAP_MAX_WORKERS": ("matching", "max_workers"),
            "SKILLSWAP_VERBOSE": ("matching", "verbose"),

            # Export settings
            "SKILLSWAP_EXPORT_FORMAT": ("export", "default_format"),
            "SKILLSWAP_EXPORT_DIR": ("export", "output_directory"),
            "SKILLSWAP_SCORE_PRECISION": ("export", "score_precision"),

            # CLI settings
            "SKILLSWAP_TABLE_LIMIT": ("cli", "default_table_limit")
        }

        for env_var, (section, key) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                # Type conversion based on default value type
                default_value = self.DEFAULT_CONFIG[section][key]
                try:
                    if isinstance(default_value, bool):
                        config[section][key] = value.lower() in ('true', '1', 'yes', 'on')
                    elif isinstance(default_value, int):
                        config[section][key] = int(value)
                    elif isinstance(default_value, float):
                        config[section][key] = float(value)
                    else:
                        config[section][key] = value
                except ValueError:
                    self.console.print(f"[yellow]Warning: Invalid value for {env_var}: {value}[/yellow]")

        return config

    def get(self, section: str, key: Optional[str] = None) -> Any:
        """Get configuration value."""
        if key is None:
            return self.config.get(section, {})
        return self.config.get(section, {}).get(key)

    def set(self, section: str, key: str, value: Any) -> bool:
        """Set configuration value."""
        if section not in self.config:
            self.config[section] = {}

        if section in self.DEFAULT_CONFIG:
            if key not in self.DEFAULT_CONFIG[section]:
                self.console.print(f"[yellow]Warning: Unknown config key '{section}.{key}'[/yellow]")

        self.config[section][key] = value
        return self.save_config()

    def save_config(self) -> bool:
        """Save current configuration to JSON file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w') as f:
                json.dump(self.config, f, indent=2)
            return True
        except OSError as e:
            self.console.print(f"[red]Error saving config: {e}[/red]")
            return False

    def set_env_var(self, key: str, value: str) -> bool:
        """Set environment variable in .env file."""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            set_key(str(self.env_file), key, value)
            os.environ[key] = value
            self.config = self._load_config()
            return True
        except OSError as e:
            self.console.print(f"[red]Error setting environment variable: {e}[/red]")
            return False

    def unset_env_var(self, key: str) -> bool:
        """Remove environment variable from .env file."""
        try:
            if self.env_file.exists():
                unset_key(str(self.env_file), key)
            os.environ.pop(key, None)
            self.config = self._load_config()
            return True
        except OSError as e:
            self.console.print(f"[red]Error removing environment variable: {e}[/red]")
            return False

    def reset_to_defaults(self) -> bool:
        """Reset configuration to default values."""
        self.config = self._deep_copy_dict(self.DEFAULT_CONFIG)
        return self.save_config()

    def validate_config(self) -> List[str]:
        """Validate current configuration and return list of issues."""
        issues = []

        provider = self.get("embeddings", "provider")
        if provider not in self.VALID_PROVIDERS:
            issues.append(f"Invalid embedding provider: {provider}")

        port = self.get("embeddings", "port")
        if not isinstance(port, int) or port < 1 or port > 65535:
            issues.append(f"Invalid Ollama port: {port}")

        timeout = self.get("embeddings", "timeout")
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            issues.append(f"Invalid embedding timeout: {timeout}")

        for key in ("w1", "w2", "w3", "w4", "w5"):
            weight = self.get("matching", key)
            if not isinstance(weight, (int, float)) or weight < 0:
                issues.append(f"Invalid weight {key}: {weight}")

        for key in ("min_match_score", "bidirectional_min_score"):
            threshold = self.get("matching", key)
            if not isinstance(threshold, (int, float)) or threshold < 0 or threshold > 1:
                issues.append(f"Invalid {key.replace('_', ' ')}: {threshold}")

        max_results = self.get("matching", "max_results")
        if not isinstance(max_results, int) or max_results < 1:
            issues.append(f"Invalid max results: {max_results}")

        max_workers = self.get("matching", "max_workers")
        if not isinstance(max_workers, int) or max_workers < 1:
            issues.append(f"Invalid max workers: {max_workers}")

        export_format = self.get("export", "default_format")
        if export_format not in self.VALID_EXPORT_FORMATS:
            issues.append(f"Invalid export format: {export_format}")

        return issues

    def get_weights(self) -> WeightVector:
        """Build the configured weight vector."""
        section = self.get("matching")
        return WeightVector(*(float(section[key]) for key in ("w1", "w2", "w3", "w4", "w5")))

    def get_matching_config(self) -> MatchingConfig:
        """Build request-time matching settings from the matching section."""
        return MatchingConfig(
            weights=self.get_weights(),
            min_match_score=float(self.get("matching", "min_match_score")),
            max_results=int(self.get("matching", "max_results"))
        )

    def display_config(self, section: Optional[str] = None) -> None:
        """Display current configuration in a formatted table."""
        self.console.print("[bold cyan]SkillSwap Configuration[/bold cyan]")
        self.console.print()

        for section_name, section_data in self.config.items():
            if section and section_name != section:
                continue
            table = Table(title=f"{section_name.title()} Settings")
            table.add_column("Setting", style="cyan")
            table.add_column("Value", style="green")
            table.add_column("Type", style="dim")

            for key, value in section_data.items():
                value_str = str(value)
                if isinstance(value, bool):
                    value_str = "✓" if value else "✗"
                elif isinstance(value, str) and len(value) > 50:
                    value_str = value[:47] + "..."

                table.add_row(
                    key.replace("_", " ").title(),
                    value_str,
                    type(value).__name__
                )

            self.console.print(table)
            self.console.print()

    def get_env_template(self) -> str:
        """Generate a template .env file with all available settings."""
        template_lines = [
            "# SkillSwap Configuration",
            "# Copy this file to .env and modify as needed",
            "",
            "# Embedding Settings",
            "# SKILLSWAP_EMBEDDING_PROVIDER=ollama",
            "# SKILLSWAP_OLLAMA_HOST=localhost",
            "# SKILLSWAP_OLLAMA_PORT=11434",
            "# SKILLSWAP_OLLAMA_MODEL=nomic-embed-text",
            "# SKILLSWAP_EMBEDDING_TIMEOUT=10",
            "# SKILLSWAP_EMBEDDING_RETRY_AFTER=300",
            "# SKILLSWAP_EMBEDDING_CACHE_SIZE=4096",
            "",
            "# Matching Settings",
            "# SKILLSWAP_WEIGHT_OFFER_WANT=0.30",
            "# SKILLSWAP_WEIGHT_WANT_OFFER=0.30",
            "# SKILLSWAP_WEIGHT_LOCATION=0.15",
            "# SKILLSWAP_WEIGHT_LANGUAGE=0.15",
            "# SKILLSWAP_WEIGHT_TRUST=0.10",
            "# SKILLSWAP_MIN_MATCH_SCORE=0.0",
            "# SKILLSWAP_MAX_RESULTS=50",
            "# SKILLSWAP_BIDIRECTIONAL_MIN=0.3",
            "# SKILLSWAP_MAX_WORKERS=1",
            "# SKILLSWAP_VERBOSE=false",
            "",
            "# Export Settings",
            "# SKILLSWAP_EXPORT_FORMAT=csv",
            "# SKILLSWAP_EXPORT_DIR=.",
            "# SKILLSWAP_SCORE_PRECISION=3",
            "",
            "# CLI Settings",
            "# SKILLSWAP_TABLE_LIMIT=20",
            ""
        ]

        return "\n".join(template_lines)

    def export_env_template(self, output_path: Optional[str] = None) -> bool:
        """Export .env template to file."""
        try:
            template_path = output_path or ".env.template"
            with open(template_path, 'w') as f:
                f.write(self.get_env_template())
            self.console.print(f"[green]✓ .env template exported to: {template_path}[/green]")
            return True
        except OSError as e:
            self.console.print(f"[red]Error exporting template: {e}[/red]")
            return False

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection information for the embedding provider."""
        return {
            "embeddings": {
                "provider": self.get("embeddings", "provider"),
                "host": self.get("embeddings", "host"),
                "port": self.get("embeddings", "port"),
                "url": f"http://{self.get('embeddings', 'host')}:{self.get('embeddings', 'port')}",
                "model": self.get("embeddings", "model")
            }
        }


def get_config_manager() -> ConfigManager:
    """Get global configuration manager instance."""
    if not hasattr(get_config_manager, '_instance'):
        get_config_manager._instance = ConfigManager()
    return get_config_manager._instance


def reload_config(config_dir: str = "."):
    """Reload configuration from files."""
    get_config_manager._instance = ConfigManager(config_dir)
    return get_config_manager()
