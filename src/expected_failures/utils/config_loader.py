import json
import logging
import os
import re

import yaml

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Loads a YAML or JSON configuration file and resolves ${env:NAME} references.
    A default may follow a pipe: ${env:REDIS_HOST|localhost}.
    """

    REF_PATTERN = re.compile(r"\$\{([^:}]+):([^}]+)\}")

    def __init__(self, config_path: str):
        self.config_path = config_path
        file_extension = os.path.splitext(config_path)[1].lower()

        try:
            with open(config_path, "r") as file:
                if file_extension in (".yaml", ".yml"):
                    self.config = yaml.safe_load(file)
                elif file_extension == ".json":
                    self.config = json.load(file)
                else:
                    raise ValueError(
                        f"Unsupported configuration file format: {file_extension}"
                    )
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValueError(
                f"Error parsing configuration file {config_path}: {e}"
            ) from e

        if self.config is None:
            # Empty file
            self.config = {}
        elif not isinstance(self.config, dict):
            raise ValueError(
                f"Configuration file {config_path} must contain a mapping at the top level."
            )
        else:
            self.config = self._resolve_references(self.config)

    @classmethod
    def from_dict(cls, data: dict) -> "ConfigLoader":
        """Builds a loader around an in-memory mapping (references are still resolved)."""
        loader = cls.__new__(cls)
        loader.config_path = None
        loader.config = loader._resolve_references(dict(data))
        return loader

    def _resolve_references(self, data):
        if isinstance(data, dict):
            return {k: self._resolve_references(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [self._resolve_references(i) for i in data]
        elif isinstance(data, str):
            resolved_string = data
            while True:
                match = self.REF_PATTERN.search(resolved_string)
                if not match:
                    break

                ref_type, ref_key = match.groups()
                if ref_type != "env":
                    logger.warning(
                        f"Unsupported reference type '{ref_type}' in '{resolved_string}'. Skipping."
                    )
                    break

                name, _, default = ref_key.partition("|")
                ref_value = os.getenv(name)
                if ref_value is None:
                    if not default:
                        logger.warning(
                            f"Environment variable '{name}' not found, replacing with empty string."
                        )
                    ref_value = default

                resolved_string = resolved_string.replace(match.group(0), str(ref_value))

            return resolved_string

        return data

    def get(self, key, default=None):
        """Dotted-path lookup: get('redis.port', 6379)."""
        val = self.config
        for k in key.split("."):
            if not isinstance(val, dict):
                return default
            val = val.get(k)
            if val is None:
                return default
        return val
