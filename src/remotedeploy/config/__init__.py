"""Configuration loading for remote deployments.

Main components:
- ConfigLoader: Load and validate deployment YAML files
- Environment variable substitution (${VAR_NAME} pattern)
- .env file loading
"""

from remotedeploy.config.env_loader import load_env_file, substitute_env_vars
from remotedeploy.config.loader import ConfigLoader

__all__ = [
    "ConfigLoader",
    "substitute_env_vars",
    "load_env_file",
]
