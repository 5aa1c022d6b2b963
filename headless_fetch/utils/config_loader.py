#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration Loader

Reads crawler settings from a YAML file and validates them:

    timeout: 30000
    max_concurrency: 4
    ignore_invalid_ssl: true
    proxy:
      hostname: proxy.internal
      port: 3128
      user: crawler
      pass: secret
    authentication:
      - domain: intranet.example.com
        type: basic
        username: alice
        password: wonderland
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import jsonschema
import yaml

from headless_fetch.core.exceptions import ConfigError

logger = logging.getLogger('config_loader')

CONFIG_SCHEMA = {
    'type': 'object',
    'additionalProperties': False,
    'properties': {
        'timeout': {'type': 'integer', 'minimum': 1},
        'max_concurrency': {'type': 'integer', 'minimum': 1},
        'ignore_invalid_ssl': {'type': 'boolean'},
        'headless': {'type': 'boolean'},
        'proxy': {
            'type': 'object',
            'additionalProperties': False,
            'required': ['hostname', 'port'],
            'properties': {
                'hostname': {'type': 'string', 'minLength': 1},
                'port': {'type': 'integer', 'minimum': 1, 'maximum': 65535},
                'user': {'type': 'string'},
                'pass': {'type': 'string'},
            },
        },
        'authentication': {
            'type': 'array',
            'items': {
                'type': 'object',
                'required': ['domain', 'type'],
                'oneOf': [
                    {
                        'properties': {'type': {'const': 'basic'}},
                        'required': ['username', 'password'],
                    },
                    {
                        'properties': {'type': {'const': 'x509'}},
                        'required': ['certificate_path'],
                    },
                ],
                'properties': {
                    'domain': {'type': 'string', 'minLength': 1},
                    'type': {'enum': ['basic', 'x509']},
                    'username': {'type': 'string'},
                    'password': {'type': 'string'},
                    'certificate_path': {'type': 'string'},
                    'certificate_passphrase': {'type': 'string'},
                },
            },
        },
    },
}


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate a configuration mapping against CONFIG_SCHEMA.
    
    Raises:
        ConfigError: If the configuration is invalid
    """
    try:
        jsonschema.validate(instance=config, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = '.'.join(str(part) for part in e.absolute_path) or '<root>'
        raise ConfigError(f"Invalid configuration at {location}: {e.message}") from e


def load_config(path: str) -> Dict[str, Any]:
    """
    Load and validate a YAML configuration file.
    
    Args:
        path: Path to the YAML file
        
    Returns:
        Configuration dictionary (empty for an empty file)
        
    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse configuration file {path}: {e}") from e

    if config is None:
        config = {}
    validate_config(config)
    logger.info(f"Loaded configuration from {path}")
    return config


def crawler_kwargs(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a configuration mapping into Crawler keyword arguments.
    """
    kwargs = {key: config[key] for key in ('timeout', 'max_concurrency', 'ignore_invalid_ssl', 'headless')
              if key in config}
    proxy: Optional[Dict[str, Any]] = config.get('proxy')
    if proxy:
        kwargs.update(
            use_proxy=True,
            proxy_hostname=proxy['hostname'],
            proxy_port=proxy['port'],
            proxy_user=proxy.get('user'),
            proxy_pass=proxy.get('pass'),
        )
    return kwargs


def authentication_entries(config: Dict[str, Any]) -> List[Tuple[str, Dict[str, Any]]]:
    """
    List the configured authentication entries as (type, entry) pairs.
    """
    return [(entry['type'], entry) for entry in config.get('authentication', [])]
