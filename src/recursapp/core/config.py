"""3-layer configuration system for RecursApp.

Loads and merges configuration from:
1. Default settings (built-in)
2. User config (--config path or ~/.recursapp/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import yaml

USER_DIR = Path.home() / ".recursapp"
DEFAULT_CONFIG_PATH = USER_DIR / "config.yaml"

ROLES = [
    "Experto en derecho administrativo español",
    "Especialista en tráfico, movilidad y sanciones de tránsito",
    "Redactor jurídico de recursos y escritos legales",
]

DEFAULT_CONFIG: dict = {
    "ai": {
        "timeout_seconds": 50,
        "extraction": {"max_tokens": 1000, "temperature": 0.1},
        "draft": {"max_tokens": 3000, "temperature": 0.3},
        "merge": {"max_tokens": 4000, "temperature": 0.2},
    },
    "pipeline": {
        "request_budget_seconds": 120,
        "support_text_max_chars": 4000,
    },
    "providers": {
        "groq": {
            "family": "openai",
            "base_url": "https://api.groq.com/openai/v1",
            "api_key_env": "GROQ_API_KEY",
        },
        "openrouter": {
            "family": "openai",
            "base_url": "https://openrouter.ai/api/v1",
            "api_key_env": "OPENROUTER_API_KEY",
            "headers": {
                "HTTP-Referer": "https://recursapp.vercel.app",
                "X-Title": "RecursApp",
            },
        },
        "mistral": {
            "family": "openai",
            "base_url": "https://api.mistral.ai/v1",
            "api_key_env": "MISTRAL_API_KEY",
        },
        "openai": {
            "family": "openai",
            "base_url": "https://api.openai.com/v1",
            "api_key_env": "OPENAI_API_KEY",
        },
        "custom": {
            "family": "openai",
            "base_url": "http://localhost:11434/v1",
            "api_key_env": "CUSTOM_API_KEY",
        },
        "gemini": {
            "family": "gemini",
            "base_url": "https://generativelanguage.googleapis.com/v1beta",
            "api_key_env": "GEMINI_API_KEY",
        },
    },
    "agents": [
        {
            "id": "agent-1",
            "label": "Agente 1 · Análisis legal",
            "provider": "groq",
            "model": "llama-3.3-70b-versatile",
            "fallback_models": ["llama-3.1-8b-instant"],
            "role": ROLES[0],
            "color": "#f97316",
        },
        {
            "id": "agent-2",
            "label": "Agente 2 · Legislación específica",
            "provider": "gemini",
            "model": "gemini-2.0-flash",
            "fallback_models": ["gemini-1.5-flash"],
            "role": ROLES[1],
            "color": "#4285f4",
            "vision": True,
            "system_as_user": True,
        },
        {
            "id": "agent-3",
            "label": "Agente 3 · Redacción del recurso",
            "provider": "openrouter",
            "model": "google/gemma-3-27b-it:free",
            "role": ROLES[2],
            "color": "#8b5cf6",
            # Gemma rejects the system role
            "system_as_user": True,
        },
    ],
    "merge": {
        "strategy": "heuristic",
        "min_draft_chars": 100,
        "master": {
            "id": "master-primary",
            "label": "Fusionador principal",
            "provider": "gemini",
            "model": "gemini-2.5-flash",
            "role": "Abogado senior revisor",
            "color": "#c9a84c",
            "system_as_user": True,
        },
        "secondary": {
            "id": "master-secondary",
            "label": "Fusionador secundario",
            "provider": "openrouter",
            "model": "meta-llama/llama-3.3-70b-instruct:free",
            "role": "Abogado senior revisor",
            "color": "#9a7530",
        },
    },
    "deadlines": {
        "allegation_keywords": [
            "alegaciones",
            "incoación",
            "incoacion",
            "iniciación del procedimiento sancionador",
            "iniciacion del procedimiento sancionador",
            "20 días naturales",
            "20 dias naturales",
            "veinte días naturales",
            "veinte dias naturales",
        ],
        "allegation_days": 20,
        "allegation_legal_basis": "Art. 95.1 RDL 6/2015 (Ley sobre Tráfico y Seguridad Vial)",
        "reposition_months": 1,
        "reposition_legal_basis": "Arts. 123 y 124 Ley 39/2015 (recurso potestativo de reposición)",
    },
    "prompts": {
        "dir": "",
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_user_config(config_path: Optional[Path] = None) -> dict:
    """Load user configuration from YAML. Missing or unreadable files yield {}."""
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        content = path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        return yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError):
        return {}


def get_effective_config(
    config_path: Optional[Path] = None,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for an appeal run."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    user_config = load_user_config(config_path)
    if user_config:
        config = deep_merge(config, user_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    return config
