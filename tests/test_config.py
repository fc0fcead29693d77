"""Tests for voidex.core.config."""

import yaml

from voidex.core.config import Config, load_config
from voidex.core.config.schema import OPENROUTER_API_BASE


def test_defaults():
    cfg = Config()
    assert cfg.assistant.name == "VoidEx"
    assert cfg.assistant.max_steps == 50
    assert cfg.assistant.recursion_limit == 10_000
    assert cfg.retry.retries == 3
    assert cfg.retry.initial_delay == 2.0
    assert cfg.tools.shell.timeout == 300


def test_from_dict():
    cfg = Config(
        assistant={"name": "TestBot", "model": "openai/gpt-4o"},
        providers={"anthropic": {"api_key": "sk-test"}},
    )
    assert cfg.assistant.name == "TestBot"
    assert cfg.providers.anthropic.api_key == "sk-test"


def test_env_override(monkeypatch):
    monkeypatch.setenv("VOIDEX_ASSISTANT__MAX_STEPS", "7")
    cfg = Config()
    assert cfg.assistant.max_steps == 7


def test_memory_path_expanded():
    cfg = Config(assistant={"memory_path": "~/notes/mem.md"})
    assert "~" not in str(cfg.memory_path)
    assert cfg.memory_path.name == "mem.md"


# --- Provider helpers ---

def test_get_api_key():
    cfg = Config(providers={"anthropic": {"api_key": "sk-ant"}})
    assert cfg.get_api_key("anthropic/claude-sonnet") == "sk-ant"
    assert cfg.get_api_key("mistral/small") is None


def test_get_api_key_openrouter_env_fallback(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")
    cfg = Config()
    assert cfg.get_api_key("openrouter/google/gemini") == "sk-or-env"


def test_get_api_key_config_wins_over_env(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-env")
    cfg = Config(providers={"openrouter": {"api_key": "sk-or-cfg"}})
    assert cfg.get_api_key("openrouter/google/gemini") == "sk-or-cfg"


def test_get_api_base():
    cfg = Config(providers={"openai": {"api_base": "http://localhost:8080"}})
    assert cfg.get_api_base("openrouter/x") == OPENROUTER_API_BASE
    assert cfg.get_api_base("openai/gpt-4o") == "http://localhost:8080"
    assert cfg.get_api_base("anthropic/claude") is None


# --- Loader ---

def test_load_yaml(tmp_path):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump({"assistant": {"name": "YamlBot", "max_steps": 12}}))
    cfg = load_config(f)
    assert cfg.assistant.name == "YamlBot"
    assert cfg.assistant.max_steps == 12


def test_load_from_env_path(tmp_path, monkeypatch):
    f = tmp_path / "custom.yaml"
    f.write_text(yaml.dump({"assistant": {"name": "EnvBot"}}))
    monkeypatch.setenv("VOIDEX_CONFIG", str(f))
    assert load_config().assistant.name == "EnvBot"


def test_load_missing(tmp_path):
    cfg = load_config(tmp_path / "nope.yaml")
    assert cfg.assistant.name == "VoidEx"


def test_load_empty_file(tmp_path):
    f = tmp_path / "config.yaml"
    f.write_text("")
    assert load_config(f).assistant.name == "VoidEx"
