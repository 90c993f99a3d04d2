import pytest

from jobpilot.config import Settings, load_settings
from jobpilot.errors import ConfigurationError


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("per_run_cap: 5\ntimezone: Europe/Berlin\nbrowser_enabled: false\nai_min_interval_seconds: 1.5\n")
    return path


def test_yaml_values_load(yaml_file):
    settings = load_settings(yaml_file, environ={})
    assert settings.per_run_cap == 5
    assert settings.timezone == "Europe/Berlin"
    assert settings.browser_enabled is False
    assert settings.ai_min_interval_seconds == 1.5
    assert settings.daily_run_hour == Settings().daily_run_hour


def test_environment_overrides_yaml(yaml_file):
    settings = load_settings(yaml_file, environ={"PER_RUN_CAP": "2", "BROWSER_ENABLED": "yes", "TIMEZONE": " "})
    assert settings.per_run_cap == 2
    assert settings.browser_enabled is True
    assert settings.timezone == "Europe/Berlin"


def test_model_alias(tmp_path):
    missing = tmp_path / "none.yaml"
    assert load_settings(missing, environ={"GROQ_LLM_MODEL": "llama-3.1-8b-instant"}).groq_model == "llama-3.1-8b-instant"
    both = {"GROQ_MODEL": "primary", "GROQ_LLM_MODEL": "alias"}
    assert load_settings(missing, environ=both).groq_model == "primary"


def test_invalid_number_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "none.yaml", environ={"PER_RUN_CAP": "three"})


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigurationError):
        load_settings(path, environ={})


def test_require_ai():
    with pytest.raises(ConfigurationError):
        Settings().require_ai()
    Settings(groq_api_key="gsk_test").require_ai()
