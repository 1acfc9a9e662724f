"""Tests for the lockout policy model and its loader."""

import os
from datetime import timedelta
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from pin_lockout.common.config.lockout import LockoutConfig, load_lockout_config
from pin_lockout.common.exceptions import ConfigurationError

POLICY_ENV_VARS = (
    "PIN_MAX_ATTEMPTS",
    "PIN_LOCKOUT_DURATION_MINUTES",
    "PIN_MAX_LOCKOUT_MINUTES",
    "PIN_MANAGER_OVERRIDE_REQUIRED",
    "PIN_LOCKOUT_TIMEZONE",
    "PIN_EMERGENCY_UNLOCK_CODES",
)


@pytest.fixture
def clean_env():
    """Environment without any lockout policy variables."""
    env = {k: v for k, v in os.environ.items() if k not in POLICY_ENV_VARS}
    with patch.dict(os.environ, env, clear=True):
        yield


class TestLockoutConfigDefaults:
    """Tests for default policy values."""
    
    def test_defaults(self):
        """Test the documented defaults."""
        config = LockoutConfig()
        
        assert config.max_attempts == 5
        assert config.base_lockout_minutes == 15
        assert config.max_lockout_minutes == 1440
        assert config.progressive_multiplier == 2.0
        assert config.reset_period_minutes == 60
        assert config.emergency_unlock_codes == ()
        assert config.manager_override_required is True
        assert config.timezone is None
    
    def test_duration_properties(self):
        """Test minute fields are exposed as timedeltas."""
        config = LockoutConfig()
        
        assert config.base_lockout_duration == timedelta(minutes=15)
        assert config.max_lockout_duration == timedelta(hours=24)
        assert config.reset_period == timedelta(hours=1)
    
    def test_config_is_frozen(self):
        """Test the policy cannot be mutated after construction."""
        config = LockoutConfig()
        with pytest.raises(PydanticValidationError):
            config.max_attempts = 7


class TestLockoutConfigValidation:
    """Tests for policy bounds."""
    
    @pytest.mark.parametrize("value", [2, 11, 0])
    def test_max_attempts_bounds(self, value):
        """Test max_attempts must be within 3..10."""
        with pytest.raises(PydanticValidationError):
            LockoutConfig(max_attempts=value)
    
    @pytest.mark.parametrize("value", [4, 61])
    def test_base_lockout_bounds(self, value):
        """Test base lockout must be within 5..60 minutes."""
        with pytest.raises(PydanticValidationError):
            LockoutConfig(base_lockout_minutes=value)
    
    def test_max_below_base_rejected(self):
        """Test the cap cannot be lower than the base duration."""
        with pytest.raises(PydanticValidationError):
            LockoutConfig(base_lockout_minutes=30, max_lockout_minutes=20)
    
    def test_blank_emergency_code_rejected(self):
        """Test blank emergency codes are rejected."""
        with pytest.raises(PydanticValidationError):
            LockoutConfig(emergency_unlock_codes=("ok-code", "  "))
    
    def test_unknown_timezone_rejected(self):
        """Test an unknown IANA zone is rejected."""
        with pytest.raises(PydanticValidationError):
            LockoutConfig(timezone="Mars/Olympus_Mons")
    
    def test_unknown_field_rejected(self):
        """Test typos in policy keys fail loudly."""
        with pytest.raises(PydanticValidationError):
            LockoutConfig(max_attempt=5)
    
    def test_tzinfo(self):
        """Test tzinfo resolves the configured zone."""
        assert LockoutConfig().tzinfo is None
        assert str(LockoutConfig(timezone="America/Toronto").tzinfo) == "America/Toronto"


class TestLoadLockoutConfig:
    """Tests for YAML, environment and override layering."""
    
    def test_load_from_yaml(self, tmp_path, clean_env):
        """Test values are read from an explicit YAML file."""
        path = tmp_path / "rules.yaml"
        path.write_text("max_attempts: 3\nbase_lockout_minutes: 10\n")
        
        config = load_lockout_config(path)
        
        assert config.max_attempts == 3
        assert config.base_lockout_minutes == 10
    
    def test_load_nested_lockout_key(self, tmp_path, clean_env):
        """Test settings may live under a top-level lockout key."""
        path = tmp_path / "rules.yaml"
        path.write_text("lockout:\n  max_attempts: 4\n")
        
        assert load_lockout_config(path).max_attempts == 4
    
    def test_empty_yaml_uses_defaults(self, tmp_path, clean_env):
        """Test an empty file yields the defaults."""
        path = tmp_path / "rules.yaml"
        path.write_text("")
        
        assert load_lockout_config(path) == LockoutConfig()
    
    def test_default_file_matches_defaults(self, clean_env):
        """Test the shipped config file carries the default policy."""
        config = load_lockout_config()
        
        assert config.max_attempts == 5
        assert config.base_lockout_minutes == 15
        assert config.emergency_unlock_codes == ()
    
    def test_env_overrides_yaml(self, tmp_path, clean_env):
        """Test environment variables win over the file."""
        path = tmp_path / "rules.yaml"
        path.write_text("max_attempts: 3\n")
        
        os.environ["PIN_MAX_ATTEMPTS"] = "8"
        os.environ["PIN_MANAGER_OVERRIDE_REQUIRED"] = "false"
        os.environ["PIN_EMERGENCY_UNLOCK_CODES"] = "alpha-1, beta-2 ,"
        config = load_lockout_config(path)
        
        assert config.max_attempts == 8
        assert config.manager_override_required is False
        assert config.emergency_unlock_codes == ("alpha-1", "beta-2")
    
    def test_explicit_overrides_win(self, tmp_path, clean_env):
        """Test explicit overrides are applied last."""
        path = tmp_path / "rules.yaml"
        path.write_text("max_attempts: 3\n")
        os.environ["PIN_MAX_ATTEMPTS"] = "8"
        
        config = load_lockout_config(path, overrides={"max_attempts": 6})
        
        assert config.max_attempts == 6
    
    def test_missing_file_raises(self, tmp_path, clean_env):
        """Test an explicit path that does not exist is an error."""
        with pytest.raises(ConfigurationError):
            load_lockout_config(tmp_path / "missing.yaml")
    
    def test_malformed_yaml_raises(self, tmp_path, clean_env):
        """Test a YAML syntax error is reported as ConfigurationError."""
        path = tmp_path / "rules.yaml"
        path.write_text("max_attempts: [3\n")
        
        with pytest.raises(ConfigurationError):
            load_lockout_config(path)
    
    def test_non_mapping_yaml_raises(self, tmp_path, clean_env):
        """Test a YAML list is rejected."""
        path = tmp_path / "rules.yaml"
        path.write_text("- 1\n- 2\n")
        
        with pytest.raises(ConfigurationError):
            load_lockout_config(path)
    
    def test_out_of_range_value_raises(self, tmp_path, clean_env):
        """Test validation errors surface as ConfigurationError with details."""
        path = tmp_path / "rules.yaml"
        path.write_text("max_attempts: 42\n")
        
        with pytest.raises(ConfigurationError) as exc_info:
            load_lockout_config(path)
        
        assert exc_info.value.code == "CONFIG_ERROR"
        assert exc_info.value.details["errors"]
