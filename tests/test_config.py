"""
Tests for configuration objects and their validation.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import json
import warnings

import pytest

from oomdp.config import DPConfig, DynamicWeightingConfig, LSPIConfig, MLIRLConfig, TDLambdaConfig
from oomdp.errors import ConfigurationError, OOMDPError


class TestValidation:

    @pytest.mark.parametrize("gamma", [-0.1, 1.01, float("nan")])
    def test_bad_discount(self, gamma):
        with pytest.raises(ConfigurationError):
            DPConfig(gamma=gamma)

    def test_dp_limits(self):
        with pytest.raises(ConfigurationError):
            DPConfig(max_delta=-1.0)
        with pytest.raises(ConfigurationError):
            DPConfig(max_iterations=-1)

    def test_dynamic_weighting(self):
        with pytest.raises(ConfigurationError):
            DynamicWeightingConfig(epsilon=0.5)
        with pytest.raises(ConfigurationError):
            DynamicWeightingConfig(expected_depth=0)
        with pytest.warns(UserWarning):
            DynamicWeightingConfig(epsilon=500.0)

    def test_td_lambda(self):
        with pytest.raises(ConfigurationError):
            TDLambdaConfig(lambda_=-0.1)
        with pytest.warns(UserWarning):
            TDLambdaConfig(learning_rate=2.0)

    def test_lspi(self):
        with pytest.raises(ConfigurationError):
            LSPIConfig(identity_scalar=0.0)
        with pytest.raises(ConfigurationError):
            LSPIConfig(epsilon=1.5)
        with pytest.raises(ConfigurationError):
            LSPIConfig(max_change=-1.0)

    def test_mlirl(self):
        with pytest.raises(ConfigurationError):
            MLIRLConfig(learning_rate=0.0)
        with pytest.raises(ConfigurationError):
            MLIRLConfig(boltzmann_beta=-1.0)

    def test_configuration_error_hierarchy(self):
        with pytest.raises(ValueError):
            DPConfig(gamma=2.0)
        with pytest.raises(OOMDPError):
            DPConfig(gamma=2.0)

    def test_defaults_are_valid(self):
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            DPConfig()
            DynamicWeightingConfig()
            TDLambdaConfig()
            LSPIConfig()
            MLIRLConfig()


class TestSerialization:

    def test_dict_round_trip_through_json(self):
        config = LSPIConfig(gamma=0.9, max_iterations=12, epsilon=0.05)
        restored = LSPIConfig.from_dict(json.loads(json.dumps(config.to_dict())))
        assert restored == config

    def test_unknown_keys_warn(self):
        with pytest.warns(UserWarning, match="unknown"):
            config = DPConfig.from_dict({"gamma": 0.5, "learning_rate": 0.1})
        assert config.gamma == 0.5

    def test_from_dict_validates(self):
        with pytest.raises(ConfigurationError):
            TDLambdaConfig.from_dict({"lambda_": 3.0})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
