"""Tests for building request options from the export payload."""

import pytest

from designsynth.constants import TargetFramework
from designsynth.services.synthesis.config import SynthesisOptions


@pytest.mark.unit
class TestOptionsFromDict:

    def test_defaults(self):
        options = SynthesisOptions.from_dict({})
        assert options.name == 'app'
        assert options.target == TargetFramework.ANGULAR
        assert options.include_routing is True
        assert options.responsive_layout is True
        assert options.generate_components is True
        assert options.standalone is True

    def test_camel_case_keys(self):
        options = SynthesisOptions.from_dict({
            'projectName': 'Shop',
            'framework': 'Flutter',
            'includeRouting': False,
            'generateComponents': False,
        })
        assert options.name == 'Shop'
        assert options.target == TargetFramework.FLUTTER
        assert options.include_routing is False
        assert options.generate_components is False

    @pytest.mark.parametrize('raw', ['false', 'False', 'no', 'off', '0', ''])
    def test_false_strings(self, raw):
        options = SynthesisOptions.from_dict({
            'includeRouting': raw,
            'responsiveLayout': raw,
            'generate_components': raw,
            'standalone': raw,
        })
        assert options.include_routing is False
        assert options.responsive_layout is False
        assert options.generate_components is False
        assert options.standalone is False

    @pytest.mark.parametrize('raw', ['true', 'TRUE', 'yes', 'on', '1', ' true '])
    def test_true_strings(self, raw):
        options = SynthesisOptions.from_dict({'includeRouting': raw, 'standalone': raw})
        assert options.include_routing is True
        assert options.standalone is True

    def test_null_flag_uses_default(self):
        assert SynthesisOptions.from_dict({'includeRouting': None}).include_routing is True

    def test_unreadable_flag_rejected(self):
        with pytest.raises(ValueError, match='maybe'):
            SynthesisOptions.from_dict({'includeRouting': 'maybe'})

    def test_unknown_target_rejected(self):
        with pytest.raises(ValueError):
            SynthesisOptions.from_dict({'target': 'react'})
