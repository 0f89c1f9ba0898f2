"""Tests for per-repository LFS settings."""

import json

import pytest

from bitbucket_migrate.config.lfs_settings import (
    LFSRepositoryRule,
    LFSSettings,
    RuleShape,
)


class TestLFSSettings:
    """Test LFS settings loading."""

    def test_missing_file_is_empty(self, tmp_path):
        """Test a missing settings file means no rules."""
        settings = LFSSettings.load(str(tmp_path / 'nope.json'))

        assert settings.repositories == {}
        assert settings.lookup('anything') is None

    def test_no_path_is_empty(self):
        """Test no configured path means no rules."""
        assert LFSSettings.load(None).repositories == {}

    def test_load_json(self, tmp_path):
        """Test the JSON layout with camelCase keys."""
        path = tmp_path / 'lfs-settings.json'
        path.write_text(
            json.dumps(
                {
                    'repositories': {
                        'game-assets': {
                            'files': ['art/hero.psd'],
                            'patterns': ['**/*.fbx'],
                            'autoDetect': True,
                        },
                        'docs': {},
                    }
                }
            )
        )

        settings = LFSSettings.load(str(path))
        rule = settings.lookup('game-assets')

        assert rule.files == ['art/hero.psd']
        assert rule.patterns == ['**/*.fbx']
        assert rule.auto_detect is True
        assert settings.has_rule('docs')
        assert not settings.has_rule('website')

    def test_load_yaml(self, tmp_path):
        """Test the same layout written as YAML."""
        path = tmp_path / 'lfs-settings.yaml'
        path.write_text(
            'repositories:\n'
            '  media:\n'
            '    patterns:\n'
            '      - "*.mp4"\n'
        )

        rule = LFSSettings.load(str(path)).lookup('media')

        assert rule.patterns == ['*.mp4']
        assert rule.auto_detect is False

    def test_empty_file(self, tmp_path):
        """Test an empty file yields no rules."""
        path = tmp_path / 'lfs-settings.json'
        path.write_text('')

        assert LFSSettings.load(str(path)).repositories == {}

    def test_unknown_rule_key_rejected(self, tmp_path):
        """Test misspelled keys are reported instead of ignored."""
        path = tmp_path / 'lfs-settings.json'
        path.write_text(json.dumps({'repositories': {'x': {'file': ['a']}}}))

        with pytest.raises(ValueError):
            LFSSettings.load(str(path))

    def test_not_a_mapping_rejected(self, tmp_path):
        """Test a top level list is rejected."""
        path = tmp_path / 'lfs-settings.json'
        path.write_text('[1, 2]')

        with pytest.raises(ValueError):
            LFSSettings.load(str(path))


class TestLFSRepositoryRule:
    """Test rule shapes."""

    def test_shapes(self):
        """Test each populated field contributes a shape."""
        rule = LFSRepositoryRule(files=['a'], patterns=['*.b'], auto_detect=True)

        assert rule.shapes == frozenset(
            {
                RuleShape.EXPLICIT_FILES,
                RuleShape.PATTERN_BASED,
                RuleShape.AUTO_DETECT_OPT_IN,
            }
        )

    def test_empty_rule_has_no_shapes(self):
        """Test an empty entry has no shapes."""
        assert LFSRepositoryRule().shapes == frozenset()
