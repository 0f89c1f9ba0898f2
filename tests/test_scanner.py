"""Tests for working tree scanning."""

import os

import pytest

from bitbucket_migrate.config.config import LFSConfig
from bitbucket_migrate.lfs.scanner import WorkingTreeScanner, is_ignored

from conftest import make_file


class TestIsIgnored:
    """Test ignore pattern matching."""

    def test_basename_patterns_match_at_any_depth(self):
        """Test patterns without a slash match file names."""
        assert is_ignored('build/output.log', ['*.log'])
        assert is_ignored('deep/dir/.DS_Store', ['.DS_Store'])
        assert is_ignored('.env.local', ['.env*'])

    def test_directory_patterns(self):
        """Test directory globs match paths below them."""
        assert is_ignored('node_modules/pkg/big.bin', ['node_modules/**'])
        assert not is_ignored('src/node_modules.txt', ['node_modules/**'])

    def test_not_ignored(self):
        """Test unrelated paths are kept."""
        assert not is_ignored('assets/video.mp4', ['*.log', 'node_modules/**'])


class TestWorkingTreeScanner:
    """Test working tree scanner."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config = LFSConfig(threshold='1KB', settings_file=None)
        self.scanner = WorkingTreeScanner(self.config)

    def test_scan_strictly_above_threshold(self, tmp_path):
        """Test only files larger than the threshold are reported."""
        make_file(tmp_path, 'big.bin', 1025)
        make_file(tmp_path, 'exact.bin', 1024)
        make_file(tmp_path, 'small.txt', 10)
        make_file(tmp_path, 'nested/dir/video.mp4', 4096)

        assert self.scanner.scan(str(tmp_path)) == ['big.bin', 'nested/dir/video.mp4']

    def test_scan_uses_default_ignores(self, tmp_path):
        """Test VCS metadata and default ignore patterns are skipped."""
        make_file(tmp_path, '.git/objects/pack/pack.pack', 8192)
        make_file(tmp_path, 'node_modules/dep/blob.bin', 8192)
        make_file(tmp_path, 'logs/server.log', 8192)
        make_file(tmp_path, '.env.production', 8192)
        make_file(tmp_path, 'data/model.bin', 8192)

        assert self.scanner.scan(str(tmp_path)) == ['data/model.bin']

    def test_scan_custom_ignore(self, tmp_path):
        """Test configured ignore patterns replace the defaults."""
        config = LFSConfig(threshold='1KB', ignore=['*.bin'], settings_file=None)
        make_file(tmp_path, 'model.bin', 8192)
        make_file(tmp_path, 'server.log', 8192)

        assert WorkingTreeScanner(config).scan(str(tmp_path)) == ['server.log']

    def test_scan_empty_tree(self, tmp_path):
        """Test an empty directory yields no files."""
        assert self.scanner.scan(str(tmp_path)) == []

    @pytest.mark.skipif(not hasattr(os, 'symlink'), reason='symlinks unsupported')
    def test_scan_skips_symlinks(self, tmp_path):
        """Test symbolic links are not followed or reported."""
        outside = tmp_path / 'outside'
        make_file(outside, 'huge.bin', 8192)
        repo = tmp_path / 'repo'
        repo.mkdir()
        os.symlink(outside / 'huge.bin', repo / 'link.bin')
        os.symlink(outside, repo / 'linked-dir')

        assert self.scanner.scan(str(repo)) == []

    def test_expand_patterns(self, tmp_path):
        """Test glob patterns expand to files relative to the root."""
        make_file(tmp_path, 'art/cover.psd', 10)
        make_file(tmp_path, 'art/raw/layer.psd', 10)
        make_file(tmp_path, 'docs/readme.md', 10)
        make_file(tmp_path, '.git/hooks/sample.psd', 10)

        result = self.scanner.expand_patterns(str(tmp_path), ['**/*.psd'])

        assert result == ['art/cover.psd', 'art/raw/layer.psd']

    def test_expand_patterns_ignores_size(self, tmp_path):
        """Test pattern matches are kept regardless of size."""
        make_file(tmp_path, 'fonts/tiny.ttf', 1)

        assert self.scanner.expand_patterns(str(tmp_path), ['fonts/*.ttf']) == [
            'fonts/tiny.ttf'
        ]

    def test_expand_patterns_no_match(self, tmp_path):
        """Test patterns without matches contribute nothing."""
        make_file(tmp_path, 'a.txt', 1)

        assert self.scanner.expand_patterns(str(tmp_path), ['*.zip']) == []

    def test_expand_patterns_skips_patterns_outside_repository(self, tmp_path):
        """Test parent or absolute patterns are dropped without losing others."""
        repo = tmp_path / 'repo'
        make_file(repo, 'art/cover.psd', 10)
        make_file(tmp_path, 'outside.psd', 10)

        result = self.scanner.expand_patterns(
            str(repo), ['../*.psd', str(tmp_path / '*.psd'), 'art/*.psd']
        )

        assert result == ['art/cover.psd']
