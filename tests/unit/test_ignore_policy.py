"""Unit tests for the gitignore-style ignore policy."""
from pathlib import Path

import pytest

from filepilot.ignore_policy import IgnorePolicy, IgnoreRule


class TestIgnoreRuleParse:

    @pytest.mark.parametrize('line', ['', '   ', '# comment', '/'])
    def test_blank_and_comment_lines(self, line):
        assert IgnoreRule.parse(line) is None

    def test_plain_pattern(self):
        rule = IgnoreRule.parse('*.log')
        assert rule.pattern == '*.log'
        assert not rule.negated
        assert not rule.dir_only
        assert not rule.anchored

    def test_negation(self):
        rule = IgnoreRule.parse('!keep.log')
        assert rule.negated
        assert rule.pattern == 'keep.log'

    def test_escaped_hash_and_bang(self):
        assert IgnoreRule.parse('\\#notes').pattern == '#notes'
        assert not IgnoreRule.parse('\\!important').negated

    def test_trailing_slash_is_dir_only(self):
        rule = IgnoreRule.parse('build/')
        assert rule.dir_only
        assert rule.pattern == 'build'
        assert not rule.anchored

    def test_inner_slash_anchors(self):
        rule = IgnoreRule.parse('/docs/generated')
        assert rule.anchored
        assert rule.pattern == 'docs/generated'


class TestRuleMatching:

    def test_unanchored_matches_name_anywhere(self):
        rule = IgnoreRule.parse('*.pyc')
        assert rule.matches(Path('/p/a/b/x.pyc'), is_dir=False)
        assert not rule.matches(Path('/p/a/b/x.py'), is_dir=False)

    def test_dir_only_skips_files(self):
        rule = IgnoreRule.parse('cache/')
        assert rule.matches(Path('/p/cache'), is_dir=True)
        assert not rule.matches(Path('/p/cache'), is_dir=False)

    def test_anchored_relative_to_base(self, tmp_path):
        rule = IgnoreRule.parse('docs/gen', base=tmp_path)
        assert rule.matches(tmp_path / 'docs' / 'gen', is_dir=True)
        assert not rule.matches(tmp_path / 'sub' / 'docs' / 'gen', is_dir=True)

    def test_double_star_prefix(self, tmp_path):
        rule = IgnoreRule.parse('**/fixtures', base=tmp_path)
        assert rule.matches(tmp_path / 'fixtures', is_dir=True)
        assert rule.matches(tmp_path / 'a' / 'b' / 'fixtures', is_dir=True)

    def test_project_rule_limited_to_its_tree(self, tmp_path):
        rule = IgnoreRule.parse('*.tmp', base=tmp_path / 'proj')
        assert rule.matches(tmp_path / 'proj' / 'x.tmp', is_dir=False)
        assert not rule.matches(tmp_path / 'other' / 'x.tmp', is_dir=False)


class TestIgnorePolicy:

    def test_user_patterns(self):
        policy = IgnorePolicy.from_patterns(['node_modules/', '.DS_Store'])
        assert policy.is_ignored(Path('/p/node_modules'), is_dir=True)
        assert policy.is_ignored(Path('/p/.DS_Store'))
        assert not policy.is_ignored(Path('/p/src'), is_dir=True)

    def test_hidden_files_not_ignored_by_default(self):
        policy = IgnorePolicy.from_patterns(['.git/'])
        assert not policy.is_ignored(Path('/p/.env'))

    def test_disabled_policy_ignores_nothing(self, tmp_path):
        (tmp_path / '.gitignore').write_text('*\n')
        policy = IgnorePolicy.from_patterns(['*'], enabled=False).for_directory(tmp_path)
        assert not policy.is_ignored(tmp_path / 'anything')

    def test_reads_project_ignore_files(self, tmp_path):
        (tmp_path / '.gitignore').write_text('# build output\ndist/\n')
        (tmp_path / '.filepilotignore').write_text('*.iso\n')
        policy = IgnorePolicy.from_patterns([]).for_directory(tmp_path)
        assert policy.is_ignored(tmp_path / 'dist', is_dir=True)
        assert policy.is_ignored(tmp_path / 'ubuntu.iso')
        assert not policy.is_ignored(tmp_path / 'src', is_dir=True)

    def test_directory_without_ignore_files_returns_same_policy(self, tmp_path):
        policy = IgnorePolicy.from_patterns(['*.log'])
        assert policy.for_directory(tmp_path) is policy

    def test_project_negation_overrides_user_rule(self, tmp_path):
        (tmp_path / '.gitignore').write_text('!important.log\n')
        policy = IgnorePolicy.from_patterns(['*.log']).for_directory(tmp_path)
        assert policy.is_ignored(tmp_path / 'debug.log')
        assert not policy.is_ignored(tmp_path / 'important.log')

    def test_project_rule_overrides_user_negation(self, tmp_path):
        (tmp_path / '.gitignore').write_text('secrets.txt\n')
        policy = IgnorePolicy.from_patterns(['!secrets.txt']).for_directory(tmp_path)
        assert policy.is_ignored(tmp_path / 'secrets.txt')

    def test_inner_directory_overrides_outer(self, tmp_path):
        inner = tmp_path / 'inner'
        inner.mkdir()
        (tmp_path / '.gitignore').write_text('*.csv\n')
        (inner / '.gitignore').write_text('!keep.csv\n')
        outer_policy = IgnorePolicy.from_patterns([]).for_directory(tmp_path)
        inner_policy = outer_policy.for_directory(inner)
        assert inner_policy.is_ignored(inner / 'drop.csv')
        assert not inner_policy.is_ignored(inner / 'keep.csv')
        assert outer_policy.is_ignored(tmp_path / 'keep.csv')

    def test_should_inspect(self):
        policy = IgnorePolicy.from_patterns([], max_inspect_size=100)
        assert policy.should_inspect(100)
        assert not policy.should_inspect(101)
        assert IgnorePolicy().should_inspect(10**12)
