# SPDX-License-Identifier: LGPL-3.0-or-later
import argparse
import logging

import pytest

from netshift.config.config_loader import Config
from netshift.core.exceptions import Fatal

logger = logging.getLogger(__name__)


@pytest.mark.unit
class TestConfigLoader:
    def test_expand_directory_and_glob(self, tmp_path):
        d = tmp_path / "conf.d"
        d.mkdir()
        for name in ("20-net.yaml", "10-base.yml", "notes.txt"):
            (d / name).write_text("{}\n", encoding="utf-8")
        (tmp_path / "x.json").write_text("{}", encoding="utf-8")

        out = Config.expand_configs(logger, [str(d), str(tmp_path / "*.json")])

        assert [p.name for p in out] == ["10-base.yml", "20-net.yaml", "x.json"]

    def test_missing_file_is_fatal(self, tmp_path):
        with pytest.raises(Fatal) as ei:
            Config.load(logger, tmp_path / "missing.yaml")
        assert ei.value.code == 2

    def test_top_level_must_be_mapping(self, tmp_path):
        p = tmp_path / "list.yaml"
        p.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(Fatal):
            Config.load(logger, p)

    def test_invalid_yaml(self, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("network: [unclosed\n", encoding="utf-8")
        with pytest.raises(Fatal):
            Config.load(logger, p)

    def test_empty_file(self, tmp_path):
        p = tmp_path / "empty.yaml"
        p.write_text("", encoding="utf-8")
        assert Config.load(logger, p) == {}

    def test_deep_merge(self):
        base = {"network": {"gateway": "10.0.0.1", "dns": ["1.1.1.1"]}, "retention": 5}
        merged = Config.merge(base, {"network": {"gateway": "10.0.0.254"}, "retention": 2})
        assert merged == {"network": {"gateway": "10.0.0.254", "dns": ["1.1.1.1"]}, "retention": 2}
        assert base["network"]["gateway"] == "10.0.0.1"

    def test_apply_as_defaults_skips_unknown_and_nested(self):
        p = argparse.ArgumentParser()
        p.add_argument("--dry-run", dest="dry_run", action="store_true", default=None)
        p.add_argument("--network", dest="network", default=None)

        Config.apply_as_defaults(logger, p, {"dry-run": True, "network": {"a": 1}, "mystery": 3})
        args = p.parse_args([])

        assert args.dry_run is True
        assert args.network is None
        assert not hasattr(args, "mystery")
