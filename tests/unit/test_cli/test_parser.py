# SPDX-License-Identifier: LGPL-3.0-or-later
"""
Two-phase CLI parsing: YAML/JSON config files become argparse defaults,
explicit flags still win, and the merged result is shape-checked.
"""

import json
import logging
import tempfile
import unittest
from pathlib import Path

import pytest

from netshift.cli.args import build_parser, parse_args_with_config
from netshift.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class TestTwoPhaseParse(unittest.TestCase):
    def setUp(self):
        self._td = tempfile.TemporaryDirectory()
        self.td = Path(self._td.name)

    def tearDown(self):
        self._td.cleanup()

    def write(self, name, text):
        p = self.td / name
        p.write_text(text, encoding="utf-8")
        return str(p)

    def test_config_values_become_defaults(self):
        cfg = self.write("a.yaml", "cmd: Check\ndry_run: true\nretention: 3\nrollback: prompt\n")
        args, conf, _ = parse_args_with_config(["--config", cfg], logger)

        self.assertEqual(args.cmd, "check")
        self.assertTrue(args.dry_run)
        self.assertEqual(args.retention, 3)
        self.assertEqual(args.rollback, "prompt")
        self.assertEqual(conf["retention"], 3)

    def test_cli_overrides_config(self):
        cfg = self.write("a.yaml", "retention: 3\nnetwork_model: linux\n")
        args, _, _ = parse_args_with_config(
            ["--config", cfg, "--retention", "7", "--network-model", "ovs", "--cmd", "apply"], logger
        )
        self.assertEqual(args.retention, 7)
        self.assertEqual(args.network_model, "ovs")
        self.assertEqual(args.cmd, "apply")

    def test_later_files_win_and_nested_blocks_merge(self):
        a = self.write("a.yaml", "network:\n  bond_members: [eth0, eth1]\n  gateway: 10.0.0.1\nretention: 2\n")
        b = self.write("b.json", json.dumps({"network": {"gateway": "10.0.0.254"}, "retention": 4}))
        args, conf, _ = parse_args_with_config(["--config", a, "--config", b], logger)

        self.assertEqual(conf["network"], {"bond_members": ["eth0", "eth1"], "gateway": "10.0.0.254"})
        self.assertEqual(args.retention, 4)
        self.assertFalse(hasattr(args, "network"))

    def test_default_cmd_is_menu(self):
        args, conf, _ = parse_args_with_config([], logger)
        self.assertEqual(args.cmd, "menu")
        self.assertEqual(conf, {})
        self.assertIsNone(args.dry_run)

    def test_unknown_cmd(self):
        with self.assertRaises(ValidationError):
            parse_args_with_config(["--cmd", "wipe"], logger)

    def test_missing_answers_file(self):
        with self.assertRaises(ValidationError):
            parse_args_with_config(["--answers", str(self.td / "nope.yaml")], logger)

    def test_helper_url_must_be_http(self):
        cfg = self.write("a.yaml", "helper_url: ftp://example.org/helper\n")
        with self.assertRaises(ValidationError):
            parse_args_with_config(["--config", cfg], logger)

    def test_bad_rename_prefix(self):
        cfg = self.write("a.yaml", "cmd: rename\nrename:\n  prefix: 'bad prefix'\n")
        with self.assertRaises(ValidationError):
            parse_args_with_config(["--config", cfg], logger)

    def test_negative_retention(self):
        with self.assertRaises(ValidationError):
            parse_args_with_config(["--retention", "0"], logger)

    def test_tunables_must_be_mapping(self):
        cfg = self.write("a.yaml", "tunables:\n  - net.ipv4.ip_forward=1\n")
        with self.assertRaises(ValidationError):
            parse_args_with_config(["--config", cfg], logger)


@pytest.mark.unit
class TestParserSurface:
    def test_rollback_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--rollback", "sometimes"])

    def test_no_install_packages(self):
        args = build_parser().parse_args(["--no-install-packages"])
        assert args.install_packages is False
        assert build_parser().parse_args([]).install_packages is None

    def test_dump_config(self, tmp_path, capsys):
        cfg = tmp_path / "a.yaml"
        cfg.write_text("retention: 9\n", encoding="utf-8")
        with pytest.raises(SystemExit) as ei:
            parse_args_with_config(["--config", str(cfg), "--dump-config"], logger)
        assert ei.value.code == 0
        assert json.loads(capsys.readouterr().out) == {"retention": 9}
