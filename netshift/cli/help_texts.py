# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# netshift/cli/help_texts.py
from __future__ import annotations

# Pure help text for the argparse epilog. No imports beyond __future__.

YAML_EXAMPLE = r"""# netshift configuration (YAML)
#
# Run:
#   sudo netshift --config host.yaml
#   sudo netshift --config base.yaml --config site.yaml --cmd apply --yes
#
# Two-phase parse: --config/-v/--log-file are read first, the merged files
# become argparse defaults, and explicit CLI flags override them.
#
# cmd: menu                      # menu | check | apply | hostname | restore
#                                # | tunables | rename | orphans | list-backups
# dry_run: false                 # show the diff, write nothing
# rollback: auto                 # auto | prompt | never
# network_model: linux           # linux | ovs
# synthesis_mode: replace        # replace | merge
# retention: 5
# log_file: /var/log/network_migration.log
#
# Paths (defaults shown):
# interfaces_file: /etc/network/interfaces
# backup_dir: /root/network_backups
# sysctl_file: /etc/sysctl.conf
# link_dir: /etc/systemd/network
#
# tunables:
#   net.ipv4.ip_forward: 1
#   net.ipv6.conf.all.disable_ipv6: 1
#   net.ipv6.conf.default.disable_ipv6: 1
#
# network:                       # used by cmd: apply
#   bond_members: [eth1, eth2]
#   mgmt_port: eth0
#   bond_mode: balance-alb
#   address: 192.168.51.20/24
#   gateway: 192.168.51.1
#   dns: [192.168.51.1]
#   vlans:
#     - {id: 50, address: 10.50.10.20/24, role: cluster}
#     - {id: 55, address: 10.55.10.20/24, role: storage}
#
# rename:                        # used by cmd: rename
#   prefix: nic                  # batch: enx* -> nic0, nic1, ...
#   map: {enx0a1b2c3d4e5f: lan0} # or explicit old -> new
#   override: false
#
# hostname: pve-node-02          # used by cmd: hostname
"""

FEATURE_SUMMARY = r"""  - Bond + VLAN-aware bridge synthesis (linux bridge or Open vSwitch)
  - Timestamped backups with retention, SHA-256 verified restore
  - Stage, atomic commit, service restart, automatic rollback
  - Idempotent kernel tunables (sysctl) patching
  - MAC-bound interface renames (.link files) with reference rewriting
  - Orphaned logical volume scan with per-item confirmation
  - Dry run with unified diff; scripted answers for unattended runs
"""

EXIT_CODES = r"""  0  success
  2  invalid input
  3  precondition not met (permissions, missing file, backup failed)
  4  write or activation failed (rollback attempted)
  5  rollback failed; recover from the reported backup
  130 interrupted
"""
