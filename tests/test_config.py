# tests/test_config.py
import os
from unittest.mock import patch

import pytest

from config import InstallerConfig, config_from_mapping, load_config, save_config
from kvfile import atomic_write, parse_kv, read_kv_file, render_kv


# ---------------------------------------------------------------------------
# KEY=VALUE files
# ---------------------------------------------------------------------------

def test_parse_kv_quotes_and_comments():
    text = '# header\nA="one two"\nB=\'single\'\nC=bare\nnot a line\nlower=ignored\n'
    assert parse_kv(text) == {"A": "one two", "B": "single", "C": "bare"}

def test_parse_kv_later_key_wins():
    assert parse_kv("A=1\nA=2\n") == {"A": "2"}

def test_render_then_parse_keeps_special_characters():
    value = 'pa"ss\\word $x'
    assert parse_kv(render_kv([("PW", value)])) == {"PW": value}

def test_render_kv_none_is_empty():
    assert render_kv([("K", None)]) == 'K=""\n'

def test_read_missing_file_is_empty(tmp_path):
    assert read_kv_file(tmp_path / "missing") == {}

def test_atomic_write_sets_mode(tmp_path):
    target = tmp_path / "sub" / "f.conf"
    atomic_write(target, "A=1\n", mode=0o600)
    assert target.read_text() == "A=1\n"
    assert (os.stat(target).st_mode & 0o777) == 0o600
    assert [p.name for p in target.parent.iterdir()] == ["f.conf"]

def test_atomic_write_failure_keeps_previous_file(tmp_path):
    target = tmp_path / "f.conf"
    target.write_text("OLD=1\n")
    with patch("kvfile.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            atomic_write(target, "NEW=1\n")
    assert target.read_text() == "OLD=1\n"
    assert [p.name for p in tmp_path.iterdir()] == ["f.conf"]


# ---------------------------------------------------------------------------
# InstallerConfig
# ---------------------------------------------------------------------------

def test_defaults():
    cfg = InstallerConfig()
    assert cfg.dry_run is True
    assert cfg.dp_version == "6.2.1"
    assert cfg.auto_reboot_after == ["03_nic_ifupdown", "05_kernel_tuning"]

def test_mapping_decodes_types():
    cfg = config_from_mapping({
        "DRY_RUN": "0", "DL_MEMORY_GB": "200", "DATA_SSD_LIST": "nvme0n1 nvme1n1",
        "ENABLE_AUTO_REBOOT": "1", "DP_VERSION": "6.3.0",
    })
    assert cfg.dry_run is False
    assert cfg.dl_memory_gb == 200
    assert cfg.data_ssd_list == ["nvme0n1", "nvme1n1"]
    assert cfg.dp_version == "6.3.0"

def test_malformed_value_keeps_default():
    cfg = config_from_mapping({"DL_MEMORY_GB": "lots"})
    assert cfg.dl_memory_gb == InstallerConfig().dl_memory_gb

def test_save_and_load(tmp_path):
    path = tmp_path / "xdr_install.conf"
    cfg = InstallerConfig(dry_run=False, acps_password='p"w', data_ssd_list=["sdb", "sdc"])
    save_config(cfg, path)
    assert load_config(path) == cfg
    assert (os.stat(path).st_mode & 0o777) == 0o600

def test_load_missing_returns_defaults(tmp_path):
    assert load_config(tmp_path / "nope.conf") == InstallerConfig()

def test_load_unreadable_returns_defaults(tmp_path):
    path = tmp_path / "bad.conf"
    path.write_bytes(b"\xff\xfe\x00bad")
    assert load_config(path) == InstallerConfig()
