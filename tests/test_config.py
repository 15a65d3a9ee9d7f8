'''
Copyright (c) 2016-2024  Ellie/@ellie on Github and Codeberg

This software is provided 'as-is', without any express or implied
warranty. In no event will the authors be held liable for any damages
arising from the use of this software.

Permission is granted to anyone to use this software for any purpose,
including commercial applications, and to alter it and redistribute it
freely, subject to the following restrictions:

1. The origin of this software must not be misrepresented; you must not
   claim that you wrote the original software. If you use this software
   in a product, an acknowledgment in the product documentation would be
   appreciated but is not required.
2. Altered source versions must be plainly marked as such, and must not be
   misrepresented as being the original software.
3. This notice may not be removed or altered from any source distribution.
'''

import pytest

from zfsbackup.config import RunConfig, load_config_file
from zfsbackup.consistency import LockAndFlush, NoLock, wrap_command
from zfsbackup.errors import ConfigurationError

ENTRY = {
    "source": "tank/data",
    "destination": "backup/data",
    "host": "backup.example.com",
}


def test_defaults():
    config = RunConfig.from_mapping("tank-data", dict(ENTRY))
    assert config.user == "root"
    assert config.keep == 5
    assert config.consistency == NoLock()
    assert config.mysql is False
    assert config.recursive is False
    assert config.incremental is True


def test_init_mode():
    config = RunConfig.from_mapping("tank-data", dict(ENTRY),
        incremental=False)
    assert config.incremental is False


def test_mysql_flag():
    config = RunConfig.from_mapping("db", dict(ENTRY, mysql=True))
    assert config.consistency == LockAndFlush(driver="mysql")
    assert config.mysql is True


def test_mysql_mapping():
    config = RunConfig.from_mapping("db", dict(ENTRY,
        mysql={"defaults-file": "/root/.my.cnf"}))
    assert config.consistency.defaults_file == "/root/.my.cnf"
    assert config.as_dict()["mysql"] == {
        "driver": "mysql", "defaults-file": "/root/.my.cnf"}


def test_keep_as_string():
    config = RunConfig.from_mapping("tank-data", dict(ENTRY, keep="7"))
    assert config.keep == 7


@pytest.mark.parametrize("overrides,message", [
    ({"keep": 0}, "at least 1"),
    ({"keep": "often"}, "must be an integer"),
    ({"keep": True}, "must be an integer"),
    ({"host": None}, "'host'"),
    ({"destination": "  "}, "'destination'"),
    ({"source": "tank/data@2024-03-01"}, "not a snapshot"),
    ({"mysql": {"driver": "postgres"}}, "unknown lock driver"),
    ({"mysql": "yes"}, "'mysql'"),
    ({"recursive": "false"}, "'recursive' must be true/false"),
    ({"recursive": "no"}, "'recursive' must be true/false"),
    ({"recursive": 1}, "'recursive' must be true/false"),
])
def test_invalid_entries(overrides, message):
    with pytest.raises(ConfigurationError) as excinfo:
        RunConfig.from_mapping("tank-data", dict(ENTRY, **overrides))
    assert message in str(excinfo.value)


def test_entry_must_be_mapping():
    with pytest.raises(ConfigurationError):
        RunConfig.from_mapping("tank-data", ["tank/data"])


def test_notify_context():
    config = RunConfig.from_mapping("tank-data", dict(ENTRY))
    assert config.notify_context("2024-03-10T03:00:00") == {
        "job": "tank-data",
        "source": "tank/data",
        "destination": "backup/data",
        "host": "backup.example.com",
        "user": "root",
        "mysql": False,
        "keep": 5,
        "run_timestamp": "2024-03-10T03:00:00",
    }


def test_config_is_immutable():
    config = RunConfig.from_mapping("tank-data", dict(ENTRY))
    with pytest.raises(AttributeError):
        config.keep = 3


def test_load_config_file(tmp_path):
    path = tmp_path / "zfsbackup.yml"
    path.write_text("log-file: /tmp/zfsbackup.log\n"
        "backups:\n"
        "  tank-data:\n"
        "    source: tank/data\n"
        "    destination: backup/data\n"
        "    host: backup.example.com\n")
    data = load_config_file(str(path))
    assert data["log-file"] == "/tmp/zfsbackup.log"
    assert data["backups"]["tank-data"]["source"] == "tank/data"


def test_load_config_file_missing(tmp_path):
    with pytest.raises(ConfigurationError) as excinfo:
        load_config_file(str(tmp_path / "nope.yml"))
    assert "no such config file" in str(excinfo.value)


@pytest.mark.parametrize("contents", [
    "backups: [unclosed\n",
    "something: else\n",
    "backups: {}\n",
    "",
])
def test_load_config_file_invalid(tmp_path, contents):
    path = tmp_path / "zfsbackup.yml"
    path.write_text(contents)
    with pytest.raises(ConfigurationError):
        load_config_file(str(path))


def test_wrap_command_without_lock():
    cmd = ["zfs", "snapshot", "tank/data@2024-03-10"]
    assert wrap_command(cmd, NoLock()) == cmd
    assert wrap_command(cmd, LockAndFlush())[0] == "mysql"
