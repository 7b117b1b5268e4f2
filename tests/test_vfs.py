import pytest

from dbmigrate.source.vfs import MapFileSystem, VfsSource, with_instance

FILES = {
    "1_foobar.up.sql": "1 up",
    "1_foobar.down.sql": "1 down",
    "3_foobar.up.sql": "3 up",
    "4_foobar.up.sql": "4 up",
    "4_foobar.down.sql": "4 down",
    "5_foobar.down.sql": "5 down",
    "7_foobar.up.sql": "7 up",
    "7_foobar.down.sql": "7 down",
}

PREV = {0: None, 1: None, 2: None, 3: 1, 4: 3, 5: 4, 6: None, 7: 5, 8: None, 9: None}
NEXT = {0: None, 1: 3, 2: None, 3: 4, 4: 5, 5: 7, 6: None, 7: None, 8: None, 9: None}
UP = {0: False, 1: True, 2: False, 3: True, 4: True, 5: False, 6: False, 7: True, 8: False}
DOWN = {0: False, 1: True, 2: False, 3: False, 4: True, 5: True, 6: False, 7: True, 8: False}


def _check_driver(driver):
    assert driver.first() == 1
    for table, method in ((PREV, driver.prev), (NEXT, driver.next)):
        for version, expected in table.items():
            if expected is None:
                with pytest.raises(FileNotFoundError):
                    method(version)
            else:
                assert method(version) == expected
    for table, method in ((UP, driver.read_up), (DOWN, driver.read_down)):
        for version, present in table.items():
            if present:
                body, identifier = method(version)
                try:
                    assert identifier
                finally:
                    body.close()
            else:
                with pytest.raises(FileNotFoundError):
                    method(version)


def test_vfs_conforms():
    driver = with_instance(MapFileSystem(FILES), "")
    assert driver.path == "/"
    _check_driver(driver)


def test_vfs_subdirectory():
    nested = {f"db/{name}": body for name, body in FILES.items()}
    nested["other/9_x.up.sql"] = "9 up"
    driver = with_instance(MapFileSystem(nested), "db")
    _check_driver(driver)
    body, _ = driver.read_up(3)
    assert body.read() == b"3 up"


def test_open_is_rejected():
    with pytest.raises(ValueError):
        VfsSource().open("")


def test_map_fs_listdir():
    fs = MapFileSystem({"a.sql": "x", "dir/b.sql": "y", "dir/sub/c.sql": "z"})
    assert fs.listdir("/") == [("a.sql", False), ("dir", True)]
    assert fs.listdir("dir") == [("b.sql", False), ("sub", True)]


def test_map_fs_errors():
    fs = MapFileSystem({"a.sql": "x", "dir/b.sql": "y"})
    with pytest.raises(FileNotFoundError):
        fs.listdir("missing")
    with pytest.raises(NotADirectoryError):
        fs.listdir("a.sql")
    with pytest.raises(IsADirectoryError):
        fs.open("dir")
    with pytest.raises(FileNotFoundError):
        fs.open("nope.sql")
    assert fs.open("/dir/b.sql").read() == b"y"


def test_with_instance_missing_dir():
    with pytest.raises(FileNotFoundError):
        with_instance(MapFileSystem(FILES), "/missing")