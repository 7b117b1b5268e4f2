import errno
import io

import pytest

from dbmigrate.source.httpfs import HttpFsDriver, LocalFileSystem, new
from dbmigrate.source.migrations import DuplicateMigrationError

SQL_FILES = {
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


@pytest.fixture
def sample_tree(tmp_path):
    root = tmp_path / "testdata"
    sql = root / "sql"
    sql.mkdir(parents=True)
    for name, body in SQL_FILES.items():
        (sql / name).write_text(body)
    (sql / "9_nested.up.sql").mkdir()
    duplicates = root / "duplicates"
    duplicates.mkdir()
    (duplicates / "1_foo.up.sql").write_text("")
    (duplicates / "1_bar.up.sql").write_text("")
    empty = root / "no-migrations"
    empty.mkdir()
    (empty / "README.txt").write_text("nothing here")
    return root


def test_new_ok(sample_tree):
    driver = new(LocalFileSystem(sample_tree), "sql")
    _check_driver(driver)
    assert driver.close() is None


def test_new_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        new(LocalFileSystem(tmp_path / "does-not-exist"), "")


def test_open_raises(sample_tree):
    driver = new(LocalFileSystem(sample_tree / "sql"), "")
    with pytest.raises(ValueError):
        driver.open("")


def test_init_valid_dir_empty_path(sample_tree):
    driver = HttpFsDriver()
    driver.init(LocalFileSystem(sample_tree / "sql"), "")
    _check_driver(driver)


def test_init_valid_dir_non_empty_path(sample_tree):
    driver = HttpFsDriver()
    driver.init(LocalFileSystem(sample_tree), "sql")
    _check_driver(driver)


def test_init_invalid_dir(tmp_path):
    driver = HttpFsDriver()
    with pytest.raises(FileNotFoundError):
        driver.init(LocalFileSystem(tmp_path / "does-not-exist"), "")


def test_init_file_instead_of_dir(sample_tree):
    driver = HttpFsDriver()
    with pytest.raises(NotADirectoryError):
        driver.init(LocalFileSystem(sample_tree / "sql" / "1_foobar.up.sql"), "")


def test_init_dir_with_duplicates(sample_tree):
    driver = HttpFsDriver()
    with pytest.raises(DuplicateMigrationError) as info:
        driver.init(LocalFileSystem(sample_tree / "duplicates"), "")
    assert "duplicate migration file" in str(info.value)


def test_first_with_no_migrations(sample_tree):
    driver = HttpFsDriver()
    driver.init(LocalFileSystem(sample_tree / "no-migrations"), "")
    with pytest.raises(FileNotFoundError):
        driver.first()


def test_bodies_are_file_contents(sample_tree):
    driver = new(LocalFileSystem(sample_tree), "sql")
    body, identifier = driver.read_down(4)
    with body:
        assert body.read() == b"4 down"
    assert identifier == "foobar"


class _ForgetfulFs:
    def listdir(self, name):
        return [("1_foobar.up.sql", False)]

    def open(self, name):
        raise OSError(errno.ENOENT, "gone")


def test_open_error_gets_path():
    driver = new(_ForgetfulFs(), "dir")
    with pytest.raises(FileNotFoundError) as info:
        driver.read_up(1)
    assert info.value.filename == "dir/1_foobar.up.sql"


class _MemoryFs:
    def listdir(self, name):
        return [("2_x.up.sql", False)]

    def open(self, name):
        return io.BytesIO(name.encode())


def test_open_joins_path_and_raw():
    driver = new(_MemoryFs(), "base")
    body, identifier = driver.read_up(2)
    assert body.read() == b"base/2_x.up.sql"
    assert identifier == "x"