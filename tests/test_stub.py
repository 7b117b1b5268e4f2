import pytest

from dbmigrate.source.driver import list_drivers, open_source
from dbmigrate.source.migrations import Direction, Migrations, SourceMigration
from dbmigrate.source.stub import StubConfig, StubSource, with_instance


@pytest.fixture
def driver():
    d = StubSource().open("")
    m = Migrations()
    for version, direction in [
        (1, Direction.UP),
        (1, Direction.DOWN),
        (3, Direction.UP),
        (4, Direction.UP),
        (4, Direction.DOWN),
        (5, Direction.DOWN),
        (7, Direction.UP),
        (7, Direction.DOWN),
    ]:
        m.append(SourceMigration(version=version, direction=direction, identifier=f"{version} {direction.value}"))
    d.migrations = m
    return d


def test_first(driver):
    assert driver.first() == 1


@pytest.mark.parametrize("version, expected", [(3, 1), (4, 3), (5, 4), (7, 5)])
def test_prev(driver, version, expected):
    assert driver.prev(version) == expected


@pytest.mark.parametrize("version", [0, 1, 2, 6, 8, 9])
def test_prev_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.prev(version)


@pytest.mark.parametrize("version, expected", [(1, 3), (3, 4), (4, 5), (5, 7)])
def test_next(driver, version, expected):
    assert driver.next(version) == expected


@pytest.mark.parametrize("version", [0, 2, 6, 7, 8, 9])
def test_next_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.next(version)


@pytest.mark.parametrize("version", [1, 3, 4, 7])
def test_read_up(driver, version):
    body, identifier = driver.read_up(version)
    with body:
        assert body.read() == f"{version} up".encode()
    assert identifier == f"{version}.up.stub"


@pytest.mark.parametrize("version", [0, 2, 5, 6, 8])
def test_read_up_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.read_up(version)


@pytest.mark.parametrize("version", [1, 4, 5, 7])
def test_read_down(driver, version):
    body, identifier = driver.read_down(version)
    with body:
        assert body.read() == f"{version} down".encode()
    assert identifier == f"{version}.down.stub"


@pytest.mark.parametrize("version", [0, 2, 3, 6, 8])
def test_read_down_missing(driver, version):
    with pytest.raises(FileNotFoundError):
        driver.read_down(version)


def test_first_empty():
    d = StubSource().open("stub://")
    with pytest.raises(FileNotFoundError):
        d.first()


def test_open_source_uses_registered_stub():
    assert "stub" in list_drivers()
    d = open_source("stub://")
    assert isinstance(d, StubSource)
    assert d.url == "stub://"
    assert len(d.migrations) == 0


def test_with_instance():
    instance = {"name": "source"}
    config = StubConfig()
    d = with_instance(instance, config)
    assert d.instance is instance
    assert d.config is config
    assert d.url == ""
    assert d.close() is None