# dbmigrate

`dbmigrate` reads numbered migrations from a *source* and applies them to a
*database*. It moves the schema up or down one version at a time. All of the
migration logic lives in `dbmigrate.migrate.Migrate`. Sources and database
drivers only do small, simple jobs.

The package has no dependencies outside the standard library.

## Installing

```
pip install .
```

To run the test suite, install the `test` extra, which brings in pytest:

```
pip install ".[test]"
pytest
```

## Migration files

A source holds files named like this:

```
1_create_users.up.sql
1_create_users.down.sql
2_add_email.up.sql
```

Each name has four parts: a version number, an underscore and an identifier,
the direction (`up` or `down`), and any extension.
`dbmigrate.source.parse.parse(name)` turns a name into a
`dbmigrate.source.migrations.SourceMigration`, which has the fields `version`,
`identifier`, `direction` (a `Direction`) and `raw`. A name that does not
match raises `ParseError`. A version may have only an up file or only a down
file.

`dbmigrate.source.migrations.Migrations` is the ordered index that the sources
use. It has `append`, `first`, `prev`, `next`, `up` and `down`. Adding the same
version and direction twice raises `DuplicateMigrationError`.

## Sources

Every source implements `dbmigrate.source.driver.SourceDriver`: `open(url)`,
`close()`, `first()`, `prev(version)`, `next(version)`, `read_up(version)` and
`read_down(version)`. The read methods return `(binary_file, identifier)`. A
version or neighbour that does not exist raises `FileNotFoundError`.

- `dbmigrate.source.file.FileSource` reads a directory on disk. Open it with a
  `file://` URL, for example `FileSource().open("file://./migrations")` or
  `FileSource().open("file:///abs/path")`. Relative paths are resolved against
  the working directory. `file://` with no path means the working directory.
- `dbmigrate.source.httpfs` provides `PartialDriver`, which reads any file
  system object that has `open(name)` and `listdir(name)`.
  `LocalFileSystem(root)` is such an object. `new(fs, path)` returns an
  `HttpFsDriver`. That driver cannot itself be opened by URL.
- `dbmigrate.source.vfs` reads from a mapping of paths to contents through
  `MapFileSystem`. Use `with_instance(fs, search_path)`. An empty
  `search_path` means `/`.
- `dbmigrate.source.bindata` reads named assets.
  `with_instance(resource(names, asset_func))` gives a `BindataSource`, where
  `asset_func(name)` returns the asset's bytes.
- `dbmigrate.source.s3` reads objects under a bucket prefix. Use
  `with_instance(client, config)`. The client must have
  `list_objects(Bucket=, Prefix=, Delimiter=)`, returning
  `{"Contents": [{"Key": ...}]}`, and `get_object(Bucket=, Key=)`, returning
  `{"Body": file}`. `parse_uri("s3://bucket/prefix")` builds the `S3Config`.
- `dbmigrate.source.stub.StubSource` is an in-memory source for tests. It
  serves the migrations in its `migrations` index, and each body is the
  migration's identifier. `with_instance(instance, config)` also builds one.

`register(name, driver)` in `dbmigrate.source.driver` registers a driver under
a URL scheme. `open_source(url)` opens a driver by the URL's scheme.
`list_drivers()` returns the registered names in sorted order. Importing the
`stub`, `file`, `bindata` and `vfs` modules registers them as `stub`, `file`,
`bindata` and `vfs`. Of these, only `stub` and `file` can actually be opened
from a URL. The others raise `ValueError` and must be built with
`with_instance`.

## Running migrations

```python
from dbmigrate.migrate import new_with_instance, NoChangeError
from dbmigrate.source.file import FileSource

source = FileSource().open("file://./migrations")

with new_with_instance("file", source, "mydb", database_driver) as m:
    try:
        m.up()              # apply every pending up migration
    except NoChangeError:
        pass
    m.steps(-1)             # roll back one migration
    m.migrate(3)            # go up or down to version 3
    m.force(2)              # record version 2 and clear the dirty flag
    print(m.version())      # (2, False)
```

`new_with_database_instance(source_url, database_name, database)` opens the
source through `open_source` instead.

A `Migrate` also offers:

- `down()` applies all down migrations.
- `drop()` deletes everything in the database.
- `run(*migrations)` runs `dbmigrate.migration.Migration` objects directly,
  without asking the source. Build them with `new_migration`.
- `close()` closes the source and the database. Leaving the `with` block
  calls it for you.
- `request_stop()` stops at the next safe point between migrations.

Settings are plain attributes. `prefetch_migrations` (default 10) sets how many
migrations are read ahead. `lock_timeout` (default 15.0) is in seconds. Pass
`log=` a `logging.Logger` to get one line per applied migration. If the logger
is enabled for DEBUG, each line also reports timings and a note is logged
whenever a migration is scheduled.

### Database drivers

Any object with these methods will do:

- `lock()` and `unlock()`
- `version()`, which returns `(version, dirty)`, with `-1` when nothing has
  been applied
- `set_version(version, dirty)`
- `run(body)`, where `body` is a binary file holding the migration
- `drop()`
- `close()`

A driver reports failure by raising.

### Errors

These are subclasses of `MigrateError`:

- `NoChangeError`: nothing to apply.
- `NilVersionError`: `version()` was called before any migration was applied.
- `DirtyError`: an earlier run failed part way. Fix the database, then call
  `force`.
- `ShortLimitError`: fewer migrations existed than the steps asked for. Its
  `short` attribute says how many were missing.
- `InvalidVersionError`: `force` was given a version below -1.
- `LockedError`, `LockTimeoutError`: the lock could not be taken.

A version that the source does not have raises `FileNotFoundError`. If
unlocking also fails after an error, both errors are raised together as a
`dbmigrate.util.MultiError`.

## What the package does not do

- It has no database drivers. You supply the database object described above.
- It has no command-line program. It is used only as a library.
- The S3 source does not create its own client. You must pass one in.