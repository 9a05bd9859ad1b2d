"""Unit tests for SQL generated by the dialect strategies.

Strategies do no I/O, so every test compares generated text and bind values.
"""

import datetime
import decimal

import pytest

from conftest import Department, Employee, Person, Ticket
from db_services import (
    Criterion,
    DatabaseConfig,
    DbValidationError,
    Dialect,
    FieldDescriptor,
    QueryOperator,
    QueryOptions,
    TableSchema,
    UnsupportedOperationError,
    create_dialect,
    detect_dialect,
)
from db_services.dialects import (
    MySQLStrategy,
    OracleStrategy,
    PostgresStrategy,
    SQLiteStrategy,
    SQLServerStrategy,
)

ALL_DIALECTS = ["sqlite", "mssql", "mysql", "postgresql", "oracle"]


@pytest.fixture
def sqlite():
    return SQLiteStrategy()


@pytest.fixture
def sqlite_literal():
    return SQLiteStrategy(parameterized=False)


class TestFactory:
    """Strategy selection from names, enums, URLs and configurations."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("sqlite", SQLiteStrategy),
            ("sqlserver", SQLServerStrategy),
            ("mssql", SQLServerStrategy),
            ("mariadb", MySQLStrategy),
            ("postgres", PostgresStrategy),
            ("Oracle", OracleStrategy),
        ],
    )
    def test_create_from_name(self, name: str, expected: type):
        """Dialect aliases resolve to the right strategy."""
        assert isinstance(create_dialect(name), expected)

    def test_create_from_enum(self):
        """Dialect members are accepted directly."""
        assert isinstance(create_dialect(Dialect.ORACLE), OracleStrategy)

    def test_create_from_config_uses_rendering_mode(self):
        """A configuration decides between binds and literals."""
        config = DatabaseConfig(url="sqlite:///app.db", use_parameterized_query=False)
        strategy = create_dialect(config)
        assert isinstance(strategy, SQLiteStrategy)
        assert strategy.parameterized is False

    def test_unknown_dialect(self):
        """Unsupported names are rejected."""
        with pytest.raises(ValueError, match="Unsupported database dialect"):
            create_dialect("db2")

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("sqlite+aiosqlite:///app.db", Dialect.SQLITE),
            ("postgres://u:p@localhost/db", Dialect.POSTGRESQL),
            ("mariadb+aiomysql://u:p@localhost/db", Dialect.MYSQL),
            ("mssql+aioodbc://u:p@localhost/db", Dialect.MSSQL),
            ("oracle+oracledb://u:p@localhost/db", Dialect.ORACLE),
        ],
    )
    def test_detect_dialect(self, url: str, expected: Dialect):
        """The URL scheme names the dialect."""
        assert detect_dialect(url) is expected

    def test_detect_unsupported(self):
        """Unknown schemes are rejected."""
        with pytest.raises(ValueError):
            detect_dialect("clickhouse://localhost/db")


class TestLiteralRendering:
    """Literal mode renders values with the documented rules."""

    def test_string_quotes_are_doubled(self, sqlite_literal):
        """Embedded single quotes are doubled."""
        assert sqlite_literal.render_literal("O'Brien") == "'O''Brien'"
        assert sqlite_literal.render_literal("''") == "''''''"

    def test_dates_render_without_time(self, sqlite_literal):
        """Dates and datetimes render as quoted yyyy-MM-dd."""
        assert sqlite_literal.render_literal(datetime.date(2024, 1, 15)) == "'2024-01-15'"
        assert (
            sqlite_literal.render_literal(datetime.datetime(2024, 1, 15, 10, 30))
            == "'2024-01-15'"
        )

    def test_booleans_render_as_integers(self, sqlite_literal):
        """Booleans render as 1 and 0."""
        assert sqlite_literal.render_literal(True) == "1"
        assert sqlite_literal.render_literal(False) == "0"

    def test_numbers_render_bare(self, sqlite_literal):
        """Integers, floats and decimals are unquoted."""
        assert sqlite_literal.render_literal(42) == "42"
        assert sqlite_literal.render_literal(1.5) == "1.5"
        assert sqlite_literal.render_literal(decimal.Decimal("12.50")) == "12.50"

    def test_none_renders_empty_string(self, sqlite_literal):
        """None becomes an empty string literal."""
        assert sqlite_literal.render_literal(None) == "''"

    def test_mysql_doubles_backslashes(self):
        """MySQL treats backslash as an escape character."""
        assert MySQLStrategy(parameterized=False).render_literal("a\\b'c") == "'a\\\\b''c'"

    def test_binary_needs_parameters(self, sqlite_literal):
        """Bytes cannot be rendered as literals."""
        with pytest.raises(UnsupportedOperationError):
            sqlite_literal.render_literal(b"\x00\x01")


class TestIdentifiers:
    """Identifiers are validated and quoted only when reserved."""

    @pytest.mark.parametrize(
        "dialect,expected",
        [
            ("sqlite", '"order"'),
            ("postgresql", '"order"'),
            ("oracle", '"order"'),
            ("mssql", "[order]"),
            ("mysql", "`order`"),
        ],
    )
    def test_reserved_words_are_quoted(self, dialect: str, expected: str):
        """Each dialect uses its own quote characters."""
        assert create_dialect(dialect).format_identifier("order") == expected

    @pytest.mark.parametrize("dialect", ALL_DIALECTS)
    def test_plain_names_are_not_quoted(self, dialect: str):
        """Ordinary names are emitted as given."""
        assert create_dialect(dialect).format_identifier("Person") == "Person"

    @pytest.mark.parametrize("dialect", ALL_DIALECTS)
    def test_invalid_names_never_reach_sql(self, dialect: str):
        """Every builder validates table and field names."""
        strategy = create_dialect(dialect)
        with pytest.raises(DbValidationError):
            strategy.insert("Person; DROP TABLE x", {"Name": "a"})
        with pytest.raises(DbValidationError):
            strategy.select_by_criterion("Person", "Name--", "a")


class TestDml:
    """INSERT, UPDATE and DELETE shapes."""

    def test_insert_literal(self, sqlite_literal):
        """Literal insert matches the documented shape."""
        statement = sqlite_literal.insert("T", {"a": 1, "b": "x"})
        assert statement.sql == "INSERT INTO T (a,b) VALUES (1,'x');"
        assert statement.params == {}
        assert statement.parameterized is False

    def test_insert_parameterized(self, sqlite):
        """Values become named binds in column order."""
        statement = sqlite.insert("T", {"a": 1, "b": "x"})
        assert statement.sql == "INSERT INTO T (a,b) VALUES (:p0,:p1);"
        assert statement.params == {"p0": 1, "p1": "x"}
        assert statement.parameterized is True

    def test_insert_null_literal(self, sqlite_literal):
        """None renders as an empty string in literal inserts."""
        statement = sqlite_literal.insert("T", [("a", None), ("b", 2)])
        assert statement.sql == "INSERT INTO T (a,b) VALUES ('',2);"

    def test_insert_requires_fields(self, sqlite):
        """An insert without columns is rejected."""
        with pytest.raises(DbValidationError):
            sqlite.insert("T", {})

    def test_insert_returning_only_where_supported(self, sqlite):
        """RETURNING is added on PostgreSQL only."""
        assert "RETURNING" not in sqlite.insert("T", {"a": 1}, returning="Id").sql
        statement = PostgresStrategy().insert("T", {"a": 1}, returning="Id")
        assert statement.sql == "INSERT INTO T (a) VALUES (:p0) RETURNING Id;"

    def test_sqlite_adapts_bind_values(self, sqlite):
        """sqlite3 receives ints for booleans and strings for decimals and dates."""
        statement = sqlite.insert(
            "T",
            {
                "flag": True,
                "amount": decimal.Decimal("1.10"),
                "day": datetime.date(2024, 2, 29),
            },
        )
        assert statement.params == {"p0": 1, "p1": "1.10", "p2": "2024-02-29"}

    def test_update_skips_null_values(self, sqlite_literal):
        """None values are left out of SET."""
        statement = sqlite_literal.update("T", 3, {"a": None, "b": 2})
        assert statement.sql == "UPDATE T SET b = 2 WHERE Id = 3;"

    def test_update_parameterized(self, sqlite):
        """Key value is bound after the assignments."""
        statement = sqlite.update("T", 3, {"Age": 31})
        assert statement.sql == "UPDATE T SET Age = :p0 WHERE Id = :p1;"
        assert statement.params == {"p0": 31, "p1": 3}

    def test_update_requires_a_value(self, sqlite):
        """All-null updates are rejected."""
        with pytest.raises(DbValidationError):
            sqlite.update("T", 3, {"a": None})

    def test_update_where(self, sqlite):
        """Criterion tuples select the rows to update."""
        statement = sqlite.update_where("T", ("Age", 30, ">"), {"Name": "x"})
        assert statement.sql == "UPDATE T SET Name = :p0 WHERE Age > :p1;"

    def test_delete_literal(self, sqlite_literal):
        """Literal delete matches the documented shape."""
        assert sqlite_literal.delete("T", 3).sql == "DELETE FROM T WHERE Id = 3;"

    def test_delete_where(self, sqlite):
        """Criterion objects are accepted too."""
        statement = sqlite.delete_where("T", Criterion(field="Name", value="Ann"))
        assert statement.sql == "DELETE FROM T WHERE Name = :p0;"
        assert statement.params == {"p0": "Ann"}

    def test_literal_override_per_call(self, sqlite):
        """A single call can switch to literal rendering."""
        statement = sqlite.insert("T", {"a": "it's"}, parameterized=False)
        assert statement.sql == "INSERT INTO T (a) VALUES ('it''s');"


class TestDql:
    """SELECT shapes."""

    def test_select_by_id_literal(self, sqlite_literal):
        """Literal select by id matches the documented shape."""
        assert sqlite_literal.select_by_id("T", 3).sql == "SELECT * FROM T WHERE Id = 3;"

    def test_select_all_with_where(self, sqlite):
        """Raw WHERE text is validated and appended."""
        assert sqlite.select_all("T").sql == "SELECT * FROM T;"
        assert sqlite.select_all("T", "Age = 30").sql == "SELECT * FROM T WHERE Age = 30;"
        with pytest.raises(DbValidationError):
            sqlite.select_all("T", "1=1; DROP TABLE T")

    def test_where_colons_are_escaped_for_binds(self, sqlite, sqlite_literal):
        """Colons in raw WHERE text are not taken for bind names."""
        assert sqlite.select_all("T", "At = 10:30").sql == "SELECT * FROM T WHERE At = 10\\:30;"
        assert sqlite_literal.select_all("T", "At = 10:30").sql == "SELECT * FROM T WHERE At = 10:30;"

    def test_select_fields(self, sqlite):
        """Projection lists validated columns."""
        statement = sqlite.select_fields("T", ["Name", "Age"], "Age = 1")
        assert statement.sql == "SELECT Name,Age FROM T WHERE Age = 1;"
        with pytest.raises(DbValidationError):
            sqlite.select_fields("T", [])

    @pytest.mark.parametrize(
        "operator,sql_operator",
        [
            (QueryOperator.EQUAL, "="),
            (QueryOperator.NOT_EQUAL, "<>"),
            (QueryOperator.GREATER_THAN, ">"),
            (QueryOperator.GREATER_THAN_OR_EQUAL, ">="),
            (QueryOperator.LESS_THAN, "<"),
            (QueryOperator.LESS_THAN_OR_EQUAL, "<="),
            (QueryOperator.LIKE, "LIKE"),
            (QueryOperator.NOT_LIKE, "NOT LIKE"),
        ],
    )
    def test_select_by_criterion_operators(self, sqlite, operator, sql_operator):
        """Each operator renders its comparison."""
        statement = sqlite.select_by_criterion("T", "Age", 30, operator)
        assert statement.sql == f"SELECT * FROM T WHERE Age {sql_operator} :p0;"

    def test_null_criterion(self, sqlite):
        """None compares with IS NULL / IS NOT NULL."""
        assert sqlite.select_by_criterion("T", "Email", None).sql == (
            "SELECT * FROM T WHERE Email IS NULL;"
        )
        assert sqlite.select_by_criterion("T", "Email", None, "<>").sql == (
            "SELECT * FROM T WHERE Email IS NOT NULL;"
        )
        with pytest.raises(DbValidationError):
            sqlite.select_by_criterion("T", "Email", None, QueryOperator.LIKE)

    def test_select_by_criteria_and_joined(self, sqlite_literal):
        """Pairs are AND-joined equality conditions."""
        statement = sqlite_literal.select_by_criteria("T", {"Name": "Ann", "Age": 30})
        assert statement.sql == "SELECT * FROM T WHERE Name = 'Ann' AND Age = 30;"

    def test_count_and_distinct(self, sqlite):
        """Count and distinct selects."""
        assert sqlite.count("T", [("Age", 3, ">")]).sql == (
            "SELECT COUNT(*) AS RecordCount FROM T WHERE Age > :p0;"
        )
        assert sqlite.select_distinct("T", "Age").sql == "SELECT DISTINCT Age FROM T;"
        assert sqlite.row_count_of("T").sql == "SELECT COUNT(*) AS RecordCount FROM T;"


class TestPagination:
    """Ordering and skip/take per dialect."""

    def test_limit_offset(self, sqlite):
        """SQLite pages with LIMIT/OFFSET."""
        options = QueryOptions(order_by="Name", order_by_descending=True, skip=20, take=10)
        statement = sqlite.select_with_options("T", [("Age", 18, ">=")], options)
        assert statement.sql == (
            "SELECT * FROM T WHERE Age >= :p0 ORDER BY Name DESC LIMIT 10 OFFSET 20;"
        )

    def test_skip_without_take(self, sqlite):
        """Skip alone needs an unbounded LIMIT."""
        statement = sqlite.select_with_options("T", None, QueryOptions(skip=5))
        assert statement.sql == "SELECT * FROM T LIMIT -1 OFFSET 5;"

    def test_projection_and_literal_mode(self, sqlite):
        """Options can project fields and switch to literals."""
        options = QueryOptions(select_fields=["Name"], use_parameterized_query=False)
        statement = sqlite.select_with_options("T", [("Name", "Ann")], options)
        assert statement.sql == "SELECT Name FROM T WHERE Name = 'Ann';"

    def test_sql_server_offset_fetch(self):
        """SQL Server needs an ORDER BY before OFFSET."""
        statement = SQLServerStrategy().select_with_options("T", None, QueryOptions(take=5))
        assert statement.sql == (
            "SELECT * FROM T ORDER BY (SELECT NULL) OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY;"
        )

    def test_oracle_offset_fetch(self):
        """Oracle pages with OFFSET/FETCH and has no terminator."""
        options = QueryOptions(order_by="Name", skip=2, take=3)
        statement = OracleStrategy().select_with_options("T", None, options)
        assert statement.sql == (
            "SELECT * FROM T ORDER BY Name OFFSET 2 ROWS FETCH NEXT 3 ROWS ONLY"
        )


class TestJoins:
    """Join shapes between a one-side and a many-side table."""

    def test_inner_join(self, sqlite):
        """The many side is the FROM table."""
        statement = sqlite.inner_join("Department", "Id", "Employee", "DepartmentId")
        assert statement.sql == (
            "SELECT * FROM Employee INNER JOIN Department "
            "ON Employee.DepartmentId = Department.Id;"
        )

    def test_projected_columns_are_aliased(self, sqlite):
        """Projected columns are aliased <table>_<column>."""
        statement = sqlite.left_join(
            "Department",
            "Id",
            "Employee",
            "DepartmentId",
            [("Employee", "Name"), ("Department", "Title")],
        )
        assert statement.sql == (
            "SELECT Employee.Name AS Employee_Name, Department.Title AS Department_Title "
            "FROM Employee LEFT OUTER JOIN Department "
            "ON Employee.DepartmentId = Department.Id;"
        )

    def test_sqlite_right_join_is_rewritten(self, sqlite):
        """SQLite swaps the tables and uses a LEFT join."""
        statement = sqlite.right_join("Department", "Id", "Employee", "DepartmentId")
        assert statement.sql == (
            "SELECT * FROM Department LEFT OUTER JOIN Employee "
            "ON Employee.DepartmentId = Department.Id;"
        )

    def test_right_join_elsewhere(self):
        """Other dialects emit RIGHT OUTER JOIN."""
        statement = PostgresStrategy().right_join("Department", "Id", "Employee", "DepartmentId")
        assert "FROM Employee RIGHT OUTER JOIN Department" in statement.sql


class TestDdl:
    """CREATE, DROP, ALTER and TRUNCATE."""

    def test_sqlite_create_table(self, sqlite):
        """A single integer key becomes the identity column."""
        assert sqlite.create_table(Person.definition()).sql == (
            "CREATE TABLE IF NOT EXISTS Person "
            "(Id INTEGER PRIMARY KEY AUTOINCREMENT,Name TEXT NOT NULL,Age INTEGER NOT NULL);"
        )

    def test_create_table_with_foreign_key(self, sqlite):
        """Foreign keys become table constraints."""
        sql = sqlite.create_table(Employee.definition()).sql
        assert "FOREIGN KEY (DepartmentId) REFERENCES Department(Id)" in sql
        assert "Salary NUMERIC," in sql
        assert "HiredOn DATE" in sql

    @pytest.mark.parametrize("dialect", ALL_DIALECTS)
    def test_foreign_keys_to_one_table_stay_separate(self, dialect):
        """Two columns referencing the same table get a constraint each."""
        sql = create_dialect(dialect).create_table(Ticket.definition()).sql
        assert sql.count("FOREIGN KEY") == 2
        assert "FOREIGN KEY (OpenedBy) REFERENCES Member(Id)" in sql
        assert "FOREIGN KEY (ClosedBy) REFERENCES Member(Id)" in sql

    def test_sql_server_create_table(self):
        """SQL Server uses IDENTITY and nvarchar(max)."""
        assert SQLServerStrategy().create_table(Person.definition()).sql == (
            "CREATE TABLE Person "
            "(Id bigint IDENTITY(1,1) PRIMARY KEY,Name nvarchar(max) NOT NULL,Age int NOT NULL);"
        )

    def test_mysql_text_keys_get_a_length(self):
        """MySQL cannot key a TEXT column."""
        schema = TableSchema.define(
            "Tag", {"Code": FieldDescriptor(name="Code", is_primary_key=True)}, with_id=False
        )
        assert "Code VARCHAR(255) NOT NULL" in MySQLStrategy().create_table(schema).sql

    def test_composite_primary_key(self, sqlite):
        """Several key fields give a table-level PRIMARY KEY."""
        schema = TableSchema(
            table_name="Link",
            fields=[
                FieldDescriptor(name="A", logical_type="Int32", is_primary_key=True),
                FieldDescriptor(name="B", logical_type="Int32", is_primary_key=True),
            ],
        )
        assert sqlite.create_table(schema).sql == (
            "CREATE TABLE IF NOT EXISTS Link (A INTEGER NOT NULL,B INTEGER NOT NULL,"
            "PRIMARY KEY (A, B));"
        )

    def test_create_table_requires_fields(self, sqlite):
        """Empty schemas are rejected."""
        with pytest.raises(DbValidationError):
            sqlite.create_table(TableSchema(table_name="Empty"))

    def test_ddl_is_not_parameterized(self, sqlite):
        """DDL goes to the driver untouched."""
        assert sqlite.create_table(Department.definition()).parameterized is False
        assert sqlite.drop_table("T").parameterized is False

    def test_drop_and_truncate(self, sqlite):
        """SQLite truncates with DELETE."""
        assert sqlite.drop_table("T").sql == "DROP TABLE IF EXISTS T;"
        assert sqlite.truncate_table("T").sql == "DELETE FROM T;"
        assert PostgresStrategy().truncate_table("T").sql == (
            "TRUNCATE TABLE T RESTART IDENTITY CASCADE;"
        )

    @pytest.mark.parametrize("dialect", ["sqlite", "mssql", "mysql", "oracle"])
    def test_alter_table_unsupported(self, dialect: str):
        """ALTER TABLE signals an unsupported operation."""
        with pytest.raises(UnsupportedOperationError) as exc_info:
            create_dialect(dialect).alter_table(Person.definition())
        assert exc_info.value.dialect == dialect

    def test_postgres_alter_table(self):
        """PostgreSQL adds missing non-key columns."""
        assert PostgresStrategy().alter_table(Person.definition()).sql == (
            "ALTER TABLE Person ADD COLUMN IF NOT EXISTS Name TEXT, "
            "ADD COLUMN IF NOT EXISTS Age INTEGER;"
        )


class TestLastInsertId:
    """Each dialect retrieves generated keys its own way."""

    def test_sqlite(self, sqlite):
        assert sqlite.last_insert_id("T").sql == "SELECT last_insert_rowid() AS LastId;"

    def test_sql_server(self):
        assert SQLServerStrategy().last_insert_id("T").sql == "SELECT @@IDENTITY AS LastId;"

    def test_mysql(self):
        assert MySQLStrategy().last_insert_id("T").sql == "SELECT LAST_INSERT_ID() AS LastId;"

    def test_oracle(self):
        assert OracleStrategy().last_insert_id("T").sql == "SELECT MAX(Id) AS LastId FROM T"

    def test_postgres_binds_folded_names(self):
        """Unquoted names are looked up in lower case."""
        statement = PostgresStrategy().last_insert_id("Person", "Id")
        assert "pg_get_serial_sequence(:table_name, :id_column)" in statement.sql
        assert statement.params == {"table_name": "person", "id_column": "id"}


class TestProcedures:
    """Stored procedure invocation."""

    def test_sqlite_unsupported(self, sqlite):
        """SQLite has no stored procedures."""
        with pytest.raises(UnsupportedOperationError):
            sqlite.call_procedure("Refresh")

    def test_sql_server_exec(self):
        """Arguments are passed by name."""
        statement = SQLServerStrategy(parameterized=False).call_procedure(
            "Refresh", {"Since": 3, "Name": "x"}
        )
        assert statement.sql == "EXEC Refresh @Since = 3, @Name = 'x';"

    def test_mysql_call(self):
        """Arguments are passed in order."""
        statement = MySQLStrategy().call_procedure("Refresh", {"Since": 3})
        assert statement.sql == "CALL Refresh(:p0);"
        assert statement.params == {"p0": 3}

    def test_oracle_block(self):
        """Oracle wraps the call in an anonymous block."""
        statement = OracleStrategy(parameterized=False).call_procedure("Refresh", {"Since": 3})
        assert statement.sql == "BEGIN Refresh(Since => 3); END;"


class TestMetadataStatements:
    """Metadata queries bind the table name."""

    @pytest.mark.parametrize("dialect", ALL_DIALECTS)
    def test_table_name_is_bound(self, dialect: str):
        """No table name is spliced into metadata SQL."""
        strategy = create_dialect(dialect)
        for statement in (
            strategy.columns_of("Person"),
            strategy.foreign_keys_of("Person"),
            strategy.table_exists("Person"),
        ):
            assert statement.params == {"table_name": "Person"}
            assert ":table_name" in statement.sql

    @pytest.mark.parametrize("dialect", ALL_DIALECTS)
    def test_list_tables_views_toggle(self, dialect: str):
        """Views are included on request."""
        strategy = create_dialect(dialect)
        assert strategy.list_tables(True).sql != strategy.list_tables(False).sql


class TestTypeMapping:
    """Logical and native type names, both ways."""

    @pytest.mark.parametrize(
        "dialect,expected",
        [
            ("sqlite", "TEXT"),
            ("mssql", "nvarchar"),
            ("mysql", "TEXT"),
            ("postgresql", "TEXT"),
            ("oracle", "NVARCHAR2(2000)"),
        ],
    )
    def test_string_type(self, dialect: str, expected: str):
        """String maps to each dialect's text type."""
        assert create_dialect(dialect).logical_to_native("String") == expected

    @pytest.mark.parametrize("dialect", ALL_DIALECTS)
    def test_unknown_logical_type(self, dialect: str):
        """Unmapped logical types are unsupported."""
        with pytest.raises(UnsupportedOperationError):
            create_dialect(dialect).logical_to_native("Hologram")

    @pytest.mark.parametrize(
        "strategy,native,expected",
        [
            (MySQLStrategy(), "tinyint(1)", "Boolean"),
            (MySQLStrategy(), "int(11) unsigned", "Int32"),
            (MySQLStrategy(), "varchar(255)", "String"),
            (OracleStrategy(), "NUMBER(1,0)", "Boolean"),
            (OracleStrategy(), "NUMBER(10,0)", "Int32"),
            (OracleStrategy(), "NUMBER(18,2)", "Decimal"),
            (OracleStrategy(), "TIMESTAMP(6)", "DateTime"),
            (PostgresStrategy(), "character varying", "String"),
            (PostgresStrategy(), "timestamp with time zone", "DateTimeOffset"),
            (SQLiteStrategy(), "BOOLEAN", "Boolean"),
            (SQLiteStrategy(), "VARCHAR(20)", "String"),
            (SQLServerStrategy(), "bit", "Boolean"),
            (SQLiteStrategy(), "GEOMETRY", "String"),
        ],
    )
    def test_native_to_logical(self, strategy, native: str, expected: str):
        """Native names, with or without size, map back to logical types."""
        assert strategy.native_to_logical(native) == expected
