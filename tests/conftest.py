import pytest

from tenantsql import EngineConfig, SqlEngine


@pytest.fixture
def engine(tmp_path):
    eng = SqlEngine.open(f"sqlite:///{tmp_path}/tenantsql.db", EngineConfig())
    yield eng
    eng.close()


@pytest.fixture
def owner():
    return "owner-a"


@pytest.fixture
def other_owner():
    return "owner-b"


@pytest.fixture
def run(engine, owner):
    """Execute SQL as `owner`, assert success and return the rows (or the result without rows)."""

    def _run(sql, variables=None, owner_id=None):
        res = engine.execute(sql, owner_id or owner, variables)
        assert res.success, res.error
        return res.rows if res.rows is not None else res

    return _run


@pytest.fixture
def fail(engine, owner):
    """Execute SQL as `owner`, assert failure and return the ExecutionResult."""

    def _fail(sql, variables=None, owner_id=None):
        res = engine.execute(sql, owner_id or owner, variables)
        assert not res.success, res
        return res

    return _fail


@pytest.fixture
def employees(run):
    run(
        "CREATE TABLE employees (id INTEGER PRIMARY KEY, name VARCHAR(50) NOT NULL, "
        "dept VARCHAR(20), salary INTEGER, manager_id INTEGER)"
    )
    run(
        "INSERT INTO employees (id, name, dept, salary, manager_id) VALUES "
        "(1, 'Alice', 'eng', 120, NULL), "
        "(2, 'Bob', 'eng', 100, 1), "
        "(3, 'Carol', 'sales', 90, 1), "
        "(4, 'Dave', 'sales', 80, 3), "
        "(5, 'Eve', 'ops', 70, 1)"
    )
    return "employees"
