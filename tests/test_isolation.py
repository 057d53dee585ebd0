import gc
import threading

from tenantsql.storage.rowstore import PHYSICAL_TABLE


def test_same_table_name_for_two_owners(engine, run, owner, other_owner):
    run("CREATE TABLE users (id INTEGER, name TEXT)")
    run("CREATE TABLE users (id INTEGER, email TEXT)", owner_id=other_owner)
    run("INSERT INTO users (id, name) VALUES (1, 'mine')")
    run("INSERT INTO users (id, email) VALUES (1, 'theirs@x'), (2, 'also@x')", owner_id=other_owner)

    assert run("SELECT * FROM users") == [{"id": 1, "name": "mine"}]
    assert len(run("SELECT * FROM users", owner_id=other_owner)) == 2


def test_tables_of_another_owner_are_invisible(engine, run, fail, owner, other_owner):
    run("CREATE TABLE secrets (v TEXT)")
    run("INSERT INTO secrets (v) VALUES ('x')")
    res = fail("SELECT * FROM secrets", owner_id=other_owner)
    assert res.error_kind == "not_found"
    assert engine.list_tables(other_owner) == []
    assert [t.display_name for t in engine.list_tables(owner)] == ["secrets"]


def test_writes_and_drops_stay_in_their_namespace(run, owner, other_owner):
    for who in (owner, other_owner):
        run("CREATE TABLE items (v INTEGER)", owner_id=who)
        run("INSERT INTO items (v) VALUES (1), (2)", owner_id=who)

    run("DELETE FROM items WHERE v = 1")
    run("UPDATE items SET v = 99")
    assert run("SELECT v FROM items", owner_id=other_owner) == [{"v": 1}, {"v": 2}]

    run("DROP TABLE items")
    assert len(run("SELECT * FROM items", owner_id=other_owner)) == 2

    run("ALTER TABLE items RENAME TO things", owner_id=other_owner)
    run("CREATE TABLE items (v INTEGER)")
    assert run("SELECT * FROM items") == []


def test_user_ddl_never_touches_physical_schema(engine, run):
    before = engine.store.physical_table_names()
    assert before == {PHYSICAL_TABLE}
    run("CREATE TABLE a (x INTEGER)")
    run("ALTER TABLE a ADD COLUMN y TEXT")
    run("ALTER TABLE a RENAME TO b")
    run("DROP TABLE b")
    assert engine.store.physical_table_names() == before


def test_sql_cannot_name_the_physical_table(fail):
    assert fail(f"SELECT * FROM {PHYSICAL_TABLE}").error_kind == "not_found"


def test_owner_id_is_required(engine):
    res = engine.execute("SELECT 1", "")
    assert not res.success
    assert res.error_kind == "validation"


def test_concurrent_inserts_for_one_owner(engine, run, owner):
    run("CREATE TABLE hits (id SERIAL PRIMARY KEY, worker INTEGER)")
    errors = []

    def work(n):
        for _ in range(5):
            res = engine.execute("INSERT INTO hits (worker) VALUES ({{n}})", owner, {"n": n})
            if not res.success:
                errors.append(res.error)

    threads = [threading.Thread(target=work, args=(n,)) for n in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert errors == []
    ids = sorted(r["id"] for r in run("SELECT id FROM hits"))
    assert ids == list(range(1, 21))


def test_owner_locks_are_released_after_use(engine, run):
    for n in range(20):
        run("SELECT 1 AS one", owner_id=f"tenant-{n}")
    gc.collect()
    assert len(engine._locks) == 0
