from tenantsql import EngineConfig


def test_defaults():
    cfg = EngineConfig()
    assert cfg.MAX_RESULT_ROWS == 50_000
    assert cfg.MAX_CTE_ITERATIONS == 1_000
    assert cfg.locale == "en"


def test_from_env_reads_prefixed_variables(monkeypatch):
    monkeypatch.setenv("TENANTSQL_MAX_RESULT_ROWS", "10")
    monkeypatch.setenv("TENANTSQL_LOCALE", "pt")
    monkeypatch.setenv("TENANTSQL_DATABASE_URL", "sqlite://")
    cfg = EngineConfig.from_env(dotenv=False)
    assert cfg.MAX_RESULT_ROWS == 10
    assert cfg.locale == "pt"
    assert cfg.database_url == "sqlite://"
    assert cfg.MAX_JOIN_TABLES == 5


def test_from_env_ignores_bad_integers(monkeypatch):
    monkeypatch.setenv("TENANTSQL_MAX_CTE_ITERATIONS", "lots")
    cfg = EngineConfig.from_env(dotenv=False)
    assert cfg.MAX_CTE_ITERATIONS == 1_000
