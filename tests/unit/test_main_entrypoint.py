from routeros_gateway import main as main_module
from routeros_gateway.config import Settings


def test_main_serves_app(monkeypatch):
    settings = Settings(_env_file=None, http_port=4010, log_format="text")
    calls = {}

    monkeypatch.setattr(main_module, "load_config_from_cli", lambda: settings)
    monkeypatch.setattr(
        main_module, "setup_logging", lambda **kwargs: calls.setdefault("logging", kwargs)
    )
    monkeypatch.setattr(
        main_module, "setup_tracing", lambda **kwargs: calls.setdefault("tracing", kwargs)
    )

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls["run"] = kwargs

    monkeypatch.setattr(main_module.uvicorn, "run", fake_run)

    assert main_module.main() == 0
    assert calls["logging"] == {"level": "INFO", "json_format": False}
    assert calls["tracing"] == {"console_export": False}
    assert calls["run"]["port"] == 4010
    assert calls["run"]["log_config"] is None
    assert calls["app"].title == "RouterOS Gateway"


def test_main_reports_configuration_error(monkeypatch, capsys):
    def bad_config():
        raise ValueError("pending_timeout must be a RouterOS duration")

    monkeypatch.setattr(main_module, "load_config_from_cli", bad_config)

    assert main_module.main() == 1
    assert "Configuration error" in capsys.readouterr().err


def test_main_reports_missing_file(monkeypatch, capsys):
    def missing():
        raise FileNotFoundError("Config file not found: gateway.yaml")

    monkeypatch.setattr(main_module, "load_config_from_cli", missing)

    assert main_module.main() == 1
    assert "gateway.yaml" in capsys.readouterr().err
