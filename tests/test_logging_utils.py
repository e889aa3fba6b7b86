import logging

from nim_proxy.logging_utils import configure_logging


def test_configure_logging_honours_env_override(monkeypatch, tmp_path):
    target_dir = tmp_path / "logs"
    monkeypatch.setenv("NIM_PROXY_LOG_DIR", str(target_dir))

    log_path = configure_logging("unit_test", include_console=False)
    logging.getLogger(__name__).info("env override works")

    assert log_path == target_dir / "unit_test.log"
    assert log_path.exists()
    assert "env override works" in log_path.read_text()


def test_configure_logging_replaces_previous_handlers(tmp_path):
    first_dir = tmp_path / "logs"
    second_dir = tmp_path / "alt_logs"

    first_path = configure_logging("first_run", log_dir=first_dir, include_console=False)
    logging.getLogger(__name__).info("first run entry")
    assert "first run entry" in first_path.read_text()

    second_path = configure_logging(
        "second_run", log_dir=second_dir, include_console=False
    )
    logging.getLogger(__name__).info("second run entry")
    assert second_path == second_dir / "second_run.log"
    assert "second run entry" in second_path.read_text()

    # The first log is not appended to after reconfiguration
    assert "second run entry" not in first_path.read_text()


def test_uvicorn_loggers_are_routed_to_the_log_file(tmp_path):
    server_logger = logging.getLogger("uvicorn.error")
    stray = logging.NullHandler()
    server_logger.addHandler(stray)
    server_logger.propagate = False

    log_path = configure_logging("server", log_dir=tmp_path, include_console=False)
    server_logger.info("Uvicorn running")
    logging.getLogger("uvicorn.access").info('"GET /health HTTP/1.1" 200')

    text = log_path.read_text()
    assert stray not in server_logger.handlers
    assert "uvicorn.error: Uvicorn running" in text
    assert "GET /health" in text


def test_upstream_client_logs_hidden_unless_debugging(tmp_path):
    log_path = configure_logging("quiet", log_dir=tmp_path, include_console=False)
    logging.getLogger("httpx").info("HTTP Request: POST https://upstream.test")
    assert "HTTP Request" not in log_path.read_text()

    log_path = configure_logging(
        "verbose", log_dir=tmp_path, level=logging.DEBUG, include_console=False
    )
    logging.getLogger("httpx").info("HTTP Request: POST https://upstream.test")
    assert "HTTP Request" in log_path.read_text()


def test_access_log_can_be_switched_off(tmp_path):
    log_path = configure_logging(
        "no_access", log_dir=tmp_path, include_console=False, access_log=False
    )
    logging.getLogger("uvicorn.access").info('"GET / HTTP/1.1" 200')
    logging.getLogger("uvicorn.error").warning("still here")

    text = log_path.read_text()
    assert "GET /" not in text
    assert "still here" in text
