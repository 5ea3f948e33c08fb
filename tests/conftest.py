import pytest

from jsonlog.config import SECTION, Config
from jsonlog.environment import Environment
from jsonlog.logger import JsonLog


@pytest.fixture
def log_dir(tmp_path):
    return tmp_path / "logs"


@pytest.fixture
def config(log_dir):
    """Isolated from os.environ; single log file, fixed site id."""
    cfg = Config(environ={})
    cfg.set(SECTION, "path", str(log_dir))
    cfg.set(SECTION, "siteid", "testsite")
    cfg.set(SECTION, "file_time", "none")
    return cfg


@pytest.fixture
def cli_env():
    return Environment(cli=True, argv=("app.py", "run"), hostname="worker-1")


@pytest.fixture
def wsgi_environ():
    return {
        "REQUEST_METHOD": "post",
        "SERVER_NAME": "example.com",
        "SERVER_PORT": "8080",
        "SCRIPT_NAME": "",
        "PATH_INFO": "/checkout",
        "QUERY_STRING": "step=2",
        "REMOTE_ADDR": "10.0.0.5",
        "HTTP_REFERER": "https://example.com/cart",
        "HTTP_USER_AGENT": "Mozilla/5.0 (X11; Linux x86_64)",
    }


@pytest.fixture
def request_env(wsgi_environ):
    return Environment.from_wsgi(wsgi_environ)


@pytest.fixture
def json_log(config, cli_env, log_dir):
    log_dir.mkdir(parents=True, exist_ok=True)
    return JsonLog(config, cli_env)


@pytest.fixture
def log_file(log_dir):
    return log_dir / "testsite.json.log"
