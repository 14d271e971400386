import pytest

from tracegate.config import config
from tracegate.events.channel import EventChannel
from tracegate.runtime.settings import ChannelSettings, WorkloadSettings
from tracegate.workload.http_workload import HttpWorkload

from todo_service import TodoService


@pytest.fixture(autouse=True)
def restore_config():
    saved = (config.enable_logging, config.logs_dir, config.session_id)
    yield
    config.enable_logging, config.logs_dir, config.session_id = saved


@pytest.fixture
def channel():
    ch = EventChannel(ChannelSettings(flush_timeout_sec=10.0), name="test")
    yield ch
    ch.close()


@pytest.fixture
def service(channel):
    svc = TodoService(channel)
    yield svc
    svc.close()


@pytest.fixture
def make_workload(service):
    created = []

    def _make(path_prefix="", seed=7):
        wl = HttpWorkload(
            WorkloadSettings(base_url="http://localhost:8081", path_prefix=path_prefix),
            seed=seed,
            transport=service.transport,
        )
        created.append(wl)
        return wl

    yield _make
    for wl in created:
        wl.close()
