from datetime import timedelta

import pytest

from app_runner.errors import RemoteError
from app_runner.receptor import DesiredLRPCreateRequest, DesiredLRPResponse, DesiredLRPUpdateRequest
from app_runner.runner import AppRunner


class FakeSchedulerClient:
    """In-memory scheduler that records every call made to it."""

    def __init__(self):
        self.records: dict[str, DesiredLRPResponse] = {}
        self.calls: list[tuple] = []
        self.fail_on: dict[str, RemoteError] = {}

    def _call(self, name, *args):
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise self.fail_on[name]

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] in ("upsert_domain", "create_desired_lrp", "update_desired_lrp", "delete_desired_lrp")]

    def desired_lrps(self):
        self._call("desired_lrps")
        return list(self.records.values())

    def get_desired_lrp(self, process_guid):
        self._call("get_desired_lrp", process_guid)
        return self.records.get(process_guid)

    def upsert_domain(self, domain, ttl=timedelta(0)):
        self._call("upsert_domain", domain, ttl)

    def create_desired_lrp(self, request: DesiredLRPCreateRequest):
        self._call("create_desired_lrp", request)
        self.records[request.process_guid] = DesiredLRPResponse.model_validate(request.model_dump(by_alias=True))

    def update_desired_lrp(self, process_guid, update: DesiredLRPUpdateRequest):
        self._call("update_desired_lrp", process_guid, update)
        record = self.records[process_guid]
        self.records[process_guid] = record.model_copy(update=update.model_dump(exclude_none=True))

    def delete_desired_lrp(self, process_guid):
        self._call("delete_desired_lrp", process_guid)
        del self.records[process_guid]


@pytest.fixture
def fake_client():
    return FakeSchedulerClient()


@pytest.fixture
def runner(fake_client):
    return AppRunner(
        fake_client,
        "example.com",
        healthcheck_download_url="http://file-server.example.com/v1/static/healthcheck.tgz",
    )
