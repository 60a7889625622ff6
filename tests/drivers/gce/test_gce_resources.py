from __future__ import annotations

import pytest
from gce_fakes import BASE, PROJECT, REGION, ZONE, fake_clients

from roachdeploy.drivers.gce.operations import OperationPoller
from roachdeploy.drivers.gce.resources import (
    BACKEND_SERVICE_NAME,
    FIREWALL_NAME,
    FORWARDING_RULE_NAME,
    HEALTH_CHECK_NAME,
    HTTP_PROXY_NAME,
    INSTANCE_GROUP_NAME,
    URL_MAP_NAME,
    ClusterResources,
)
from roachdeploy.exceptions import OperationError

INSTANCE = f"{BASE}/zones/{ZONE}/instances/cockroach-0"


@pytest.fixture
def clients():
    return fake_clients()


@pytest.fixture
def resources(clients) -> ClusterResources:
    poller = OperationPoller(clients, PROJECT, REGION, ZONE, timeout=0, sleep=lambda _: None)
    return ClusterResources(clients, poller, PROJECT, ZONE, 26257, "default")


def inserted_names(clients) -> list[str]:
    collections = [
        clients.firewalls,
        clients.instance_groups,
        clients.http_health_checks,
        clients.backend_services,
        clients.url_maps,
        clients.target_http_proxies,
        clients.global_forwarding_rules,
    ]
    return [r.name for c in collections for r in c.inserted]


class TestFindOrCreate:
    def test_firewall(self, resources, clients):
        link = resources.ensure_firewall()
        assert link == f"{BASE}/global/firewalls/{FIREWALL_NAME}"
        (fw,) = clients.firewalls.inserted
        assert fw.allowed[0].I_p_protocol == "tcp"
        assert list(fw.allowed[0].ports) == ["26257"]
        assert list(fw.source_ranges) == ["0.0.0.0/0"]
        assert fw.network == "global/networks/default"

    def test_twice_creates_once_and_returns_same_link(self, resources, clients):
        first = resources.ensure_firewall()
        second = resources.ensure_firewall()
        assert first == second
        assert len(clients.firewalls.inserted) == 1

    def test_instance_group_named_port(self, resources, clients):
        resources.ensure_instance_group()
        (group,) = clients.instance_groups.inserted
        assert group.named_ports[0].name == "http"
        assert group.named_ports[0].port == 26257

    def test_health_check(self, resources, clients):
        resources.ensure_health_check()
        (hc,) = clients.http_health_checks.inserted
        assert hc.port == 26257
        assert hc.check_interval_sec == 2
        assert hc.timeout_sec == 1
        assert hc.healthy_threshold == 2
        assert hc.unhealthy_threshold == 2

    def test_insert_error_surfaces(self, resources, clients):
        clients.firewalls.insert_error = ("QUOTA_EXCEEDED", "quota")
        with pytest.raises(OperationError, match="QUOTA_EXCEEDED"):
            resources.ensure_firewall()


class TestProvision:
    def test_chain_order_and_links(self, resources, clients):
        links = resources.provision()
        assert inserted_names(clients) == [
            FIREWALL_NAME,
            INSTANCE_GROUP_NAME,
            HEALTH_CHECK_NAME,
            BACKEND_SERVICE_NAME,
            URL_MAP_NAME,
            HTTP_PROXY_NAME,
            FORWARDING_RULE_NAME,
        ]
        (backend,) = clients.backend_services.inserted
        assert list(backend.health_checks) == [links.health_check]
        assert backend.backends[0].group == links.instance_group
        assert backend.port_name == "http"
        assert clients.url_maps.inserted[0].default_service == links.backend_service
        assert clients.target_http_proxies.inserted[0].url_map == links.url_map
        rule = clients.global_forwarding_rules.inserted[0]
        assert rule.target == links.http_proxy
        assert rule.port_range == "26257"

    def test_repeat_is_noop(self, resources, clients):
        first = resources.provision()
        second = resources.provision()
        assert first == second
        assert len(inserted_names(clients)) == 7

    def test_resumes_after_partial_failure(self, resources, clients):
        clients.url_maps.insert_error = ("INTERNAL", "boom")
        with pytest.raises(OperationError):
            resources.provision()
        assert clients.target_http_proxies.inserted == []

        clients.url_maps.insert_error = None
        resources.provision()
        assert inserted_names(clients).count(FIREWALL_NAME) == 1
        assert inserted_names(clients).count(BACKEND_SERVICE_NAME) == 1
        assert inserted_names(clients)[-1] == FORWARDING_RULE_NAME


class TestLookups:
    def test_forwarding_address(self, resources):
        assert resources.forwarding_address() is None
        resources.provision()
        assert resources.forwarding_address() == "34.120.0.1"

    def test_existing(self, resources):
        assert set(resources.existing().values()) == {None}
        resources.ensure_firewall()
        found = resources.existing()
        assert found[FIREWALL_NAME] == f"{BASE}/global/firewalls/{FIREWALL_NAME}"
        assert found[URL_MAP_NAME] is None


class TestGroupMembership:
    def test_add_and_remove(self, resources, clients):
        resources.ensure_instance_group()
        assert resources.add_to_group(INSTANCE) is True
        assert resources.group_members() == [INSTANCE]
        assert resources.remove_from_group(INSTANCE) is True
        assert resources.group_members() == []

    def test_add_twice_is_noop(self, resources, clients):
        resources.ensure_instance_group()
        resources.add_to_group(INSTANCE)
        assert resources.add_to_group(INSTANCE) is False
        assert clients.instance_groups.adds == 1

    def test_remove_non_member_is_noop(self, resources, clients):
        resources.ensure_instance_group()
        assert resources.remove_from_group(INSTANCE) is False
        assert clients.instance_groups.removes == 0
