import asyncio
from pathlib import Path

import pytest

from autopilot.dispatcher import DispatchOutcome, build_dispatcher

from conftest import RecordingActuator, package_event


class ExplodingActuator(RecordingActuator):
    async def run_command(self, *args):
        raise FileNotFoundError("docker")


@pytest.mark.asyncio
async def test_unknown_token_does_nothing(app_config, actuator):
    dispatcher = build_dispatcher(app_config, actuator)
    assert dispatcher.dispatch("unknown-token", package_event()) is DispatchOutcome.UNKNOWN_TOKEN
    await dispatcher.drain()
    assert actuator.calls == []
    assert not dispatcher.gate.is_held("abc")
    assert not dispatcher.gate.is_held("flt")


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [None, {}, {"action": "published"}, {"registry_package": "web"}, ["web"]])
async def test_malformed_payload_does_nothing(app_config, actuator, payload):
    dispatcher = build_dispatcher(app_config, actuator)
    assert dispatcher.dispatch("abc", payload) is DispatchOutcome.MALFORMED
    await dispatcher.drain()
    assert actuator.calls == []
    assert not dispatcher.gate.is_held("abc")


@pytest.mark.asyncio
async def test_package_outside_filter_does_nothing(app_config, actuator):
    dispatcher = build_dispatcher(app_config, actuator)
    assert dispatcher.dispatch("flt", package_event("docs")) is DispatchOutcome.FILTERED
    await dispatcher.drain()
    assert actuator.calls == []


@pytest.mark.asyncio
async def test_package_inside_filter_redeploys(app_config, actuator):
    dispatcher = build_dispatcher(app_config, actuator)
    assert dispatcher.dispatch("flt", package_event("worker")) is DispatchOutcome.ACCEPTED
    await dispatcher.drain()
    assert actuator.calls[0] == ("docker", "compose", "-f", str(Path("/srv/filtered/compose.yml")), "pull")


@pytest.mark.asyncio
async def test_deny_mode_inverts_filter(app_config, actuator):
    config = app_config.model_copy(update={"package_filter_mode": "deny"})
    dispatcher = build_dispatcher(config, actuator)
    assert dispatcher.dispatch("flt", package_event("worker")) is DispatchOutcome.FILTERED
    assert dispatcher.dispatch("flt", package_event("docs")) is DispatchOutcome.ACCEPTED
    await dispatcher.drain()
    assert actuator.sequences == 1


@pytest.mark.asyncio
async def test_burst_collapses_to_one_redeploy(app_config):
    actuator = RecordingActuator(settle_delay=0.05)
    dispatcher = build_dispatcher(app_config, actuator)
    outcomes = [dispatcher.dispatch("abc", package_event()) for _ in range(5)]
    assert outcomes.count(DispatchOutcome.ACCEPTED) == 1
    assert outcomes.count(DispatchOutcome.ALREADY_RUNNING) == 4
    assert dispatcher.gate.is_held("abc")
    await dispatcher.drain()
    assert actuator.events == ["pull", "restart"]
    assert not dispatcher.gate.is_held("abc")


@pytest.mark.asyncio
async def test_gate_released_after_sequence(app_config, actuator):
    dispatcher = build_dispatcher(app_config, actuator)
    assert dispatcher.dispatch("abc", package_event()) is DispatchOutcome.ACCEPTED
    await dispatcher.drain()
    assert dispatcher.dispatch("abc", package_event()) is DispatchOutcome.ACCEPTED
    await dispatcher.drain()
    assert actuator.sequences == 2


@pytest.mark.asyncio
async def test_gate_released_after_failed_commands(app_config):
    actuator = RecordingActuator(returncodes={"pull": 1, "restart": 2})
    dispatcher = build_dispatcher(app_config, actuator)
    dispatcher.dispatch("abc", package_event())
    await dispatcher.drain()
    assert not dispatcher.gate.is_held("abc")
    assert dispatcher.dispatch("abc", package_event()) is DispatchOutcome.ACCEPTED
    await dispatcher.drain()


@pytest.mark.asyncio
async def test_gate_released_when_actuator_raises(app_config, caplog):
    dispatcher = build_dispatcher(app_config, ExplodingActuator())
    with caplog.at_level("ERROR", logger="autopilot.dispatcher"):
        assert dispatcher.dispatch("abc", package_event()) is DispatchOutcome.ACCEPTED
        await dispatcher.drain()
    assert not dispatcher.gate.is_held("abc")
    assert "Redeploy of" in caplog.text
    assert "FileNotFoundError" in caplog.text


@pytest.mark.asyncio
async def test_projects_do_not_block_each_other(app_config):
    actuator = RecordingActuator(settle_delay=0.05)
    dispatcher = build_dispatcher(app_config, actuator)
    assert dispatcher.dispatch("abc", package_event()) is DispatchOutcome.ACCEPTED
    assert dispatcher.dispatch("flt", package_event("web")) is DispatchOutcome.ACCEPTED
    assert dispatcher.pending == 2
    await dispatcher.drain()
    targets = {call[3] for call in actuator.calls}
    assert targets == {str(Path("/srv/app/docker-compose.yaml")), str(Path("/srv/filtered/compose.yml"))}
    assert actuator.sequences == 2


@pytest.mark.asyncio
async def test_concurrent_handlers_one_winner(app_config):
    actuator = RecordingActuator(settle_delay=0.05)
    dispatcher = build_dispatcher(app_config, actuator)

    async def handler():
        await asyncio.sleep(0)
        return dispatcher.dispatch("abc", package_event())

    outcomes = await asyncio.gather(*[handler() for _ in range(20)])
    await dispatcher.drain()
    assert outcomes.count(DispatchOutcome.ACCEPTED) == 1
    assert actuator.sequences == 1


def test_dispatch_outside_event_loop_releases_gate(app_config, actuator):
    dispatcher = build_dispatcher(app_config, actuator)
    with pytest.raises(RuntimeError):
        dispatcher.dispatch("abc", package_event())
    assert not dispatcher.gate.is_held("abc")
