import pytest

from overlay_engine.runtime import EngineConfig, RebuildPolicy
from overlay_engine.runtime.events import EventBus


def test_defaults_match_code_runner_blocks() -> None:
    config = EngineConfig()

    assert config.block_kinds == ("code_block", "code_fence")
    assert config.languages == ("python", "py")
    assert config.rebuild_policy is RebuildPolicy.ANY_CHANGE


def test_from_env_overrides() -> None:
    config = EngineConfig.from_env(
        {
            "OVERLAY_ENGINE_LANGUAGES": "python, py, python3",
            "OVERLAY_ENGINE_BLOCK_KINDS": "code_fence",
            "OVERLAY_ENGINE_REBUILD_POLICY": "touched",
        }
    )

    assert config.languages == ("python", "py", "python3")
    assert config.block_kinds == ("code_fence",)
    assert config.rebuild_policy is RebuildPolicy.TOUCHED_BLOCKS


def test_from_env_without_variables_keeps_defaults() -> None:
    assert EngineConfig.from_env({}) == EngineConfig()


def test_policy_accepts_string_values() -> None:
    config = EngineConfig(rebuild_policy="touched_blocks")  # type: ignore[arg-type]

    assert config.rebuild_policy is RebuildPolicy.TOUCHED_BLOCKS
    with pytest.raises(ValueError):
        RebuildPolicy.parse("sometimes")


def test_empty_block_kinds_rejected() -> None:
    with pytest.raises(ValueError):
        EngineConfig(block_kinds=())


def test_event_bus_unsubscribe() -> None:
    bus = EventBus()
    seen = []

    def callback(payload: object) -> None:
        seen.append(payload)

    bus.subscribe("overlay.built", callback)
    bus.emit("overlay.built", 1)
    bus.unsubscribe("overlay.built", callback)
    bus.emit("overlay.built", 2)

    assert seen == [1]
