"""Engine configuration and environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .telemetry import ENV_PREFIX

DEFAULT_BLOCK_KINDS = ("code_block", "code_fence")
DEFAULT_LANGUAGES = ("python", "py")
DEFAULT_CONTAINER_CLASS = "code-runner-container"


class RebuildPolicy(str, Enum):
    """When a content-changing transaction forces a full rescan."""

    ANY_CHANGE = "any"
    TOUCHED_BLOCKS = "touched"

    @classmethod
    def parse(cls, value: str) -> "RebuildPolicy":
        key = value.strip().lower()
        for policy in cls:
            if policy.value == key or policy.name.lower() == key:
                return policy
        raise ValueError(f"Unknown rebuild policy '{value}'.")


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(dict.fromkeys(item.strip() for item in raw.split(",") if item.strip()))


@dataclass(frozen=True, slots=True)
class EngineConfig:
    block_kinds: tuple[str, ...] = DEFAULT_BLOCK_KINDS
    languages: tuple[str, ...] = DEFAULT_LANGUAGES
    rebuild_policy: RebuildPolicy = RebuildPolicy.ANY_CHANGE
    container_class: str = DEFAULT_CONTAINER_CLASS

    def __post_init__(self) -> None:
        if not self.block_kinds:
            raise ValueError("block_kinds cannot be empty")
        object.__setattr__(self, "block_kinds", tuple(self.block_kinds))
        object.__setattr__(self, "languages", tuple(self.languages))
        if isinstance(self.rebuild_policy, str):
            object.__setattr__(
                self, "rebuild_policy", RebuildPolicy.parse(self.rebuild_policy)
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from ``OVERLAY_ENGINE_*`` variables, keeping defaults."""

        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        languages = env.get(f"{ENV_PREFIX}LANGUAGES")
        if languages is not None:
            kwargs["languages"] = _split_csv(languages)
        kinds = env.get(f"{ENV_PREFIX}BLOCK_KINDS")
        if kinds:
            kwargs["block_kinds"] = _split_csv(kinds)
        policy = env.get(f"{ENV_PREFIX}REBUILD_POLICY")
        if policy:
            kwargs["rebuild_policy"] = RebuildPolicy.parse(policy)
        container_class = env.get(f"{ENV_PREFIX}CONTAINER_CLASS")
        if container_class:
            kwargs["container_class"] = container_class
        return cls(**kwargs)  # type: ignore[arg-type]


__all__ = [
    "DEFAULT_BLOCK_KINDS",
    "DEFAULT_CONTAINER_CLASS",
    "DEFAULT_LANGUAGES",
    "EngineConfig",
    "RebuildPolicy",
]
