"""
Provider catalog: generation mode -> (provider, credit cost, payload rule).

Cost is charged per attempt, not per success; a regenerate is a new dispatch.
"""
from dataclasses import dataclass, field
from typing import Any, Callable

from app.services.generations.errors import InvalidModeParams, UnknownGenerationMode

PayloadBuilder = Callable[[str, str, dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class ModeParam:
    """Numeric tuning parameter accepted by a mode."""
    name: str
    default: float
    minimum: float
    maximum: float
    integer: bool = False

    def coerce(self, value: Any) -> float | int:
        if isinstance(value, bool):
            raise InvalidModeParams(f"{self.name} must be a number", detail={"param": self.name})
        try:
            number = int(value) if self.integer else float(value)
        except (TypeError, ValueError):
            raise InvalidModeParams(f"{self.name} must be a number", detail={"param": self.name}) from None
        if self.integer and float(value) != number:
            raise InvalidModeParams(f"{self.name} must be an integer", detail={"param": self.name})
        if not (self.minimum <= number <= self.maximum):
            raise InvalidModeParams(
                f"{self.name} must be between {self.minimum} and {self.maximum}",
                detail={"param": self.name, "value": value},
            )
        return number


@dataclass(frozen=True)
class GenerationMode:
    name: str
    provider: str
    cost: int
    build_payload: PayloadBuilder
    model: str | None = None
    params: tuple[ModeParam, ...] = field(default_factory=tuple)

    def resolve_params(self, raw: dict[str, Any] | None) -> dict[str, Any]:
        """Validate caller params against this mode and fill defaults."""
        raw = dict(raw or {})
        known = {p.name for p in self.params}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise InvalidModeParams(
                f"Unsupported parameters for mode {self.name}: {', '.join(unknown)}",
                detail={"mode": self.name, "params": unknown},
            )
        resolved: dict[str, Any] = {}
        for param in self.params:
            if param.name in raw and raw[param.name] is not None:
                resolved[param.name] = param.coerce(raw[param.name])
            else:
                resolved[param.name] = int(param.default) if param.integer else param.default
        return resolved


def replicate_i2v_payload(image_url: str, prompt: str, params: dict[str, Any]) -> dict[str, Any]:
    return {"image": image_url, "prompt": prompt}


def video_api_payload(image_url: str, prompt: str, params: dict[str, Any]) -> dict[str, Any]:
    return {
        "image_url": image_url,
        "prompt": prompt,
        "sample_steps": params["sample_steps"],
        "sample_guide_scale": params["sample_guide_scale"],
    }


class ProviderCatalog:
    """Static table of generation modes."""

    def __init__(self, modes: list[GenerationMode]):
        self._modes = {m.name: m for m in modes}

    def get(self, mode: str) -> GenerationMode:
        entry = self._modes.get((mode or "").strip().lower())
        if entry is None:
            raise UnknownGenerationMode(
                f"Unknown generation mode: {mode}",
                detail={"mode": mode, "available": self.names()},
            )
        return entry

    def cost_for(self, mode: str) -> int:
        return self.get(mode).cost

    def names(self) -> list[str]:
        return sorted(self._modes)

    @classmethod
    def from_settings(cls, settings) -> "ProviderCatalog":
        return cls([
            GenerationMode(
                name="standard",
                provider="replicate",
                cost=settings.standard_mode_cost,
                model=settings.replicate_standard_model,
                build_payload=replicate_i2v_payload,
            ),
            GenerationMode(
                name="premium",
                provider="video_api",
                cost=settings.premium_mode_cost,
                build_payload=video_api_payload,
                params=(
                    ModeParam("sample_steps", default=30, minimum=1, maximum=40, integer=True),
                    ModeParam("sample_guide_scale", default=5.0, minimum=0.0, maximum=10.0),
                ),
            ),
        ])
