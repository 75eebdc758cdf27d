"""
Fill light presentation state.

Owned by the UI layer; the capture core never reads it. Presets and filters
only change the panel color and the selection shown in the UI, never the
pixels of a captured photo.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Mapping, Tuple

from PIL import Image

RGB = Tuple[int, int, int]

MIN_BRIGHTNESS = 0.3
MAX_BRIGHTNESS = 1.0
DEFAULT_BRIGHTNESS = 0.7


def _rgb(r: float, g: float, b: float) -> RGB:
    return round(r * 255), round(g * 255), round(b * 255)


class PresetLight(Enum):
    NATURAL = "natural"
    WARM = "warm"
    COOL = "cool"
    PEACH = "peach"
    CUSTOM = "custom"

    @property
    def color(self) -> RGB:
        return _PRESET_COLORS[self]


_PRESET_COLORS = {
    PresetLight.NATURAL: _rgb(1, 0.9, 0.9),
    PresetLight.WARM: _rgb(1, 0.85, 0.85),
    PresetLight.COOL: _rgb(0.95, 0.9, 0.95),
    PresetLight.PEACH: _rgb(1, 0.8, 0.8),
    PresetLight.CUSTOM: _rgb(1, 0.9, 0.9),
}


class FilterType(Enum):
    NONE = "none"
    SMOOTH = "smooth"
    FRESH = "fresh"
    WARM = "warm"
    COOL = "cool"

    @property
    def intensity(self) -> float:
        return _FILTER_INTENSITY[self]


_FILTER_INTENSITY = {
    FilterType.NONE: 0.0,
    FilterType.SMOOTH: 0.3,
    FilterType.FRESH: 0.4,
    FilterType.WARM: 0.5,
    FilterType.COOL: 0.4,
}


def parse_color(value: Any) -> RGB:
    """Accept `#rrggbb` (what an HTML color input posts) or an `[r, g, b]` list."""
    if isinstance(value, str):
        text = value.lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Invalid color: {value!r}")
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    r, g, b = value
    return int(r), int(g), int(b)


def clamp_brightness(value: float) -> float:
    return max(MIN_BRIGHTNESS, min(MAX_BRIGHTNESS, float(value)))


@dataclass(frozen=True)
class FillLightSettings:
    background_color: RGB = PresetLight.NATURAL.color
    brightness: float = DEFAULT_BRIGHTNESS
    preset: PresetLight = PresetLight.NATURAL
    filter: FilterType = FilterType.NONE
    mirror: bool = True
    flash: bool = False

    def select_preset(self, preset: PresetLight) -> "FillLightSettings":
        # Custom keeps whatever color the user picked last
        if preset == PresetLight.CUSTOM:
            return replace(self, preset=preset)
        return replace(self, preset=preset, background_color=preset.color)

    def with_color(self, color: RGB) -> "FillLightSettings":
        r, g, b = (max(0, min(255, int(c))) for c in color)
        return replace(self, preset=PresetLight.CUSTOM, background_color=(r, g, b))

    def with_brightness(self, value: float) -> "FillLightSettings":
        return replace(self, brightness=clamp_brightness(value))

    def panel_color(self) -> RGB:
        """Background color with the brightness offset applied to every channel."""
        offset = round((self.brightness - 1.0) * 255)
        r, g, b = (max(0, min(255, c + offset)) for c in self.background_color)
        return r, g, b

    def updated(self, values: Mapping[str, Any]) -> "FillLightSettings":
        """Apply a partial update, as posted by the control panel."""
        settings = self
        if "preset" in values:
            settings = settings.select_preset(PresetLight(values["preset"]))
        if "color" in values:
            settings = settings.with_color(parse_color(values["color"]))
        if "brightness" in values:
            settings = settings.with_brightness(values["brightness"])
        if "filter" in values:
            settings = replace(settings, filter=FilterType(values["filter"]))
        if "mirror" in values:
            settings = replace(settings, mirror=bool(values["mirror"]))
        if "flash" in values:
            settings = replace(settings, flash=bool(values["flash"]))
        return settings

    def to_dict(self) -> dict:
        return {
            "background_color": list(self.background_color),
            "panel_color": list(self.panel_color()),
            "brightness": self.brightness,
            "preset": self.preset.value,
            "filter": self.filter.value,
            "filter_intensity": self.filter.intensity,
            "mirror": self.mirror,
            "flash": self.flash,
        }


def render_panel(settings: FillLightSettings, size: Tuple[int, int]) -> Image.Image:
    if size[0] <= 0 or size[1] <= 0:
        raise ValueError(f"Invalid panel size: {size}")
    return Image.new("RGB", size, settings.panel_color())
