from __future__ import annotations

import enum
from pathlib import Path

import msgspec


class SettingsError(ValueError):
    pass


class EngineVersion(enum.IntEnum):
    TT = 0
    MONTREAL = 1
    R2 = 2
    R3 = 3


class Game(enum.Enum):
    LARGO_WINCH = "largo_winch"
    TT = "tt"
    TTSE = "ttse"
    R2 = "r2"
    R2_REVOLUTION = "r2_revolution"
    R3 = "r3"


class Platform(enum.Enum):
    PC = "pc"
    DC = "dc"
    GC = "gc"
    PS2 = "ps2"
    XBOX = "xbox"


class FileCase(enum.Enum):
    AS_IS = "as_is"
    LOWER = "lower"
    UPPER = "upper"

    def apply(self, name: str) -> str:
        if self is FileCase.LOWER:
            return name.lower()
        if self is FileCase.UPPER:
            return name.upper()
        return name


class ScriptNodeLayout(enum.Enum):
    STANDARD = "standard"
    DREAMCAST = "dreamcast"
    SPLIT = "split"


class CollideLayout(enum.Enum):
    REVOLUTION = "revolution"
    PRE_R3 = "pre_r3"
    R3 = "r3"


# Origin of a region the settings do not place; 256 MiB apart.
DEFAULT_REGION_ORIGINS: dict[str, int] = {"fix": 0x10000000, "lvl": 0x20000000}


class LoadSettings(msgspec.Struct, frozen=True, forbid_unknown_fields=True):
    engine_version: EngineVersion = EngineVersion.R2
    game: Game = Game.LARGO_WINCH
    platform: Platform = Platform.PC
    little_endian: bool = True
    region_origins: dict[str, int] = msgspec.field(default_factory=dict)
    level_folder_case: FileCase = FileCase.AS_IS
    level_file_case: FileCase = FileCase.AS_IS

    @property
    def script_node_layout(self) -> ScriptNodeLayout:
        if self.game is Game.R3 and self.platform is Platform.GC:
            return ScriptNodeLayout.SPLIT
        if self.platform is Platform.DC:
            return ScriptNodeLayout.DREAMCAST
        return ScriptNodeLayout.STANDARD

    @property
    def collide_layout(self) -> CollideLayout:
        if self.game is Game.R2_REVOLUTION:
            return CollideLayout.REVOLUTION
        if self.engine_version < EngineVersion.R3:
            return CollideLayout.PRE_R3
        return CollideLayout.R3

    @property
    def r2_material_layout(self) -> bool:
        return self.engine_version <= EngineVersion.R2

    @property
    def has_pc_level_name_slots(self) -> bool:
        return self.platform is Platform.PC

    def origin(self, region_id: str) -> int:
        if region_id in self.region_origins:
            return int(self.region_origins[region_id])
        return DEFAULT_REGION_ORIGINS.get(region_id, 0)


PRESETS: dict[str, LoadSettings] = {
    "largo_pc": LoadSettings(),
    "tt_pc": LoadSettings(engine_version=EngineVersion.TT, game=Game.TT),
    "ttse_pc": LoadSettings(engine_version=EngineVersion.MONTREAL, game=Game.TTSE),
    "r2_pc": LoadSettings(game=Game.R2),
    "r2_dc": LoadSettings(game=Game.R2, platform=Platform.DC),
    "r2_revolution_ps2": LoadSettings(game=Game.R2_REVOLUTION, platform=Platform.PS2),
    "r3_pc": LoadSettings(engine_version=EngineVersion.R3, game=Game.R3),
    "r3_gc": LoadSettings(engine_version=EngineVersion.R3, game=Game.R3, platform=Platform.GC, little_endian=False),
}


def settings_for(preset: str) -> LoadSettings:
    try:
        return PRESETS[preset]
    except KeyError:
        known = ", ".join(sorted(PRESETS))
        raise SettingsError(f"unknown preset {preset!r} (known: {known})") from None


def load_settings(data: bytes | str) -> LoadSettings:
    try:
        return msgspec.json.decode(data, type=LoadSettings)
    except (msgspec.ValidationError, msgspec.DecodeError) as exc:
        raise SettingsError(f"invalid load settings: {exc}") from exc


def load_settings_file(path: str | Path) -> LoadSettings:
    return load_settings(Path(path).read_bytes())


__all__ = [
    "CollideLayout",
    "DEFAULT_REGION_ORIGINS",
    "EngineVersion",
    "FileCase",
    "Game",
    "LoadSettings",
    "PRESETS",
    "Platform",
    "ScriptNodeLayout",
    "SettingsError",
    "load_settings",
    "load_settings_file",
    "settings_for",
]
