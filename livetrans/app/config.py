from __future__ import annotations

import argparse
import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

from livetrans.nlp.languages import language_names

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "sample_rate_hz": 16000,
    "audio_buffer_size": 4096,
    "context_window_size": 5,
    "translation_debounce_ms": 1500,
    "render_interval_ms": 16,
    "target_language": "Spanish",
    "source_language": "en",
    "translator": "gemini",
    "live_model": "gemini-2.5-flash-native-audio-preview-09-2025",
    "translation_model": "gemini-2.5-flash",
    "api_key_env": "GEMINI_API_KEY",
    "print_console": True,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


@dataclass(frozen=True)
class SessionConfig:
    context_window_size: int = 5
    translation_debounce_ms: int = 1500
    audio_buffer_size: int = 4096
    sample_rate_hz: int = 16000
    render_interval_ms: int = 16

    def __post_init__(self) -> None:
        if self.context_window_size <= 0:
            raise ValueError("context_window_size must be > 0")
        if self.translation_debounce_ms < 0:
            raise ValueError("translation_debounce_ms must be >= 0")
        if self.audio_buffer_size <= 0:
            raise ValueError("audio_buffer_size must be > 0")
        if self.sample_rate_hz <= 0:
            raise ValueError("sample_rate_hz must be > 0")
        if self.render_interval_ms < 0:
            raise ValueError("render_interval_ms must be >= 0")

    @classmethod
    def from_args(cls, args: Any) -> "SessionConfig":
        return cls(
            context_window_size=int(args.context_window_size),
            translation_debounce_ms=int(args.translation_debounce_ms),
            audio_buffer_size=int(args.audio_buffer_size),
            sample_rate_hz=int(args.sample_rate_hz),
            render_interval_ms=int(getattr(args, "render_interval_ms", 16)),
        )


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("LiveTrans", "LiveTrans"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: payload[key] for key in CONFIG_KEYS if key in payload}


def load_default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULTS)


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists(defaults)
    merged = dict(defaults)
    merged.update(_known_only(_load_json_dict(chosen)))
    return merged, chosen


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or load_default_config())
    return paths.config_path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="livetrans", description="Live microphone transcription and translation")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument("--sample-rate-hz", type=int, default=defaults["sample_rate_hz"], help="capture rate (Hz)")
    p.add_argument(
        "--audio-buffer-size",
        type=int,
        default=defaults["audio_buffer_size"],
        help="samples per outbound audio frame",
    )
    p.add_argument(
        "--context-window-size",
        type=int,
        default=defaults["context_window_size"],
        help="recent finalized segments sent with each translation batch",
    )
    p.add_argument(
        "--translation-debounce-ms",
        type=int,
        default=defaults["translation_debounce_ms"],
        help="quiet period before a translation batch is sent",
    )
    p.add_argument(
        "--render-interval-ms",
        type=int,
        default=defaults["render_interval_ms"],
        help="partial transcript refresh interval",
    )
    p.add_argument(
        "--target-language",
        default=defaults["target_language"],
        choices=list(language_names()),
        help="language to translate into",
    )
    p.add_argument("--source-language", default=defaults["source_language"], help="spoken language code (argos)")
    p.add_argument(
        "--translator",
        default=defaults["translator"],
        choices=["gemini", "argos", "stub"],
        help="translation provider",
    )
    p.add_argument("--live-model", default=defaults["live_model"], help="live transcription model")
    p.add_argument("--translation-model", default=defaults["translation_model"], help="translation model")
    p.add_argument("--api-key-env", default=defaults["api_key_env"], help="environment variable holding the API key")
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print transcript and translation lines to console",
    )
    p.add_argument("--debug", action="store_true", help="verbose logging and partial transcript output")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
