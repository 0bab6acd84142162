from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from livetrans.app.config import SessionConfig
from livetrans.app.credentials import EnvCredentialProvider
from livetrans.audio.mic import SoundDeviceMicSource
from livetrans.live.gemini_live import GeminiLiveChannelFactory
from livetrans.live.session import LiveSessionController
from livetrans.nlp.translator.base import Translator
from livetrans.nlp.translator.factory import get_translator
from livetrans.ui.console import ConsolePresenter


@dataclass(frozen=True)
class LiveSessionServices:
    credentials: EnvCredentialProvider
    mic: SoundDeviceMicSource
    channel_factory: GeminiLiveChannelFactory
    translator: Translator
    presenter: ConsolePresenter
    controller: LiveSessionController


def build_live_session_services(args: Any, logger: logging.Logger | None = None) -> LiveSessionServices:
    config = SessionConfig.from_args(args)
    credentials = EnvCredentialProvider(str(args.api_key_env))
    mic = SoundDeviceMicSource(sample_rate=config.sample_rate_hz, channels=1, device=args.device)
    channel_factory = GeminiLiveChannelFactory(model=str(args.live_model), logger=logger)
    translator = get_translator(
        str(args.translator),
        api_key=credentials.get_credential,
        model=str(args.translation_model),
        source_lang=str(args.source_language),
    )
    presenter = ConsolePresenter(target_lang=str(args.target_language), show_partial=bool(args.debug))
    controller = LiveSessionController(
        credentials=credentials,
        mic=mic,
        channel_factory=channel_factory,
        translator=translator,
        config=config,
        target_lang=str(args.target_language),
        on_change=presenter.render if args.print_console else None,
        logger=logger,
    )
    return LiveSessionServices(
        credentials=credentials,
        mic=mic,
        channel_factory=channel_factory,
        translator=translator,
        presenter=presenter,
        controller=controller,
    )
