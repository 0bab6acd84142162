from __future__ import annotations


class LiveTransError(RuntimeError):
    pass


class CredentialMissing(LiveTransError):
    pass


class MicrophoneUnavailable(LiveTransError):
    pass


class ChannelError(LiveTransError):
    pass


class TranslationFailure(LiveTransError):
    pass


class MalformedRemoteResponse(TranslationFailure):
    pass
